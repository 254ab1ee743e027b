"""Periodic purge of expired entries from the in-memory backend.

Entries in :class:`~cleankiss.storage.backend.MemoryBackend` expire lazily
on read. Keys that are never read again would stay resident, so a background
task sweeps every registered target at a fixed interval.

Targets are anything with an async ``cleanup_expired() -> int``: the
idempotency store and the cache service both qualify. Redis expires keys on
its own, so for the Redis store this is a no-op that still reports metrics.

Examples:
    Start and stop around the application lifespan::

        task = await start_cleanup_task([store, cache], interval_seconds=300)
        ...
        await stop_cleanup_task(task)
"""

import asyncio
from collections.abc import Sequence
from typing import Protocol

from cleankiss.observability.logging import get_logger
from cleankiss.observability.metrics import record_cleanup

logger = get_logger(__name__)


class Cleanable(Protocol):
    async def cleanup_expired(self) -> int: ...


async def run_cleanup(targets: Sequence[Cleanable]) -> int:
    """Run one sweep over ``targets`` and return the total removed.

    A failing target is logged and skipped; the others still run.
    """
    total = 0
    for target in targets:
        try:
            removed = await target.cleanup_expired()
        except Exception as e:
            logger.error(
                "cleanup.failed",
                target=type(target).__name__,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue
        total += removed

    record_cleanup(total)
    if total > 0:
        logger.info("cleanup.completed", records_removed=total)
    else:
        logger.debug("cleanup.completed", records_removed=0)
    return total


async def cleanup_loop(
    targets: Sequence[Cleanable],
    interval_seconds: int = 300,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Sweep ``targets`` every ``interval_seconds`` until ``stop_event`` is set.

    Args:
        targets: Stores and caches to purge.
        interval_seconds: Time between sweeps (default 300s = 5 minutes).
        stop_event: Event that ends the loop (optional).
    """
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info("cleanup.started", interval_seconds=interval_seconds, targets=len(targets))

    while not stop_event.is_set():
        await run_cleanup(targets)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except TimeoutError:
            continue

    logger.info("cleanup.stopped")


async def start_cleanup_task(
    targets: Sequence[Cleanable],
    interval_seconds: int = 300,
) -> asyncio.Task[None]:
    """Start :func:`cleanup_loop` as a background task.

    Returns:
        The running task; pass it to :func:`stop_cleanup_task` on shutdown.
    """
    stop_event = asyncio.Event()
    task = asyncio.create_task(
        cleanup_loop(targets=targets, interval_seconds=interval_seconds, stop_event=stop_event)
    )
    task._stop_event = stop_event  # type: ignore[attr-defined]
    return task


async def stop_cleanup_task(task: asyncio.Task[None]) -> None:
    """Signal the cleanup task to stop and wait for it, cancelling after 5 seconds."""
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)
    if stop_event:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=5.0)
    except TimeoutError:
        logger.warning("cleanup.stop_timeout", message="Cleanup task did not stop in time")
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("cleanup.cancelled")
