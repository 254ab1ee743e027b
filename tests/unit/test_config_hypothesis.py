"""Property-based tests for configuration using Hypothesis.

Generates diverse inputs and verifies that validation accepts exactly the
documented ranges.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from cleankiss.config import MUTATING_HTTP_METHODS, VALID_LOG_LEVELS, AppConfig, IdempotencyConfig

http_methods_list_strategy = st.lists(
    st.sampled_from(sorted(MUTATING_HTTP_METHODS)),
    min_size=1,
    max_size=len(MUTATING_HTTP_METHODS),
    unique=True,
)

valid_ttl_strategy = st.integers(min_value=1, max_value=604800)
invalid_ttl_strategy = st.one_of(
    st.integers(max_value=0),
    st.integers(min_value=604801, max_value=10_000_000),
)

valid_timeout_strategy = st.integers(min_value=1, max_value=300)
invalid_timeout_strategy = st.one_of(
    st.integers(max_value=0),
    st.integers(min_value=301, max_value=10_000),
)


@given(methods=http_methods_list_strategy)
def test_methods_normalized_regardless_of_case(methods: list[str]) -> None:
    mixed = [m.lower() if i % 2 else m for i, m in enumerate(methods)]
    config = IdempotencyConfig(enabled_methods=mixed)
    assert config.enabled_methods == methods


@given(methods=http_methods_list_strategy)
def test_csv_and_list_forms_agree(methods: list[str]) -> None:
    assert (
        IdempotencyConfig(enabled_methods=",".join(methods)).enabled_methods
        == IdempotencyConfig(enabled_methods=methods).enabled_methods
    )


@given(ttl=valid_ttl_strategy)
def test_valid_ttl_accepted(ttl: int) -> None:
    assert IdempotencyConfig(default_ttl_seconds=ttl).default_ttl_seconds == ttl


@given(ttl=invalid_ttl_strategy)
def test_invalid_ttl_rejected(ttl: int) -> None:
    with pytest.raises(ValidationError):
        IdempotencyConfig(default_ttl_seconds=ttl)


@given(timeout=valid_timeout_strategy)
def test_valid_timeout_accepted(timeout: int) -> None:
    config = IdempotencyConfig(execution_timeout_seconds=timeout)
    assert config.execution_timeout_seconds == timeout


@given(timeout=invalid_timeout_strategy)
def test_invalid_timeout_rejected(timeout: int) -> None:
    with pytest.raises(ValidationError):
        IdempotencyConfig(execution_timeout_seconds=timeout)


@given(limit=st.integers(max_value=-1))
def test_negative_buffer_limit_rejected(limit: int) -> None:
    with pytest.raises(ValidationError):
        IdempotencyConfig(max_buffered_body_bytes=limit)


@given(level=st.sampled_from(sorted(VALID_LOG_LEVELS)))
def test_log_levels_case_insensitive(level: str) -> None:
    assert AppConfig(log_level=level.lower()).log_level == level


@given(level=st.text(min_size=1, max_size=10).filter(lambda s: s.upper() not in VALID_LOG_LEVELS))
def test_unknown_log_levels_rejected(level: str) -> None:
    with pytest.raises(ValidationError):
        AppConfig(log_level=level)
