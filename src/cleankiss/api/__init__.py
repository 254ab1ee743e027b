"""HTTP surface: application factory and result mapping."""

from cleankiss.api.app import build_store, create_app
from cleankiss.api.responses import result_to_response

__all__ = ["build_store", "create_app", "result_to_response"]
