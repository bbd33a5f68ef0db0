"""
Observability module.

Stdout logging with request-ID stamping and safe structured-logging helpers.
"""

from rag_pipeline.observability.correlation import get_request_id, reset_request_id, set_request_id
from rag_pipeline.observability.logger import configure_logging, configure_logging_from_settings, get_logger

__all__ = [
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "get_request_id",
    "reset_request_id",
    "set_request_id",
]
