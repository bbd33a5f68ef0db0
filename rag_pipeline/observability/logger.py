"""
Logger configuration.

Stdout logging with ISO timestamps. Every record is stamped with the
current request ID; structured extras attached by
log_exception_with_context (task, error kind, collection) are appended
to the line when enabled.

Dependencies: logging (stdlib), rag_pipeline.observability.correlation
System role: Centralized logging configuration
"""

import logging
import sys

from rag_pipeline.observability.correlation import get_request_id

# Record attributes rendered as key=value after the message
CONTEXT_FIELDS = ("task", "error_kind", "error_type", "collection", "user_id")

_QUIET_LIBRARIES = ("httpx", "httpcore", "qdrant_client", "sqlalchemy.engine")


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request ID ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


class ContextFormatter(logging.Formatter):
    """Formatter appending known structured extras to the message."""

    def __init__(self, include_extras: bool = True) -> None:
        super().__init__(
            "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._include_extras = include_extras

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not self._include_extras:
            return line
        pairs = [f"{name}={getattr(record, name)}" for name in CONTEXT_FIELDS if hasattr(record, name)]
        return f"{line} | {' '.join(pairs)}" if pairs else line


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | int = logging.INFO, include_extras: bool = True) -> None:
    """
    Install the stdout handler on the root logger.

    Safe to call repeatedly; previous root handlers are replaced.

    Args:
        level: Root log level (name or numeric; unknown names mean INFO)
        include_extras: Append structured context fields to each line
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(ContextFormatter(include_extras=include_extras))

    root_logger.setLevel(_resolve_level(level))
    root_logger.addHandler(handler)

    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging_from_settings(settings=None) -> None:
    """Configure logging from the application settings (LOG_LEVEL, LOG_EXTRAS)."""
    if settings is None:
        from rag_pipeline.configs import get_settings

        settings = get_settings()
    configure_logging(settings.log_level, include_extras=settings.log_extras)


def get_logger(name: str) -> logging.Logger:
    """
    Get configured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        logging.Logger: Configured logger instance
    """
    return logging.getLogger(name)
