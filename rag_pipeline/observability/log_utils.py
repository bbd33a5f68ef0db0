"""
Structured logging helpers for pipeline payloads.

Pipeline values are often large (embedding vectors, attachment bytes,
knowledge fragments, search hits). These helpers render them as short
summaries so a single log line never carries a whole payload.

Dependencies: logging (stdlib), pydantic
System role: Logging helper functions
"""

import logging
from typing import Any

from pydantic import BaseModel

_PREVIEW_ITEMS = 3


def _looks_like_vector(value: list | tuple) -> bool:
    return len(value) > _PREVIEW_ITEMS and all(isinstance(v, float) for v in value[:_PREVIEW_ITEMS])


def safe_log_value(value: Any, max_length: int = 500) -> str:
    """
    Render a pipeline value as a bounded log string.

    Args:
        value: Value to render
        max_length: Cut-off for the rendered string

    Returns:
        str: Summary such as "vector(dim=1024)", "bytes(2048)" or
        "SearchHit(7 fields)"; plain strings pass through truncated
    """
    try:
        if value is None:
            return "None"
        if isinstance(value, str):
            rendered = value
        elif isinstance(value, (bytes, bytearray)):
            rendered = f"bytes({len(value)})"
        elif isinstance(value, (list, tuple)) and _looks_like_vector(value):
            rendered = f"vector(dim={len(value)})"
        elif isinstance(value, (list, tuple, set, frozenset)):
            rendered = f"{type(value).__name__}({len(value)} items)"
        elif isinstance(value, dict):
            rendered = f"dict({len(value)} keys)"
        elif isinstance(value, BaseModel):
            rendered = f"{type(value).__name__}({len(type(value).model_fields)} fields)"
        else:
            rendered = str(value)
    except Exception as e:
        return f"<unable to log: {type(e).__name__}>"

    if len(rendered) > max_length:
        return f"{rendered[:max_length]}... (truncated, {len(rendered)} total)"
    return rendered


def log_exception_with_context(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    level: int = logging.WARNING,
    **context,
) -> None:
    """
    Log a failure with its type, message and summarized context.

    Degraded failures (a task that contributes nothing) default to
    WARNING; callers that abort the request pass logging.ERROR.

    Args:
        logger: Logger instance
        message: Log message
        exc: Exception instance
        level: Log level
        **context: Extra record attributes (task, collection, user_id, ...)
    """
    extra = {key: safe_log_value(val) for key, val in context.items()}
    extra["error_type"] = type(exc).__name__
    extra["error_msg"] = safe_log_value(str(exc), max_length=200)
    logger.log(level, f"{message}: {type(exc).__name__}: {extra['error_msg']}", extra=extra)


def summarize_failures(failed: dict[str, Any]) -> str:
    """
    Render a task-to-error-kind mapping as "a=timeout, b=network".

    Args:
        failed: Mapping of task name to error kind (enum or string)

    Returns:
        str: Comma-joined summary, or "none"
    """
    if not failed:
        return "none"
    return ", ".join(f"{name}={getattr(kind, 'value', kind)}" for name, kind in sorted(failed.items()))
