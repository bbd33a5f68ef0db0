"""
Request ID context.

Carries the current enrichment request's ID across the concurrent tasks
it spawns (asyncio tasks copy the context at creation), so every log line
of one request can be correlated.

Dependencies: contextvars
System role: Request tracing across concurrent enrichment tasks
"""

import uuid
from contextvars import ContextVar, Token

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(request_id: str | None = None) -> Token[str]:
    """
    Set the request ID for the current context.

    Args:
        request_id: Caller-supplied ID (a short random one is generated if None)

    Returns:
        Token: Pass to reset_request_id to restore the previous value
    """
    return request_id_ctx.set(request_id or uuid.uuid4().hex[:12])


def get_request_id() -> str:
    """Current request ID, or "" outside a request."""
    return request_id_ctx.get()


def reset_request_id(token: Token[str]) -> None:
    request_id_ctx.reset(token)
