"""
Exception hierarchy for the RAG pipeline.

Provides layered exception structure for domain-specific errors.
All exceptions include context for observability and debugging.
ErrorKind classifies failures once so callers can pattern-match on it
instead of inspecting messages.

Dependencies: pydantic (ValidationError mapping only)
System role: Centralized exception handling across the application
"""

import asyncio
import ssl
from enum import Enum
from typing import Any

import pydantic


class ErrorKind(str, Enum):
    """Failure categories produced at collaborator boundaries."""

    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    PARTIAL_FAILURE = "partial_failure"
    UNKNOWN = "unknown"


class RagPipelineError(Exception):
    """Base exception for all RAG pipeline errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConnectivityError(RagPipelineError):
    """Raised when the vector store (or another backend) is unreachable."""

    kind = ErrorKind.CONNECTIVITY

    def __init__(
        self,
        message: str,
        state: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize connectivity error.

        Args:
            message: Error message
            state: Connection state at the time of failure
            details: Additional context
        """
        details = details or {}
        if state:
            details["state"] = state
        super().__init__(message, details)


class OperationTimeoutError(RagPipelineError):
    """Raised when a single operation exceeds its time budget."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        timeout_s: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize timeout error.

        Args:
            message: Error message
            operation: Operation that overran
            timeout_s: Budget that was exceeded
            details: Additional context
        """
        details = details or {}
        if operation:
            details["operation"] = operation
        if timeout_s is not None:
            details["timeout_s"] = timeout_s
        super().__init__(message, details)


class ValidationError(RagPipelineError):
    """Raised when input validation fails."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class PartialFailure(RagPipelineError):
    """
    Some batches failed while others succeeded.

    Raised by strict indexing; non-strict paths report the same condition
    as BatchFailure markers and failed-source metadata instead.
    """

    kind = ErrorKind.PARTIAL_FAILURE

    def __init__(
        self,
        message: str,
        failed: int = 0,
        total: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["failed"] = failed
        details["total"] = total
        super().__init__(message, details)


class VectorStoreError(RagPipelineError):
    """Raised when vector store operations fail."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        collection: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize vector store error.

        Args:
            message: Error message
            operation: Operation that failed (query, scroll, upsert, delete)
            collection: Collection the operation targeted
            details: Additional context
        """
        details = details or {}
        if operation:
            details["operation"] = operation
        if collection:
            details["collection"] = collection
        super().__init__(message, details)


class CollaboratorError(RagPipelineError):
    """Raised when an external collaborator (crawler, web search, LLM) fails."""

    def __init__(
        self,
        message: str,
        collaborator: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if collaborator:
            details["collaborator"] = collaborator
        super().__init__(message, details)


class AttachmentProcessingError(RagPipelineError):
    """Raised when request attachments cannot be processed."""

    pass


_PROTOCOL_FAILURE_MARKERS = ("wrong version number", "ssl", "tls", "protocol mismatch")


def is_protocol_failure(exc: BaseException) -> bool:
    """
    Detect transport-level failures that require a full client teardown.

    Walks the exception chain since HTTP clients wrap the underlying
    SSL error.

    Args:
        exc: Exception raised by a probe or store call

    Returns:
        bool: True for SSL / protocol version mismatches
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLError):
            return True
        text = str(current).lower()
        if any(marker in text for marker in _PROTOCOL_FAILURE_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Map an exception to an ErrorKind.

    Args:
        exc: Any exception raised by a collaborator or task

    Returns:
        ErrorKind: Category used for degradation decisions and metadata
    """
    if isinstance(exc, RagPipelineError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (ConnectionError, OSError)):
        return ErrorKind.CONNECTIVITY
    if isinstance(exc, (ValueError, pydantic.ValidationError)):
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN
