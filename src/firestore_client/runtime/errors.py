"""
Firestore Error Model

This module provides the error handling framework for the Firestore client,
using the standard RPC status codes reported by the server and the
classification rules applied to failed transaction attempts.
"""

from __future__ import annotations
from typing import Optional, Dict, Any
from enum import Enum, IntEnum


class Status(IntEnum):
    """Standard RPC status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16


class FirestoreError(Exception):
    """
    Base class for all Firestore client errors.

    Carries the status code the server (or local validation) reported.
    """

    def __init__(self, message: str, code: Status = Status.UNKNOWN,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        """
        Initialize a Firestore error.

        Args:
            message: Error message
            code: Status code
            details: Additional error details
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"[{self.code.name}] {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "code": self.code.value,
            "status": self.code.name,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FirestoreError':
        """Create error from dictionary representation."""
        try:
            code = Status(data.get("code", Status.UNKNOWN))
        except ValueError:
            code = Status.UNKNOWN
        message = data.get("message", "Unknown error")
        details = data.get("details")
        return cls(message, code, details)


class RpcError(FirestoreError):
    """Failure reported by the server or the transport for an RPC."""


class InvalidArgumentError(FirestoreError):
    """Malformed call arguments, detected locally."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message, Status.INVALID_ARGUMENT, details, cause)


class OrderingViolationError(FirestoreError):
    """A transactional read was issued after a write was recorded."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, Status.FAILED_PRECONDITION, details)


class BackoffError(FirestoreError):
    """Misuse of a backoff policy."""

    def __init__(self, message: str):
        super().__init__(message, Status.FAILED_PRECONDITION)


class ErrorKind(Enum):
    """How a failed transaction attempt is treated."""
    RETRYABLE = "retryable"
    FATAL = "fatal"


# Based on the client SDKs' transaction runners.
RETRYABLE_TRANSACTION_CODES = frozenset({
    Status.ABORTED,
    Status.CANCELLED,
    Status.UNKNOWN,
    Status.DEADLINE_EXCEEDED,
    Status.INTERNAL,
    Status.UNAVAILABLE,
    Status.UNAUTHENTICATED,
    Status.RESOURCE_EXHAUSTED,
})


def error_code(error: BaseException) -> Optional[Status]:
    """
    Extract the status code carried by an error.

    Args:
        error: Exception to examine

    Returns:
        The status code, or None if the error carries no recognizable code
    """
    code = getattr(error, "code", None)
    if code is None or isinstance(code, bool):
        return None
    if isinstance(code, Status):
        return code
    if isinstance(code, int):
        try:
            return Status(code)
        except ValueError:
            return None
    if isinstance(code, str):
        return Status.__members__.get(code)
    return None


def classify_transaction_error(error: BaseException) -> ErrorKind:
    """
    Decide whether a failed attempt may be retried.

    Args:
        error: Exception raised by the update function or by commit

    Returns:
        ErrorKind.RETRYABLE for the retryable status codes, ErrorKind.FATAL otherwise
    """
    if error_code(error) in RETRYABLE_TRANSACTION_CODES:
        return ErrorKind.RETRYABLE
    return ErrorKind.FATAL


def is_retryable_transaction_error(error: BaseException) -> bool:
    """Check if a failed transaction attempt should be retried."""
    return classify_transaction_error(error) is ErrorKind.RETRYABLE


_HTTP_STATUS_CODES = {
    400: Status.INVALID_ARGUMENT,
    401: Status.UNAUTHENTICATED,
    403: Status.PERMISSION_DENIED,
    404: Status.NOT_FOUND,
    409: Status.ABORTED,
    412: Status.FAILED_PRECONDITION,
    429: Status.RESOURCE_EXHAUSTED,
    499: Status.CANCELLED,
    500: Status.INTERNAL,
    501: Status.UNIMPLEMENTED,
    503: Status.UNAVAILABLE,
    504: Status.DEADLINE_EXCEEDED,
}


def status_from_http(http_status: int) -> Status:
    """
    Map an HTTP status code onto an RPC status code.

    Args:
        http_status: HTTP response status

    Returns:
        Matching status code (UNKNOWN if there is no mapping)
    """
    if 200 <= http_status < 300:
        return Status.OK
    return _HTTP_STATUS_CODES.get(http_status, Status.UNKNOWN)


def error_from_response(response: Any, http_status: Optional[int] = None) -> RpcError:
    """
    Create an RpcError from a REST error payload.

    The payload has the shape ``{"error": {"code": 409, "message": "...",
    "status": "ABORTED", "details": [...]}}``. The symbolic ``status`` takes
    precedence over the numeric HTTP code.

    Args:
        response: Decoded response body (may be a list for streaming methods)
        http_status: HTTP status of the response, if known

    Returns:
        RpcError carrying the mapped status code
    """
    if isinstance(response, list) and response:
        response = response[0]

    error_data = response.get("error") if isinstance(response, dict) else None
    if isinstance(error_data, str):
        code = status_from_http(http_status) if http_status else Status.UNKNOWN
        return RpcError(error_data, code)

    if not isinstance(error_data, dict):
        code = status_from_http(http_status) if http_status else Status.UNKNOWN
        return RpcError(f"HTTP {http_status}: unexpected error response", code)

    message = error_data.get("message", "Unknown error")
    code = Status.__members__.get(str(error_data.get("status", "")))
    if code is None:
        numeric = error_data.get("code", http_status)
        code = status_from_http(numeric) if isinstance(numeric, int) else Status.UNKNOWN

    details = None
    if error_data.get("details"):
        details = {"details": error_data["details"]}
    return RpcError(message, code, details)


__all__ = [
    "Status",
    "FirestoreError",
    "RpcError",
    "InvalidArgumentError",
    "OrderingViolationError",
    "BackoffError",
    "ErrorKind",
    "RETRYABLE_TRANSACTION_CODES",
    "error_code",
    "classify_transaction_error",
    "is_retryable_transaction_error",
    "status_from_http",
    "error_from_response",
]
