"""Error Hierarchy - typed, categorized exceptions for bootstrap and pipeline failures.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - to_response() and normalize_error() produce the same envelope:
      {"success": false, "message": str, "timestamp": ISO-8601}
    - StorageError is carried as a value (AreaOutcome), never raised to a request

Design Decisions:
    - Single hierarchy with GymdeskError base: the pipeline boundary renders all of them
    - normalize_error() also accepts foreign exceptions: collaborators signal failures
      with any exception carrying a numeric status
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    CONFIGURATION = "configuration"
    DATABASE = "database"
    STORAGE = "storage"
    ROUTING = "routing"
    VALIDATION = "validation"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Context attached to an error for logging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    path: str | None = None
    attempt: int | None = None
    debug_info: dict[str, Any] | None = None


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def error_envelope(message: str, timestamp: str | None = None) -> dict:
    return {
        "success": False,
        "message": message,
        "timestamp": timestamp or utc_timestamp(),
    }


class GymdeskError(Exception):
    """Base exception for all Gymdesk errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to the uniform REST error envelope."""
        return error_envelope(
            self.message,
            self.context.timestamp.isoformat(timespec="milliseconds"),
        )


# ─── Configuration / Infrastructure Errors (500-level) ──────────

class ConfigurationError(GymdeskError):
    """Required configuration is missing or invalid."""
    def __init__(self, message: str, setting: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONFIGURATION_ERROR", ErrorCategory.CONFIGURATION,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.setting = setting


class DatabaseConnectionError(GymdeskError):
    """A connection-establishment attempt failed or timed out."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "DATABASE_CONNECTION_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 500,
        )


class DatabaseUnavailableError(GymdeskError):
    """Readiness gate could not obtain a connection for this request."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database connection failed: {reason}",
            "DATABASE_UNAVAILABLE", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.reason = reason


class DatabaseError(GymdeskError):
    """Database operation failed inside a session."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class StorageError(GymdeskError):
    """A storage area could not be created. Carried as a value, not raised."""
    def __init__(self, area: str, path: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Could not create storage area '{area}' at {path}: {reason}",
            "STORAGE_ERROR", ErrorCategory.STORAGE,
            ErrorSeverity.WARNING, context, 500,
        )
        self.area = area
        self.path = path
        self.reason = reason


# ─── Request Errors (400-level) ─────────────────────────────────

class RouteNotFoundError(GymdeskError):
    """No route matched the request."""
    def __init__(self, method: str, path: str, context: ErrorContext | None = None):
        super().__init__(
            f"Route {method} {path} not found",
            "ROUTE_NOT_FOUND", ErrorCategory.ROUTING,
            ErrorSeverity.INFO, context, 404,
        )
        self.method = method
        self.path = path


class PayloadTooLargeError(GymdeskError):
    """Request body exceeds the configured ceiling."""
    def __init__(self, limit: int, context: ErrorContext | None = None):
        super().__init__(
            f"Request body exceeds the {limit} byte limit",
            "PAYLOAD_TOO_LARGE", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 413,
        )
        self.limit = limit


class MalformedBodyError(GymdeskError):
    """Request body could not be decoded."""
    def __init__(self, content_type: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Malformed {content_type} body: {reason}",
            "MALFORMED_BODY", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.content_type = content_type


# ─── Normalization ───────────────────────────────────────────────

_STATUS_ATTRIBUTES = ("http_status", "status_code", "status")
GENERIC_MESSAGE = "Internal server error"


def error_status(exc: BaseException) -> int | None:
    """First 4xx/5xx integer found on the exception's status attributes."""
    for attr in _STATUS_ATTRIBUTES:
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and 400 <= value <= 599:
            return value
    return None


def error_message(exc: BaseException) -> str:
    detail = getattr(exc, "detail", None)
    if isinstance(detail, str) and detail:
        return detail
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc)


def normalize_error(exc: BaseException, expose_details: bool = True) -> tuple[int, dict]:
    """Map any exception to (http_status, uniform envelope).

    Errors carrying a status keep their message. Unexpected errors show their
    message only when expose_details is set; production apps pass False, so a
    500 there always reads "Internal server error" instead of echoing the
    exception text back to the client.
    """
    if isinstance(exc, GymdeskError):
        return exc.http_status, exc.to_response()
    status = error_status(exc)
    if status is not None:
        return status, error_envelope(error_message(exc) or GENERIC_MESSAGE)
    message = error_message(exc) if expose_details else ""
    return 500, error_envelope(message or GENERIC_MESSAGE)
