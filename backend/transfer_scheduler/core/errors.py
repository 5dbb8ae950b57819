"""Error Hierarchy - typed, categorized exceptions for all scheduled-transfer failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - ExceedsAuthorizationError is the only failure that leaves a transfer `scheduled`
    - to_response() produces the REST envelope; no internal details leaked

Design Decisions:
    - Single hierarchy with TransferError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to the logging framework
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    AUTHORIZATION = "authorization"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    transfer_id: str | None = None
    recurring_id: str | None = None
    user_address: str | None = None
    recipient: str | None = None
    debug_info: dict[str, Any] | None = None


class TransferError(Exception):
    """Base exception for all scheduled-transfer errors."""

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

    @property
    def recoverable(self) -> bool:
        return self.severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING)

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "transfer_id": self.context.transfer_id,
                    "recurring_id": self.context.recurring_id,
                    "user_address": self.context.user_address,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class TransferNotFoundError(TransferError):
    """Scheduled transfer id is unknown to the store."""
    def __init__(self, transfer_id: str, context: ErrorContext | None = None):
        super().__init__(
            "Scheduled transfer not found",
            "TRANSFER_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.transfer_id = transfer_id


class ResourceNotFoundError(TransferError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class InvalidTransferStateError(TransferError):
    """Status precondition violated (execute/cancel on a non-scheduled transfer)."""
    def __init__(
        self, current: str, action: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Transfer status is {current}, cannot {action}",
            "INVALID_TRANSFER_STATE", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current = current
        self.action = action


class UnauthorizedTransferError(TransferError):
    """User has no live authorization for scheduled transfers."""
    def __init__(self, reason: str | None = None, context: ErrorContext | None = None):
        super().__init__(
            reason or "User authorization is invalid or expired",
            "UNAUTHORIZED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.ERROR, context, 403,
        )


class ExceedsAuthorizationError(TransferError):
    """Total amount exceeds the authorization limit. Recoverable: status stays scheduled."""
    def __init__(
        self, total: Decimal, maximum: Decimal, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Total transfer amount {total} exceeds authorized maximum {maximum}",
            "EXCEEDS_AUTHORIZATION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 422,
        )
        self.total = total
        self.maximum = maximum


class RecipientSendFailureError(TransferError):
    """One or more recipient sends failed. Terminal: transfer marked failed."""
    def __init__(
        self, failed_count: int, total_count: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Some transfers failed: {failed_count}/{total_count}",
            "RECIPIENT_SEND_FAILURE", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context, 502,
        )
        self.failed_count = failed_count
        self.total_count = total_count


class TransferValidationError(TransferError):
    """Transfer data violates a structural rule (e.g. no recipients)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


# ─── Infrastructure Errors (500-level) ──────────────────────────

class PersistenceError(TransferError):
    """Store operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "PERSISTENCE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class CollaboratorTimeoutError(TransferError):
    """Authorization check or chain send exceeded its call-level timeout."""
    def __init__(
        self, operation: str, timeout_seconds: float, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{operation} timed out after {timeout_seconds:g}s",
            "COLLABORATOR_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.CRITICAL, context, 504,
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class ChainGatewayError(TransferError):
    """Flow access node or signing relay call failed."""
    def __init__(
        self, message: str, operation: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Chain gateway {operation} failed: {message}",
            "CHAIN_GATEWAY_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
