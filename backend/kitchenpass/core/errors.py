"""Error Hierarchy — typed, categorized exceptions for KitchenPass failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Expected redemption outcomes (expired, revoked, use limit...) are NOT errors;
      they are returned as typed results (core/domain_types.RedemptionOutcome)
    - Domain errors (400-level) are recoverable; store errors (500-level) are critical
    - to_response() produces the REST envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with KitchenPassError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - StoreConflictError is transient and safe to retry; StoreFailureError is fatal
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


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
    AUTHORIZATION = "authorization"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    kitchen_id: str | None = None
    credential_id: str | None = None
    user_id: str | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class KitchenPassError(Exception):
    """Base exception for all KitchenPass errors."""

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
    def retryable(self) -> bool:
        return False

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "kitchen_id": self.context.kitchen_id,
                    "credential_id": self.context.credential_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidIssuanceError(KitchenPassError):
    """Issuance request carried unusable limits."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "INVALID_ISSUANCE", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class UnauthenticatedError(KitchenPassError):
    """Request carried no usable caller identity."""

    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"Caller identity missing or invalid: {reason}",
            "UNAUTHENTICATED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 401,
        )


class UnauthorizedError(KitchenPassError):
    """Actor lacks the role or capability for the requested action."""
    def __init__(self, action: str, context: ErrorContext | None = None):
        super().__init__(
            f"Not allowed to {action}",
            "UNAUTHORIZED", ErrorCategory.AUTHORIZATION,
            ErrorSeverity.WARNING, context, 403,
        )
        self.action = action


class ResourceNotFoundError(KitchenPassError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


# ─── Store Errors (409 / 500-level) ─────────────────────────────

class StoreConflictError(KitchenPassError):
    """Concurrent write conflict — transient, safe to retry."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or "The kitchen is busy. Please try again."
        super().__init__(
            f"Store conflict during {operation}: {message}",
            "STORE_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.operation = operation

    @property
    def retryable(self) -> bool:
        return True


class StoreFailureError(KitchenPassError):
    """Database operation failed for a non-transient reason."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or "Something went wrong. Please try again."
        super().__init__(
            f"Store {operation} failed: {message}",
            "STORE_FAILURE", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.operation = operation


class IssuanceFailedError(KitchenPassError):
    """Credential could not be persisted."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.user_message = ctx.user_message or "Could not create the invite. Please try again."
        super().__init__(
            f"Issuance failed: {message}",
            "ISSUANCE_FAILED", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, ctx, 503,
        )


class CodeSpaceExhaustedError(KitchenPassError):
    """No free human code found within the attempt budget."""
    def __init__(self, attempts: int, context: ErrorContext | None = None):
        super().__init__(
            f"No unused invite code found after {attempts} attempts",
            "CODE_SPACE_EXHAUSTED", ErrorCategory.CONFLICT,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.attempts = attempts
