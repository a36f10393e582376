"""Error Hierarchy — typed, categorized exceptions for all Nexus failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) are recoverable; infrastructure errors (500-level) are critical
    - to_response() produces the REST envelope
    - No secrets (tokens, client secrets) in user-facing messages

Design Decisions:
    - Single hierarchy with NexusError base: FastAPI global handler catches all (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - InsufficientFunds also exposes balance/required at the envelope top level:
      the dashboard's wallet screen reads them directly
"""

from dataclasses import dataclass, field
from decimal import Decimal
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
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    provider: str | None = None
    reference_id: str | None = None
    debug_info: dict[str, Any] | None = None


class NexusError(Exception):
    """Base exception for all Nexus errors."""

    # Whether repeating the same request can succeed without changing it
    retryable = False

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
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "provider": self.context.provider,
                    "reference_id": self.context.reference_id,
                },
            }
        }


# ─── Authentication Errors (401) ────────────────────────────────

class Unauthenticated(NexusError):
    """No bearer credential on the request."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Missing bearer credential",
            "UNAUTHENTICATED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class InvalidCredential(NexusError):
    """Identity provider rejected the credential or returned no subject."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Invalid or expired credential",
            "INVALID_CREDENTIAL", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


# ─── Domain Errors (400-level) ──────────────────────────────────

class MalformedInput(NexusError):
    """Request payload failed domain validation."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "MALFORMED_INPUT", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class InsufficientFunds(NexusError):
    """Wallet balance lower than the requested debit."""
    def __init__(
        self, balance: Decimal, required: Decimal, context: ErrorContext | None = None,
    ):
        super().__init__(
            "Insufficient wallet balance",
            "INSUFFICIENT_FUNDS", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 400,
        )
        self.balance = balance
        self.required = required

    def to_response(self) -> dict:
        response = super().to_response()
        response["balance"] = float(self.balance)
        response["required"] = float(self.required)
        return response


class DomainUnavailable(NexusError):
    """Domain already registered through this system."""
    def __init__(self, domain: str, context: ErrorContext | None = None):
        super().__init__(
            f"Domain '{domain}' is not available",
            "DOMAIN_UNAVAILABLE", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.domain = domain


class PartialSelectionPending(NexusError):
    """Connection exists but no downstream resource has been chosen yet."""
    def __init__(self, provider: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.provider = provider
        super().__init__(
            f"Connection to {provider} is waiting for an account selection",
            "SELECTION_PENDING", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.provider = provider


class ResourceNotFoundError(NexusError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class WebhookSignatureError(NexusError):
    """Inbound webhook failed signature verification."""
    def __init__(self, source: str, reason: str, context: ErrorContext | None = None):
        super().__init__(
            f"{source} webhook rejected: {reason}",
            "WEBHOOK_SIGNATURE_INVALID", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, 400,
        )
        self.source = source


class ConcurrencyError(NexusError):
    """Concurrent modification detected."""
    retryable = True

    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


class DuplicateLedgerReference(NexusError):
    """A deposit carrying this reference is already in the ledger."""
    def __init__(self, reference_id: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.reference_id = reference_id
        super().__init__(
            f"Ledger already holds a deposit for '{reference_id}'",
            "DUPLICATE_REFERENCE", ErrorCategory.CONFLICT,
            ErrorSeverity.INFO, ctx, 409,
        )
        self.reference_id = reference_id


# ─── Infrastructure Errors (500-level) ──────────────────────────

class UpstreamProviderError(NexusError):
    """Third-party API call failed (network, 4xx, 5xx or unexpected shape)."""
    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        context: ErrorContext | None = None,
        transient: bool | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.provider = provider
        super().__init__(
            f"{provider} error: {message}",
            "UPSTREAM_PROVIDER_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, ctx, 502,
        )
        self.provider = provider
        self.provider_message = message
        self.status_code = status_code
        self.transient = transient

    @property
    def retryable(self) -> bool:
        """Network failures, 429 and 5xx may clear up; other 4xx will not."""
        if self.transient is not None:
            return self.transient
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class ConfigurationError(NexusError):
    """Required setting missing for the requested operation."""
    def __init__(self, setting: str, context: ErrorContext | None = None):
        super().__init__(
            f"Server configuration incomplete: {setting}",
            "CONFIGURATION_ERROR", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.setting = setting


class DatabaseError(NexusError):
    """Database operation failed."""
    retryable = True

    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 500,
        )
        self.operation = operation
