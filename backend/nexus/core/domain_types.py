"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - UserId wraps the identity provider's subject — never generated locally
    - Money is always decimal.Decimal (see core/money.py), never float
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to String columns without custom encoders
"""

from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", str)
ResourceId = NewType("ResourceId", str)


# ─── Enums ───────────────────────────────────────────────────────

class Provider(str, Enum):
    """OAuth providers a user can connect."""
    META_ADS = "meta_ads"
    GOOGLE_ADS = "google_ads"
    GOOGLE_ANALYTICS = "google_analytics"


class Platform(str, Enum):
    """Advertising platforms feeding the campaign read model."""
    META = "meta"
    GOOGLE = "google"


class LedgerKind(str, Enum):
    """Ledger entry kinds — sign is carried by the amount, not the kind."""
    DEPOSIT = "deposit"
    DOMAIN_PURCHASE = "domain_purchase"
    CASHBACK = "cashback"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"


class ConnectionPhase(str, Enum):
    """OAuth connection attempt states (logged at each transition)."""
    START = "start"
    AUTH_URL_ISSUED = "auth_url_issued"
    CALLBACK_RECEIVED = "callback_received"
    TOKEN_EXCHANGED = "token_exchanged"
    RESOURCE_SELECTED = "resource_selected"
    AWAITING_SELECTION = "awaiting_selection"
    CONNECTED = "connected"
    FAILED = "failed"


class RegistrationStatus(str, Enum):
    """Domain registration lifecycle."""
    ACTIVE = "active"
    PENDING = "pending"
    FAILED = "failed"
