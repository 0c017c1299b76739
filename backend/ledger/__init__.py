"""
Contribution Ledger

Incentivized data-collection ledger: contributors submit fingerprints of
externally stored data, the owner verifies them, verified submissions accrue
rewards that contributors claim from an owner-funded treasury.

Backed by SQLite.
"""

from ledger.models import (
    Category,
    DataPoint,
    ContractStats,
    LedgerEvent,
    EventType,
    TransactionType,
    LedgerConfig,
)

from ledger.errors import (
    LedgerError,
    EmptyFingerprint,
    InvalidCategory,
    Unauthorized,
    InvalidId,
    AlreadyVerified,
    DuplicateCategory,
    NoRewards,
    InsufficientTreasury,
    TransferFailure,
    InvalidAmount,
    OwnerMismatch,
)

from ledger.catalog import DEFAULT_CATEGORIES, reward_multiplier
from ledger.transfer import PayoutTransport, InMemoryPayoutTransport

from ledger.manager import LedgerManager, get_ledger_manager

__all__ = [
    # Models
    "Category",
    "DataPoint",
    "ContractStats",
    "LedgerEvent",
    "EventType",
    "TransactionType",
    "LedgerConfig",

    # Errors
    "LedgerError",
    "EmptyFingerprint",
    "InvalidCategory",
    "Unauthorized",
    "InvalidId",
    "AlreadyVerified",
    "DuplicateCategory",
    "NoRewards",
    "InsufficientTreasury",
    "TransferFailure",
    "InvalidAmount",
    "OwnerMismatch",

    # Catalog
    "DEFAULT_CATEGORIES",
    "reward_multiplier",

    # Transport
    "PayoutTransport",
    "InMemoryPayoutTransport",

    # Manager
    "LedgerManager",
    "get_ledger_manager"
]
