"""
Ledger Data Models - Contribution Ledger

Data models for the incentivized data-collection ledger.
Contributors submit fingerprints of externally stored data, the owner
verifies them, and verified submissions accrue claimable rewards.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Any

from dotenv import load_dotenv


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# ==================== ENUMS ====================

class EventType(Enum):
    """Ledger events recorded in the event log."""
    DATA_SUBMITTED = "DataSubmitted"
    DATA_VERIFIED = "DataVerified"
    REWARDS_CLAIMED = "RewardsClaimed"


class TransactionType(Enum):
    """Treasury fund movements."""
    DEPOSIT = "deposit"      # Owner funded the treasury
    PAYOUT = "payout"        # Reward paid to a contributor
    REFUND = "refund"        # Failed payout returned to the ledger


# ==================== CONFIG ====================

def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class LedgerConfig:
    """Configuration for the contribution ledger."""
    # Owner identity, fixed the first time the store is initialised
    owner: str = "owner"

    # SQLite file backing the ledger
    db_path: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "storage", "ledger.db")

    # Reward paid per verified submission before the category multiplier
    base_reward: int = 100

    # Put the balance back if the payout transfer fails after zeroing
    restore_on_transfer_failure: bool = True

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Build a config from environment variables (and a .env file, if any)."""
        load_dotenv()
        defaults = cls()
        return cls(
            owner=os.getenv("LEDGER_OWNER", defaults.owner),
            db_path=os.getenv("LEDGER_DB_PATH", defaults.db_path),
            base_reward=int(os.getenv("LEDGER_BASE_REWARD", str(defaults.base_reward))),
            restore_on_transfer_failure=_env_bool(
                os.getenv("LEDGER_RESTORE_ON_TRANSFER_FAILURE", str(defaults.restore_on_transfer_failure))
            ),
        )


# ==================== DATA MODELS ====================

@dataclass
class Category:
    """A data category contributors can submit under."""
    name: str
    multiplier: int
    exists: bool = True
    created_at: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "multiplier": self.multiplier,
            "exists": self.exists,
            "created_at": self.created_at
        }


@dataclass
class DataPoint:
    """A single submitted reference to externally stored data."""
    id: int
    contributor: str
    fingerprint: str            # e.g. a content hash such as an IPFS CID
    category: str
    submitted_at: str
    reward: int                 # Fixed at submission, never recomputed
    verified: bool = False
    verified_at: Optional[str] = None
    verified_by: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DataPoint":
        return cls(
            id=row["id"],
            contributor=row["contributor"],
            fingerprint=row["fingerprint"],
            category=row["category"],
            submitted_at=row["submitted_at"],
            reward=row["reward"],
            verified=bool(row["verified"]),
            verified_at=row.get("verified_at"),
            verified_by=row.get("verified_by"),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "contributor": self.contributor,
            "fingerprint": self.fingerprint,
            "category": self.category,
            "submitted_at": self.submitted_at,
            "reward": self.reward,
            "verified": self.verified,
            "verified_at": self.verified_at,
            "verified_by": self.verified_by
        }


@dataclass
class ContractStats:
    """Read-only snapshot of the ledger totals."""
    total_data_points: int
    treasury_balance: int
    nominal_pool: int   # Total funding ever received, not reconciled

    def as_tuple(self):
        return (self.total_data_points, self.treasury_balance, self.nominal_pool)

    def to_dict(self) -> Dict:
        return {
            "total_data_points": self.total_data_points,
            "treasury_balance": self.treasury_balance,
            "nominal_pool": self.nominal_pool
        }


@dataclass
class LedgerEvent:
    """An event emitted by a committed ledger operation."""
    event_type: EventType
    payload: Dict[str, Any]
    created_at: str = field(default_factory=utc_now)
    event_id: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "payload": self.payload,
            "created_at": self.created_at
        }
