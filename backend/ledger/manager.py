"""
Ledger Manager - Contribution Ledger

Core operations of the incentivized data-collection ledger:
- Submit data fingerprints under a category
- Verify submissions (owner only) and credit rewards
- Fund the treasury (owner only) and claim rewards
- Manage the category catalog (owner only)

Each mutating operation runs under one re-entrant lock and inside one SQLite
transaction opened with BEGIN IMMEDIATE, so a failed precondition leaves
nothing behind and writers on the same database file never interleave.
"""

import logging
import sqlite3
import threading
from typing import Dict, List, Optional, Any

from ledger import database as db
from ledger.access import require_owner
from ledger.catalog import DEFAULT_CATEGORIES, compute_reward, reward_multiplier
from ledger.errors import (
    AlreadyVerified,
    DuplicateCategory,
    EmptyFingerprint,
    InsufficientTreasury,
    InvalidAmount,
    InvalidCategory,
    InvalidId,
    NoRewards,
    OwnerMismatch,
    TransferFailure,
)
from ledger.models import (
    Category,
    ContractStats,
    DataPoint,
    EventType,
    LedgerConfig,
    LedgerEvent,
    TransactionType,
    utc_now,
)
from ledger.transfer import InMemoryPayoutTransport, PayoutTransport

logger = logging.getLogger(__name__)


class LedgerManager:
    """
    Manages the contribution ledger.
    Uses SQLite for persistent storage and a PayoutTransport for claims.
    """

    def __init__(self, config: LedgerConfig = None, transport: PayoutTransport = None):
        self.config = config or LedgerConfig()
        self.transport = transport or InMemoryPayoutTransport()
        self._lock = threading.RLock()

        stored_owner = db.init_database(self.config.db_path, self.config.owner, DEFAULT_CATEGORIES)
        if stored_owner != self.config.owner:
            raise OwnerMismatch(
                f"Ledger at {self.config.db_path} is owned by {stored_owner!r}, "
                f"not {self.config.owner!r}"
            )
        self.owner = stored_owner

        logger.info(f"Ledger manager initialized (owner={self.owner}, db={self.config.db_path})")

    def _transaction(self, write: bool = False):
        return db.get_connection(self.config.db_path, write=write)

    def _emit(self, conn, event_type: EventType, payload: Dict[str, Any]) -> LedgerEvent:
        event = LedgerEvent(event_type=event_type, payload=payload)
        event.event_id = db.add_event(conn, event_type.value, payload, event.created_at)
        return event

    # ==================== CATEGORIES ====================

    def category_exists(self, name: str) -> bool:
        with self._transaction() as conn:
            return db.category_exists(conn, name)

    def reward_multiplier(self, name: str) -> int:
        return reward_multiplier(name)

    def add_category(self, caller: str, name: str) -> Category:
        """Add a new category (owner only). Categories can never be removed."""
        with self._lock, self._transaction(write=True) as conn:
            require_owner(caller, self.owner, "add categories")
            if db.category_exists(conn, name):
                raise DuplicateCategory(f"Category '{name}' already exists")
            db.insert_category(conn, name)

        logger.info(f"Category '{name}' added (multiplier x{reward_multiplier(name)})")
        return Category(name=name, multiplier=reward_multiplier(name))

    def list_categories(self) -> List[Category]:
        with self._transaction() as conn:
            rows = db.get_categories(conn)
        return [
            Category(name=r["name"], multiplier=reward_multiplier(r["name"]), created_at=r["created_at"])
            for r in rows
        ]

    # ==================== SUBMISSIONS ====================

    def submit_data(self, contributor: str, fingerprint: str, category: str) -> int:
        """
        Record a new unverified data point.

        The reward is computed here from the category multiplier and never
        changes afterwards. Returns the new data point id.
        """
        if not fingerprint:
            raise EmptyFingerprint()

        with self._lock, self._transaction(write=True) as conn:
            if not db.category_exists(conn, category):
                raise InvalidCategory(f"Unknown category '{category}'")

            state = db.get_state(conn)
            data_id = state["total_data_points"] + 1
            reward = compute_reward(self.config.base_reward, category)

            db.create_data_point(conn, {
                "id": data_id,
                "contributor": contributor,
                "fingerprint": fingerprint,
                "category": category,
                "submitted_at": utc_now(),
                "reward": reward
            })
            db.update_state(conn, {"total_data_points": data_id})

            self._emit(conn, EventType.DATA_SUBMITTED, {
                "id": data_id,
                "contributor": contributor,
                "category": category,
                "reward": reward
            })

        logger.info(f"Data point {data_id} submitted by {contributor} ({category}, reward {reward})")
        return data_id

    def _load_data_point(self, conn, data_id: int) -> Dict[str, Any]:
        total = db.get_state(conn)["total_data_points"]
        if not isinstance(data_id, int) or isinstance(data_id, bool) or not 1 <= data_id <= total:
            raise InvalidId(f"Data point id must be between 1 and {total}, got {data_id}")
        return db.get_data_point(conn, data_id)

    def get_data_point(self, data_id: int) -> DataPoint:
        """Get a data point by id."""
        with self._transaction() as conn:
            return DataPoint.from_row(self._load_data_point(conn, data_id))

    def get_contributor_data(self, contributor: str) -> List[int]:
        """Get every data point id a contributor submitted, oldest first."""
        with self._transaction() as conn:
            return db.get_contributor_data_ids(conn, contributor)

    # ==================== VERIFICATION ====================

    def verify_data(self, caller: str, data_id: int) -> None:
        """Mark a data point verified and credit its reward (owner only)."""
        with self._lock, self._transaction(write=True) as conn:
            require_owner(caller, self.owner, "verify data")
            data = self._load_data_point(conn, data_id)
            if data["verified"]:
                raise AlreadyVerified(f"Data point {data_id} is already verified")

            db.mark_verified(conn, data_id, caller)
            db.credit_reward(conn, data["contributor"], data["reward"])

            self._emit(conn, EventType.DATA_VERIFIED, {
                "id": data_id,
                "verifier": caller
            })

        logger.info(f"Data point {data_id} verified by {caller}, {data['reward']} credited to {data['contributor']}")

    def get_reward_balance(self, contributor: str) -> int:
        """Accrued, unclaimed rewards of a contributor."""
        with self._transaction() as conn:
            return db.get_reward_balance(conn, contributor)

    # ==================== TREASURY ====================

    def fund_contract(self, caller: str, amount: int) -> ContractStats:
        """Add funds to the treasury (owner only)."""
        with self._lock, self._transaction(write=True) as conn:
            require_owner(caller, self.owner, "fund the treasury")
            if amount < 0:
                raise InvalidAmount(f"Cannot fund a negative amount ({amount})")

            db.credit_treasury(conn, amount, funding=True)
            db.add_treasury_transaction(conn, {
                "tx_type": TransactionType.DEPOSIT.value,
                "amount": amount,
                "wallet": caller,
                "description": "Treasury funding"
            })

        logger.info(f"Treasury funded with {amount} by {caller}")
        return self.get_contract_stats()

    def claim_rewards(self, caller: str) -> int:
        """
        Pay out a contributor's whole accrued balance.

        The balance is zeroed and the treasury debited in a committed
        transaction before the transfer runs, so a second claim made while
        the transfer is in flight sees nothing to claim. The write lock is
        taken before the balance is read, which also serializes claims made
        through other managers on the same database file.
        """
        with self._lock:
            with self._transaction(write=True) as conn:
                amount = db.get_reward_balance(conn, caller)
                if amount == 0:
                    raise NoRewards(f"{caller} has no rewards to claim")

                treasury_balance = db.get_state(conn)["treasury_balance"]
                if treasury_balance < amount:
                    raise InsufficientTreasury(
                        f"Treasury holds {treasury_balance}, claim needs {amount}"
                    )

                if not db.debit_all_rewards(conn, caller, amount):
                    raise NoRewards(f"{caller} has no rewards to claim")
                if not db.debit_treasury(conn, amount):
                    raise InsufficientTreasury(f"Treasury cannot cover a claim of {amount}")
                db.add_treasury_transaction(conn, {
                    "tx_type": TransactionType.PAYOUT.value,
                    "amount": amount,
                    "wallet": caller,
                    "description": f"Reward claim by {caller}"
                })

            try:
                self.transport.transfer(caller, amount)
            except Exception as e:
                logger.error(f"Transfer of {amount} to {caller} failed: {e}")
                if self.config.restore_on_transfer_failure:
                    self._restore_claim(caller, amount)
                raise TransferFailure(f"Transfer of {amount} to {caller} failed: {e}") from e

            # Funds have moved; a failed event write must not turn this into an error
            try:
                with self._transaction(write=True) as conn:
                    self._emit(conn, EventType.REWARDS_CLAIMED, {
                        "contributor": caller,
                        "amount": amount
                    })
            except sqlite3.Error as e:
                logger.error(f"Claim of {amount} by {caller} paid but RewardsClaimed event not recorded: {e}")

        logger.info(f"{caller} claimed {amount}")
        return amount

    def _restore_claim(self, caller: str, amount: int):
        """Give back a claim whose transfer failed."""
        with self._transaction(write=True) as conn:
            db.restore_rewards(conn, caller, amount)
            db.credit_treasury(conn, amount)
            db.add_treasury_transaction(conn, {
                "tx_type": TransactionType.REFUND.value,
                "amount": amount,
                "wallet": caller,
                "description": f"Failed payout to {caller} returned to ledger"
            })
        logger.warning(f"Restored {amount} to {caller} after failed transfer")

    def get_contract_stats(self) -> ContractStats:
        """Snapshot of (total data points, treasury balance, nominal pool)."""
        with self._transaction() as conn:
            state = db.get_state(conn)
        return ContractStats(
            total_data_points=state["total_data_points"],
            treasury_balance=state["treasury_balance"],
            nominal_pool=state["nominal_pool"]
        )

    def get_treasury_transactions(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent treasury transactions."""
        with self._transaction() as conn:
            return db.get_treasury_transactions(conn, limit)

    # ==================== EVENTS & LEADERBOARD ====================

    def get_events(self, limit: int = 50, event_type: Optional[EventType] = None) -> List[Dict[str, Any]]:
        """Get recent ledger events, newest first."""
        with self._transaction() as conn:
            return db.get_events(conn, limit, event_type.value if event_type else None)

    def get_top_contributors(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get top contributors by rewards earned."""
        with self._transaction() as conn:
            return db.get_top_contributors(conn, limit)


# Singleton instance
_ledger_manager: Optional[LedgerManager] = None


def get_ledger_manager() -> LedgerManager:
    """Get the singleton ledger manager instance."""
    global _ledger_manager
    if _ledger_manager is None:
        _ledger_manager = LedgerManager(LedgerConfig.from_env())
    return _ledger_manager
