"""
Payout Transport - Contribution Ledger

The funds-movement step of a claim. The ledger only calls
`transfer(recipient, amount)`; anything that moves real funds (a chain RPC,
a payments API) implements the same method and raises on failure.
"""

from abc import ABC, abstractmethod
import logging
import threading
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)


class PayoutTransport(ABC):
    """Interface for moving claimed rewards to a contributor."""

    @abstractmethod
    def transfer(self, recipient: str, amount: int) -> None:
        """Move `amount` to `recipient`; raise on failure."""


class InMemoryPayoutTransport(PayoutTransport):
    """
    Keeps paid-out funds in an in-memory wallet book.

    This is a mocked implementation - nothing leaves the process.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.wallets: Dict[str, int] = {}
        self.history: List[Tuple[str, int]] = []

    def transfer(self, recipient: str, amount: int) -> None:
        with self._lock:
            self.wallets[recipient] = self.wallets.get(recipient, 0) + amount
            self.history.append((recipient, amount))
        logger.info(f"Transferred {amount} to {recipient}")

    def balance_of(self, recipient: str) -> int:
        return self.wallets.get(recipient, 0)
