"""
Ledger Errors - Contribution Ledger

Every failure is a precondition violation that aborts the whole operation.
Each error carries a short machine code used by the HTTP layer.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""
    code = "ledger_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class EmptyFingerprint(LedgerError):
    """Fingerprint must not be empty."""
    code = "empty_fingerprint"


class InvalidCategory(LedgerError):
    """Category does not exist."""
    code = "invalid_category"


class Unauthorized(LedgerError):
    """Caller is not the ledger owner."""
    code = "unauthorized"


class InvalidId(LedgerError):
    """Data point id is out of range."""
    code = "invalid_id"


class AlreadyVerified(LedgerError):
    """Data point is already verified."""
    code = "already_verified"


class DuplicateCategory(LedgerError):
    """Category already exists."""
    code = "duplicate_category"


class NoRewards(LedgerError):
    """No rewards to claim."""
    code = "no_rewards"


class InsufficientTreasury(LedgerError):
    """Treasury balance is too low for this claim."""
    code = "insufficient_treasury"


class TransferFailure(LedgerError):
    """Reward transfer failed."""
    code = "transfer_failure"


class InvalidAmount(LedgerError):
    """Amount must not be negative."""
    code = "invalid_amount"


class OwnerMismatch(LedgerError):
    """Configured owner differs from the owner stored in the ledger."""
    code = "owner_mismatch"
