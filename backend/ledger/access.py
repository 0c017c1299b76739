"""
Owner check for privileged ledger operations.
"""

import logging

from ledger.errors import Unauthorized

logger = logging.getLogger(__name__)


def require_owner(caller: str, owner: str, action: str = "") -> None:
    """Raise Unauthorized unless caller is the ledger owner."""
    if not caller or caller != owner:
        logger.warning(f"Rejected {action or 'owner-only call'} from {caller!r}")
        raise Unauthorized(f"Only the owner may {action}" if action else "")
