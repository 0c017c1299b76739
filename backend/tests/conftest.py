import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────────────
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from ledger import LedgerConfig, LedgerManager, InMemoryPayoutTransport  # noqa: E402

OWNER = "0xOwner000000000000000000000000000000000001"


@pytest.fixture
def config(tmp_path):
    return LedgerConfig(owner=OWNER, db_path=str(tmp_path / "ledger.db"))


@pytest.fixture
def transport():
    return InMemoryPayoutTransport()


@pytest.fixture
def manager(config, transport):
    return LedgerManager(config, transport)
