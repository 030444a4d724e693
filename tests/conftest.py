"""Shared fixtures: an in-memory StateStore and snapshot helpers."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest

from liq_guardian.models import AccountSnapshot
from liq_guardian.state_store import StateStore


class MemoryStateStore(StateStore):
    """Dict-backed store that records TTLs; ``fail`` makes every call raise."""

    def __init__(self):
        self.data: Dict[str, Dict[str, Any]] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.fail = False

    def get(self, key):
        if self.fail:
            raise ConnectionError("store down")
        return self.data.get(key)

    def put(self, key, value, ttl_seconds=None):
        if self.fail:
            raise ConnectionError("store down")
        self.data[key] = value
        self.ttls[key] = ttl_seconds


@pytest.fixture
def store():
    return MemoryStateStore()


def snapshot_for_health(health_pct: float, balance: float = 1000.0) -> AccountSnapshot:
    """Snapshot whose cross health is exactly ``health_pct`` (uPnL = 0)."""
    maintenance = balance * (1 - health_pct / 100)
    return AccountSnapshot(
        account_value=balance,
        maintenance_margin_used=maintenance,
        unrealized_pnl=0.0,
        total_notional=balance * 3,
    )


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
