"""Tests for the alert gate and its two policies."""

import math
from datetime import timedelta

import pytest
from conftest import MemoryStateStore, snapshot_for_health, utc

from liq_guardian.config import Settings
from liq_guardian.gate import AlertGate, CooldownGatePolicy, PeriodGatePolicy, build_gate
from liq_guardian.models import AccountSnapshot
from liq_guardian.tiers import FOUR_TIER, THREE_TIER

ADDR = "0x" + "ab" * 20


def _run(gate, health, now, deliver=True):
    """Evaluate and, like the monitor, commit only what was delivered."""
    decision = gate.evaluate(ADDR, 1, snapshot_for_health(health), now)
    if decision is not None and (not decision.emit or deliver):
        gate.commit(decision)
    return decision


class TestPeriodPolicy:

    def setup_method(self):
        self.store = MemoryStateStore()
        self.gate = AlertGate(PeriodGatePolicy(), FOUR_TIER, self.store)

    def test_same_tier_once_then_escalation(self):
        day = utc(2025, 3, 1, 10, 0)
        emitted = [
            _run(self.gate, 15.0, day).emit,
            _run(self.gate, 15.0, day + timedelta(minutes=1)).emit,
            _run(self.gate, 3.0, day + timedelta(minutes=2)).emit,
        ]
        assert emitted == [True, False, True]

    def test_same_tier_on_two_days_alerts_twice(self):
        first = _run(self.gate, 15.0, utc(2025, 3, 1, 23, 59))
        second = _run(self.gate, 15.0, utc(2025, 3, 2, 0, 1))
        assert first.emit and second.emit
        assert first.state_key != second.state_key

    def test_de_escalation_and_return_does_not_realert(self):
        day = utc(2025, 3, 1, 8, 0)
        assert _run(self.gate, 3.0, day).emit
        assert not _run(self.gate, 80.0, day + timedelta(minutes=1)).emit
        assert not _run(self.gate, 3.0, day + timedelta(minutes=2)).emit

    def test_lower_tier_after_higher_still_alerts_once(self):
        day = utc(2025, 3, 1, 8, 0)
        assert _run(self.gate, 3.0, day).emit
        assert _run(self.gate, 15.0, day + timedelta(minutes=1)).emit
        assert not _run(self.gate, 15.0, day + timedelta(minutes=2)).emit

    def test_tier_zero_never_alerts_and_touches_no_state(self):
        decision = _run(self.gate, 75.0, utc(2025, 3, 1))
        assert decision.tier == 0
        assert not decision.emit
        assert self.store.data == {}

    def test_state_key_and_ttl(self):
        decision = _run(self.gate, 0.0, utc(2025, 3, 1, 12))
        key = f"acct:{ADDR}:2025-03-01"
        assert decision.state_key == key
        assert self.store.data[key] == {"sent": {"4": True}}
        assert self.store.ttls[key] == 60 * 60 * 26

    def test_ttl_never_shorter_than_period(self):
        assert PeriodGatePolicy(ttl_seconds=60).ttl_seconds == 24 * 60 * 60

    def test_undelivered_alert_fires_again(self):
        day = utc(2025, 3, 1, 8, 0)
        assert _run(self.gate, 15.0, day, deliver=False).emit
        assert self.store.data == {}
        assert _run(self.gate, 15.0, day + timedelta(minutes=1)).emit

    def test_store_failure_fails_open(self):
        self.store.fail = True
        day = utc(2025, 3, 1, 8, 0)
        assert _run(self.gate, 15.0, day).emit
        assert _run(self.gate, 15.0, day + timedelta(minutes=1)).emit

    def test_garbage_state_is_cold_start(self):
        self.store.data[f"acct:{ADDR}:2025-03-01"] = {"sent": "nope"}
        assert _run(self.gate, 15.0, utc(2025, 3, 1, 9)).emit


class TestCooldownPolicy:

    def setup_method(self):
        self.store = MemoryStateStore()
        policy = CooldownGatePolicy(cooldown=timedelta(minutes=30))
        self.gate = AlertGate(policy, THREE_TIER, self.store)
        self.t0 = utc(2025, 3, 1, 12, 0)

    def test_repeat_within_cooldown_is_suppressed(self):
        emitted = [
            _run(self.gate, 8.0, self.t0).emit,
            _run(self.gate, 8.0, self.t0 + timedelta(minutes=5)).emit,
            _run(self.gate, 8.0, self.t0 + timedelta(minutes=31)).emit,
        ]
        assert emitted == [True, False, True]

    def test_escalation_bypasses_cooldown(self):
        assert _run(self.gate, 8.0, self.t0).tier == 1
        decision = _run(self.gate, 2.0, self.t0 + timedelta(minutes=1))
        assert decision.tier == 2
        assert decision.emit

    def test_improvement_recorded_silently(self):
        _run(self.gate, 2.0, self.t0)
        decision = _run(self.gate, 8.0, self.t0 + timedelta(minutes=1))
        assert not decision.emit
        assert self.store.data[f"acct:{ADDR}"]["last_tier"] == 1

    def test_recovery_to_zero_is_recorded(self):
        _run(self.gate, 8.0, self.t0)
        decision = _run(self.gate, 60.0, self.t0 + timedelta(minutes=1))
        assert decision.tier == 0
        assert not decision.emit
        assert self.store.data[f"acct:{ADDR}"]["last_tier"] == 0

    def test_bounce_within_cooldown_realerts(self):
        assert _run(self.gate, 8.0, self.t0).emit
        assert not _run(self.gate, 60.0, self.t0 + timedelta(minutes=2)).emit
        decision = _run(self.gate, 8.0, self.t0 + timedelta(minutes=4))
        assert decision.emit
        assert decision.next_state["last_tier"] == 1
        # Cooldown restarts from the re-alert
        assert not _run(self.gate, 8.0, self.t0 + timedelta(minutes=31)).emit
        assert _run(self.gate, 8.0, self.t0 + timedelta(minutes=35)).emit

    def test_escalation_into_recently_alerted_tier(self):
        assert _run(self.gate, 2.0, self.t0).emit
        assert not _run(self.gate, 8.0, self.t0 + timedelta(minutes=1)).emit
        assert _run(self.gate, 2.0, self.t0 + timedelta(minutes=2)).emit

    def test_bounce_after_cooldown_realerts(self):
        assert _run(self.gate, 8.0, self.t0).emit
        _run(self.gate, 60.0, self.t0 + timedelta(minutes=10))
        assert _run(self.gate, 8.0, self.t0 + timedelta(minutes=45)).emit

    def test_tier_zero_cold_start_writes_nothing(self):
        decision = _run(self.gate, 60.0, self.t0)
        assert not decision.emit
        assert self.store.data == {}

    def test_only_alerted_tiers_are_timestamped(self):
        _run(self.gate, 8.0, self.t0)
        _run(self.gate, 60.0, self.t0 + timedelta(minutes=1))
        state = self.store.data[f"acct:{ADDR}"]
        assert set(state["last_alert_at"]) == {"1"}

    def test_ttl_at_least_cooldown(self):
        policy = CooldownGatePolicy(cooldown=timedelta(hours=2), ttl_seconds=60)
        assert policy.ttl_seconds == 2 * 60 * 60


class TestEvaluate:

    def setup_method(self):
        self.store = MemoryStateStore()
        self.gate = AlertGate(PeriodGatePolicy(), FOUR_TIER, self.store)

    def test_no_equity_is_skipped(self):
        for balance in (0.0, -5.0, math.nan, math.inf):
            snap = AccountSnapshot(account_value=balance, maintenance_margin_used=0.0, unrealized_pnl=0.0)
            assert self.gate.evaluate(ADDR, 1, snap, utc(2025, 3, 1)) is None

    def test_decision_payload(self):
        snap = AccountSnapshot(
            account_value=1000.0,
            maintenance_margin_used=900.0,
            unrealized_pnl=0.0,
            total_notional=5000.0,
        )
        decision = self.gate.evaluate(ADDR, 3, snap, utc(2025, 3, 1))
        assert decision.emit
        assert decision.tier == 2
        assert decision.account_index == 3
        assert decision.health_pct == pytest.approx(10.0)
        assert decision.leverage == 5.0
        assert decision.max_tier == 4
        assert decision.threshold_text == "< 20.00%"
        assert decision.to_dict()["address"] == ADDR

    def test_evaluate_does_not_write(self):
        self.gate.evaluate(ADDR, 1, snapshot_for_health(3.0), utc(2025, 3, 1))
        assert self.store.data == {}


class TestBuildGate:

    def test_defaults_to_period_four_tier(self, store):
        gate = build_gate(Settings(), store)
        assert isinstance(gate.policy, PeriodGatePolicy)
        assert gate.tier_table is FOUR_TIER

    def test_cooldown_three_tier(self, store):
        config = Settings(gating_policy="cooldown", tier_scheme="three_tier", alert_cooldown_minutes=45)
        gate = build_gate(config, store)
        assert isinstance(gate.policy, CooldownGatePolicy)
        assert gate.policy.cooldown == timedelta(minutes=45)
        assert gate.tier_table is THREE_TIER
