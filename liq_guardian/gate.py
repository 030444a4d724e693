"""Alert Gate - decides whether an account's current tier should alert now.

The gate reads prior state, asks its policy for a verdict and hands back an
AlertDecision carrying the state to persist. Writing is a separate step
(``commit``) so that state is only recorded once the alert actually went out.

Two policies are available:

* ``PeriodGatePolicy``: each tier alerts at most once per account per UTC day.
  Only escalation into a tier not yet alerted today fires again.
* ``CooldownGatePolicy``: any rise above the recorded tier alerts
  immediately (including a bounce back after recovery). Staying in the same
  tier alerts again only after the cooldown has elapsed. Improvement is
  recorded silently.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from .config import Settings
from .health import health_account_pct
from .models import AccountSnapshot, AlertDecision
from .state_store import StateStore
from .tiers import NO_ALERT, TIER_SCHEMES, TierTable

logger = logging.getLogger(__name__)

PERIOD_SECONDS = 24 * 60 * 60

Verdict = Tuple[bool, Optional[Dict[str, Any]]]


def _as_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


class GatePolicy:
    """Strategy interface for alert gating."""

    # Whether tier 0 evaluations still need to read/write state
    tracks_recovery = False

    def state_key(self, address: str, now: datetime) -> str:
        raise NotImplementedError

    def decide(self, tier: int, state: Optional[Dict[str, Any]], now: datetime) -> Verdict:
        """Return (emit, next_state); next_state None means nothing to persist."""
        raise NotImplementedError

    @property
    def ttl_seconds(self) -> int:
        raise NotImplementedError


class PeriodGatePolicy(GatePolicy):
    """At most one alert per (account, tier, UTC day)."""

    def __init__(self, ttl_seconds: int = 60 * 60 * 26):
        # Expiry shorter than the period would let a tier re-alert the same day
        self._ttl_seconds = max(int(ttl_seconds), PERIOD_SECONDS)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def state_key(self, address: str, now: datetime) -> str:
        return f"acct:{address}:{now.date().isoformat()}"

    def decide(self, tier: int, state: Optional[Dict[str, Any]], now: datetime) -> Verdict:
        if tier <= NO_ALERT:
            return False, None

        sent = {}
        if state and isinstance(state.get("sent"), dict):
            sent = dict(state["sent"])

        if sent.get(str(tier)):
            return False, None

        sent[str(tier)] = True
        return True, {"sent": sent}


class CooldownGatePolicy(GatePolicy):
    """Escalation alerts at once; a repeated tier waits out the cooldown."""

    tracks_recovery = True

    def __init__(self, cooldown: timedelta = timedelta(minutes=30), ttl_seconds: int = 60 * 60 * 26):
        self.cooldown = cooldown
        self._ttl_seconds = max(int(ttl_seconds), int(cooldown.total_seconds()))

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def state_key(self, address: str, now: datetime) -> str:
        return f"acct:{address}"

    @staticmethod
    def _parse_state(state: Optional[Dict[str, Any]]) -> Tuple[int, Dict[str, str]]:
        if not state:
            return NO_ALERT, {}
        try:
            last_tier = int(state.get("last_tier", NO_ALERT))
        except (TypeError, ValueError):
            last_tier = NO_ALERT
        stamps = state.get("last_alert_at")
        return last_tier, dict(stamps) if isinstance(stamps, dict) else {}

    def _alerted_within_cooldown(self, stamps: Dict[str, str], tier: int, now: datetime) -> bool:
        raw = stamps.get(str(tier))
        if not raw:
            return False
        try:
            last = _as_utc(datetime.fromisoformat(raw))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unparseable alert timestamp for tier {tier}: {raw!r}")
            return False
        return (now - last) <= self.cooldown

    def decide(self, tier: int, state: Optional[Dict[str, Any]], now: datetime) -> Verdict:
        last_tier, stamps = self._parse_state(state)

        if tier < last_tier:
            # Health improved: remember it, stay quiet
            return False, {"last_tier": tier, "last_alert_at": stamps}

        if tier <= NO_ALERT:
            return False, None

        # Escalation from the recorded tier is never delayed
        if tier == last_tier and self._alerted_within_cooldown(stamps, tier, now):
            return False, None

        stamps[str(tier)] = now.isoformat()
        return True, {"last_tier": tier, "last_alert_at": stamps}


class AlertGate:
    """Gates near-liquidation alerts per account using a GatePolicy."""

    def __init__(self, policy: GatePolicy, tier_table: TierTable, store: StateStore):
        self.policy = policy
        self.tier_table = tier_table
        self.store = store

    def evaluate(
        self,
        address: str,
        account_index: int,
        snapshot: AccountSnapshot,
        now: Optional[datetime] = None,
    ) -> Optional[AlertDecision]:
        """Evaluate one account. Returns None when the account has no usable equity."""
        now = _as_utc(now)

        balance = snapshot.account_value
        if not math.isfinite(balance) or balance <= 0:
            logger.debug(f"Account {account_index} ({address}): no equity, skipping")
            return None

        health = health_account_pct(balance, snapshot.maintenance_margin_used, snapshot.unrealized_pnl)
        tier = self.tier_table.tier_for(health)

        decision = AlertDecision(
            emit=False,
            tier=tier,
            account_index=account_index,
            address=address,
            health_pct=health,
            leverage=snapshot.cross_leverage,
            max_tier=self.tier_table.max_tier,
            threshold_text=self.tier_table.threshold_text(tier),
        )

        if tier == NO_ALERT and not self.policy.tracks_recovery:
            return decision

        key = self.policy.state_key(address, now)
        try:
            state = self.store.get(key)
        except Exception as e:
            logger.warning(f"State read failed for {key}, assuming no prior alerts: {e}")
            state = None

        emit, next_state = self.policy.decide(tier, state, now)
        decision.emit = emit
        decision.state_key = key
        decision.next_state = next_state
        decision.ttl_seconds = self.policy.ttl_seconds

        if emit:
            logger.info(f"Account {account_index} ({address}): tier {tier} alert due (health {health})")
        elif tier > NO_ALERT:
            logger.debug(f"Account {account_index} ({address}): tier {tier} suppressed")
        return decision

    def commit(self, decision: AlertDecision) -> None:
        """Persist the state carried by a decision."""
        if decision.next_state is None or decision.state_key is None:
            return
        try:
            self.store.put(decision.state_key, decision.next_state, decision.ttl_seconds)
        except Exception as e:
            logger.error(f"Failed to persist gate state {decision.state_key}: {e}")


def build_gate(config: Settings, store: StateStore) -> AlertGate:
    """Assemble the gate selected by configuration."""
    tier_table = TIER_SCHEMES[config.tier_scheme]
    if config.gating_policy == "cooldown":
        policy: GatePolicy = CooldownGatePolicy(
            cooldown=timedelta(minutes=config.alert_cooldown_minutes),
            ttl_seconds=config.state_ttl_seconds,
        )
    else:
        policy = PeriodGatePolicy(ttl_seconds=config.state_ttl_seconds)
    return AlertGate(policy, tier_table, store)
