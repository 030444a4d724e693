"""Data models for Liquidation Guardian."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List


class MarginMode(str, Enum):
    CROSS = "cross"
    ISOLATED = "isolated"


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


@dataclass
class PositionRecord:
    """Open position normalized from the venue's clearinghouse payload."""
    coin: str
    side: str
    signed_size: float
    entry_price: float = 0.0
    liquidation_price: Optional[float] = None
    unrealized_pnl: float = 0.0

    # Leverage the payload itself reports, if any (display fallback only)
    leverage_hint: Optional[float] = None

    # Raw position mapping; only the margin-mode cascade reads it
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class AccountSnapshot:
    """Account-level figures for one evaluation cycle."""
    account_value: float
    maintenance_margin_used: float
    unrealized_pnl: float
    total_notional: float = 0.0
    total_margin_used: float = 0.0
    positions: List[PositionRecord] = field(default_factory=list)

    @property
    def cross_leverage(self) -> Optional[float]:
        if not self.account_value > 0:
            return None
        return self.total_notional / self.account_value

    @property
    def cross_margin_ratio_pct(self) -> Optional[float]:
        if not self.account_value > 0:
            return None
        return (self.maintenance_margin_used / self.account_value) * 100

    @property
    def has_cross_exposure(self) -> bool:
        return self.maintenance_margin_used > 0


@dataclass
class MarketContext:
    """Mark prices and hourly funding rates keyed by coin."""
    marks: Dict[str, float] = field(default_factory=dict)
    funding: Dict[str, float] = field(default_factory=dict)


@dataclass
class AlertDecision:
    """Outcome of gating one account evaluation.

    ``next_state`` is the state to persist once the decision has been acted
    on; None means nothing needs writing.
    """
    emit: bool
    tier: int
    account_index: int
    address: str
    health_pct: Optional[float]
    leverage: Optional[float]
    max_tier: int
    threshold_text: str = ""

    # Pending state mutation
    state_key: Optional[str] = None
    next_state: Optional[Dict[str, Any]] = None
    ttl_seconds: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "emit": self.emit,
            "tier": self.tier,
            "account_index": self.account_index,
            "address": self.address,
            "health_pct": self.health_pct,
            "leverage": self.leverage,
        }
