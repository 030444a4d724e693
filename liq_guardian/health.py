"""Health Calculator - liquidation distance as a 0-100% score.

Both calculators are total: every input maps to a float or None, nothing
raises. None means "cannot assess" and never triggers an alert downstream.
"""

import logging
import math
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _finite(*values: Any) -> bool:
    try:
        return all(math.isfinite(v) for v in values)
    except TypeError:
        return False


def clamp_pct(x: float) -> float:
    return min(100.0, max(0.0, x))


def health_account_pct(balance: float, maintenance: float, unrealized_pnl: float) -> Optional[float]:
    """Cross-account health: (balance - maintenance) / (balance - uPnL), clamped to [0, 100].

    A non-positive PnL-adjusted base means the account is already fully at
    risk, so it scores 0 instead of dividing by it.
    """
    if not _finite(balance, maintenance, unrealized_pnl):
        return None

    denom = balance - unrealized_pnl
    if denom <= 0:
        return 0.0

    return clamp_pct(((balance - maintenance) / denom) * 100)


def _leverage_legs(mark: float, liq: float, entry: float, side: str):
    if (side or "").lower().startswith("long"):
        return mark - liq, entry - liq
    return liq - mark, liq - entry


def position_leverage(entry: float, liq: Optional[float], side: str) -> Optional[float]:
    """Effective leverage implied by entry and liquidation price."""
    if liq is None or not _finite(entry, liq) or entry <= 0 or liq <= 0:
        return None
    _, denom = _leverage_legs(0.0, liq, entry, side)
    if denom <= 0:
        return None
    return entry / denom


def health_pos_pct(mark: float, liq: float, entry: float, side: str) -> Optional[float]:
    """Isolated position health with leverage multiplier, clamped to [0, 100].

    long:  ((mark - liq) / entry) * leverage * 100, leverage = entry / (entry - liq)
    short: ((liq - mark) / entry) * leverage * 100, leverage = entry / (liq - entry)
    """
    if not _finite(mark, liq, entry):
        return None
    if mark <= 0 or entry <= 0 or liq <= 0:
        return None

    numerator, denom = _leverage_legs(mark, liq, entry, side)
    if denom <= 0:
        logger.debug(f"Liquidation price {liq} on the wrong side of entry {entry} for {side}")
        return None

    leverage = entry / denom
    return clamp_pct(100 * (numerator / entry) * leverage)
