"""Boundary adapter from the venue's raw info payloads to typed models.

All "try field A, then B, then C" handling of the untyped responses lives
here; nothing past this module touches raw dictionaries except the margin
mode cascade in the classifier.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from .models import AccountSnapshot, MarketContext, PositionRecord, Side

logger = logging.getLogger(__name__)

CLOSED_SIZE_EPSILON = 1e-10


def to_float(value: Any) -> float:
    """Coerce a raw numeric field (often a string) to float; NaN when unusable."""
    if value is None or isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _finite_or(value: Any, default: float) -> float:
    number = to_float(value)
    return number if math.isfinite(number) else default


def position_from_raw(raw: Dict[str, Any]) -> Optional[PositionRecord]:
    """Normalize one ``assetPositions[].position`` entry; None when unusable."""
    if not isinstance(raw, dict):
        return None

    coin = raw.get("coin") or raw.get("asset")
    if not coin:
        return None

    size = to_float(_first(raw, "szi", "size", "positionSize", "sizeAbs"))
    if not math.isfinite(size) or abs(size) < CLOSED_SIZE_EPSILON:
        return None

    risk = raw.get("risk") if isinstance(raw.get("risk"), dict) else {}

    entry = _finite_or(_first(raw, "entryPx", "entryPrice", "avgEntryPx", "avgEntryPrice"), 0.0)

    liq_raw = raw.get("liquidationPx")
    if liq_raw is None:
        liq_raw = _first(risk, "liquidationPx", "liqPx")
    liq: Optional[float] = to_float(liq_raw)
    if not math.isfinite(liq):
        liq = None

    upnl = _finite_or(_first(raw, "unrealizedPnl", "unrealizedPnlUsd", "uPnl", "pnl"), 0.0)

    side = raw.get("side") or (Side.LONG.value if size >= 0 else Side.SHORT.value)

    leverage_hint = None
    for candidate in (raw.get("leverage"), raw.get("lev"), raw.get("x"), risk.get("leverage")):
        # leverage may arrive as {"type": "cross", "value": 20}
        if isinstance(candidate, dict):
            candidate = candidate.get("value")
        number = to_float(candidate)
        if math.isfinite(number) and number > 0:
            leverage_hint = number
            break

    return PositionRecord(
        coin=str(coin),
        side=str(side).lower(),
        signed_size=size,
        entry_price=entry,
        liquidation_price=liq,
        unrealized_pnl=upnl,
        leverage_hint=leverage_hint,
        raw=raw,
    )


def positions_from_raw(resp: Any) -> List[PositionRecord]:
    if not isinstance(resp, dict):
        return []

    positions = []
    for entry in resp.get("assetPositions") or []:
        raw = entry.get("position") if isinstance(entry, dict) else None
        record = position_from_raw(raw or {})
        if record is not None:
            positions.append(record)
    return positions


def snapshot_from_raw(resp: Any) -> AccountSnapshot:
    """Build an AccountSnapshot from a ``clearinghouseState`` response.

    Missing numbers default to 0. Unrealized PnL is summed over all asset
    positions, closed ones included.
    """
    if not isinstance(resp, dict):
        resp = {}
    summary = resp.get("marginSummary") if isinstance(resp.get("marginSummary"), dict) else {}

    upnl = 0.0
    for entry in resp.get("assetPositions") or []:
        pos = entry.get("position") if isinstance(entry, dict) else None
        if isinstance(pos, dict):
            value = to_float(pos.get("unrealizedPnl"))
            if math.isfinite(value):
                upnl += value

    return AccountSnapshot(
        account_value=to_float(summary.get("accountValue") or 0),
        maintenance_margin_used=to_float(resp.get("crossMaintenanceMarginUsed") or 0),
        unrealized_pnl=upnl,
        total_notional=to_float(summary.get("totalNtlPos") or 0),
        total_margin_used=to_float(summary.get("totalMarginUsed") or 0),
        positions=positions_from_raw(resp),
    )


def market_context_from_raw(resp: Any) -> MarketContext:
    """Parse ``metaAndAssetCtxs`` ([meta, ctxs]) into marks and funding by coin."""
    context = MarketContext()
    if not isinstance(resp, list):
        return context

    universe = []
    ctxs = []
    if resp and isinstance(resp[0], dict):
        universe = resp[0].get("universe") or []
    if len(resp) > 1 and isinstance(resp[1], list):
        ctxs = resp[1]

    for i, asset in enumerate(universe):
        name = asset.get("name") if isinstance(asset, dict) else None
        ctx = ctxs[i] if i < len(ctxs) and isinstance(ctxs[i], dict) else {}
        if not name:
            continue
        mark = to_float(ctx.get("markPx"))
        funding = to_float(ctx.get("funding"))
        if math.isfinite(mark) and mark > 0:
            context.marks[name] = mark
        if math.isfinite(funding):
            context.funding[name] = funding

    return context
