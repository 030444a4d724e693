"""Position Classifier - split positions into cross and isolated groups."""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import MarginMode, PositionRecord

# Checked in order; first boolean wins.
_BOOL_FLAG_PATHS = (
    ("cross",),
    ("isCross",),
    ("risk", "cross"),
)

# Checked in order; first string wins.
_MODE_FIELD_PATHS = (
    ("marginType",),
    ("marginMode",),
    ("leverageMode",),
    ("risk", "marginType"),
)


def _lookup(raw: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    value: Any = raw
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def explicit_margin_mode(raw: Optional[Dict[str, Any]]) -> Optional[MarginMode]:
    """Margin mode stated by the payload itself, or None if it says nothing usable."""
    if not isinstance(raw, dict):
        return None

    for path in _BOOL_FLAG_PATHS:
        flag = _lookup(raw, path)
        if isinstance(flag, bool):
            return MarginMode.CROSS if flag else MarginMode.ISOLATED

    mode = None
    for path in _MODE_FIELD_PATHS:
        value = _lookup(raw, path)
        if isinstance(value, str) and value:
            mode = value.lower()
            break

    if mode == MarginMode.CROSS.value:
        return MarginMode.CROSS
    if mode == MarginMode.ISOLATED.value:
        return MarginMode.ISOLATED
    return None


def classify_position(raw: Optional[Dict[str, Any]], account_cross_used: bool) -> MarginMode:
    """Classify one raw position, falling back to the account-level cross signal."""
    mode = explicit_margin_mode(raw)
    if mode is not None:
        return mode
    return MarginMode.CROSS if account_cross_used else MarginMode.ISOLATED


def classify_positions(
    positions: Iterable[PositionRecord],
    account_cross_used: bool,
) -> Tuple[List[PositionRecord], List[PositionRecord]]:
    """Partition positions into (cross, isolated), preserving input order."""
    cross: List[PositionRecord] = []
    isolated: List[PositionRecord] = []
    for pos in positions:
        if classify_position(pos.raw, account_cross_used) == MarginMode.CROSS:
            cross.append(pos)
        else:
            isolated.append(pos)
    return cross, isolated
