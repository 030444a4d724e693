"""Text rendering for Telegram reports and alerts (HTML parse mode)."""

import math
import re
from typing import List, Optional, Sequence, Tuple

from .classifier import classify_positions
from .health import health_account_pct, health_pos_pct, position_leverage
from .models import AccountSnapshot, AlertDecision, MarketContext, PositionRecord

SEP = "────────────────────────────────────────────────────"
TELEGRAM_CHUNK_LIMIT = 3800


def _usable(x: Optional[float]) -> bool:
    return x is not None and math.isfinite(x)


def fmt_pct(x: Optional[float]) -> str:
    return f"{x:.2f}%" if _usable(x) else "?"


def fmt_x(x: Optional[float]) -> str:
    return f"{x:.2f}x" if _usable(x) else "?"


def fmt_signed_pct_per_hour(x: Optional[float]) -> str:
    """Hourly funding as a signed percentage, e.g. 0.0002 -> +0.0200%/h."""
    if not _usable(x):
        return "?"
    pct = x * 100
    sign = "+" if pct > 0 else ""
    return f"{sign}{pct:.4f}%/h"


def account_title(index: int, address: str) -> str:
    return f"<b>Account {index}</b>\n🔑 Address: <code>{address}</code>"


def render_position_lines(position: PositionRecord, market: MarketContext) -> List[str]:
    """Coin, leverage, funding and health lines for one isolated position."""
    leverage = position_leverage(position.entry_price, position.liquidation_price, position.side)
    if leverage is None:
        leverage = position.leverage_hint

    mark = market.marks.get(position.coin)
    health = None
    if mark is not None and position.liquidation_price is not None:
        health = health_pos_pct(mark, position.liquidation_price, position.entry_price, position.side)

    return [
        f"🪙 {position.coin}",
        f"📈 Leverage: {f'{math.floor(leverage + 0.5)}x' if _usable(leverage) and leverage > 0 else '?'}",
        f"🔁 Funding: {fmt_signed_pct_per_hour(market.funding.get(position.coin))}",
        f"❤️ Health: {fmt_pct(health)}",
    ]


def render_account_block(
    index: int,
    address: str,
    snapshot: Optional[AccountSnapshot],
    market: MarketContext,
) -> str:
    title = account_title(index, address)
    if snapshot is None:
        return f"{title}\n\n( no data )"

    cross_used = snapshot.has_cross_exposure

    cross_block = ["🔷 <b>Cross</b>", ""]
    if not cross_used:
        cross_block.append("( no cross exposure )")
    else:
        health = health_account_pct(
            snapshot.account_value, snapshot.maintenance_margin_used, snapshot.unrealized_pnl
        )
        cross_block += [
            f"📈 Leverage: {fmt_x(snapshot.cross_leverage)}",
            f"❤️ Health: {fmt_pct(health)}",
        ]

    _, isolated = classify_positions(snapshot.positions, cross_used)
    iso_block = ["🟨 <b>Isolated</b>", ""]
    if not isolated:
        iso_block.append("( no open positions )")
    else:
        for pos in isolated:
            iso_block += render_position_lines(pos, market)
            iso_block.append("")
        iso_block.pop()

    text = "\n".join([title, "", *cross_block, "", *iso_block])
    return re.sub(r"\n\n\n+", "\n\n", text)


def build_report(
    header: str,
    accounts: Sequence[Tuple[int, str, Optional[AccountSnapshot]]],
    market: MarketContext,
) -> str:
    """Join per-account blocks under a header, separated by SEP lines."""
    lines = [header]
    for i, (index, address, snapshot) in enumerate(accounts):
        lines.append(render_account_block(index, address, snapshot, market))
        if i < len(accounts) - 1:
            lines.append(SEP)
    return "\n".join(lines)


def chunk_message(text: str, limit: int = TELEGRAM_CHUNK_LIMIT) -> List[str]:
    """Split text on line boundaries into chunks no longer than ``limit``.

    A single line longer than the limit is hard-split into pieces of ``limit``.
    """
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        if current and len(current) + len(line) + 1 > limit:
            chunks.append(current)
            current = ""
        current = f"{current}\n{line}" if current else line
    if current:
        chunks.append(current)
    return chunks


def format_near_liquidation(decision: AlertDecision) -> str:
    return "\n".join([
        f"⚠️ <b>Near Liquidation</b> — Level {decision.tier}/{decision.max_tier} ({decision.threshold_text})",
        account_title(decision.account_index, decision.address),
        "",
        f"📈 Leverage: {fmt_x(decision.leverage)}",
        f"❤️ Health: {fmt_pct(decision.health_pct)}",
    ])


def format_near_liquidation_sms(decision: AlertDecision) -> str:
    """Plain-text variant for SMS (no HTML)."""
    return (
        f"Near liquidation: account {decision.account_index} ({decision.address[:10]}...) "
        f"level {decision.tier}/{decision.max_tier}, health {fmt_pct(decision.health_pct)}, "
        f"leverage {fmt_x(decision.leverage)}"
    )
