"""Caption formatting for launch notifications.

Keeping formatting here keeps the core free of channel details; the core only
receives a ``render_caption`` callable.
"""

from __future__ import annotations

import html

from core.models import CanonicalToken, QualificationReason

_REASON_LABELS = {
    QualificationReason.BONDING_COMPLETED: "Bonding completed",
    QualificationReason.MARKET_CAP_THRESHOLD: "Market cap threshold crossed",
}


def format_amount(amount: float) -> str:
    """Abbreviate a dollar amount with K/M/B suffixes."""

    for divisor, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if amount >= divisor:
            return f"{amount / divisor:.2f}{suffix}"
    return f"{amount:.2f}"


def format_duration(hours: float) -> str:
    if hours < 1:
        return f"{round(hours * 60)} minutes"
    if hours < 24:
        return f"{hours:.1f} hours"
    days = int(hours // 24)
    remaining = round(hours % 24)
    if remaining == 0:
        return f"{days} days"
    return f"{days}d {remaining}h"


def format_caption(token: CanonicalToken) -> str:
    """Return the HTML caption used by the Bot API adapter."""

    name = html.escape(token.name)
    symbol = html.escape(token.symbol)
    lines = [f"<b>{name}</b> ({symbol})"]

    if token.contract_address:
        lines.append(f"<b>Contract:</b> <code>{html.escape(token.contract_address)}</code>")
    if token.market_cap:
        lines.append(f"<b>Market Cap:</b> ${format_amount(token.market_cap)}")
    if token.volume_24h:
        lines.append(f"<b>24h Volume:</b> ${format_amount(token.volume_24h)}")
    if token.total_raised:
        lines.append(f"<b>Total Raised:</b> ${format_amount(token.total_raised)}")
    if token.bonding_duration_hours:
        lines.append(f"<b>Bonding Duration:</b> {format_duration(token.bonding_duration_hours)}")

    # Sorted so the caption is stable when both reasons apply.
    reasons = [_REASON_LABELS[reason] for reason in sorted(token.qualified_by, key=lambda r: r.value)]
    if reasons:
        lines.append(f"<b>Why:</b> {', '.join(reasons)}")

    if token.url:
        safe_link = html.escape(token.url)
        lines.extend(["", f"<a href=\"{safe_link}\">View token</a>"])
    return "\n".join(lines)
