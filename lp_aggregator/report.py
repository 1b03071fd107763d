"""Human-readable rendering of an aggregation result."""
from __future__ import annotations

from datetime import datetime, timezone

from .config import SUPPORTED_CHAINS
from .models import AggregationResult, Position


def format_wallet(address: str) -> str:
    if len(address) > 16:
        return f"{address[:10]}...{address[-6:]}"
    return address


def now_str() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _format_position(position: Position) -> str:
    t0, t1 = position.token0, position.token1
    return (
        f"#{position.token_id} · {t0.symbol}/{t1.symbol}\n"
        f"  {t0.symbol}: {t0.amount} (${t0.usd_value:,.2f})\n"
        f"  {t1.symbol}: {t1.amount} (${t1.usd_value:,.2f})\n"
        f"  Range: [{position.tick_lower}, {position.tick_upper}]\n"
        f"  Value: ${position.total_value_usd:,.2f} · Fees (est.): ${position.fees_usd:,.2f}"
    )


def build_text_report(result: AggregationResult, wallet_address: str) -> str:
    """Group positions by chain, then totals, then any chain errors."""
    by_chain: dict[int, list[Position]] = {}
    for position in result.positions:
        by_chain.setdefault(position.chain_id, []).append(position)

    sections: list[str] = []
    for chain_id, positions in by_chain.items():
        name = SUPPORTED_CHAINS.get(chain_id, str(chain_id))
        header = f"━━ {name} ({chain_id}) ━━"
        sections.append(header + "\n\n" + "\n\n".join(_format_position(p) for p in positions))

    body = "\n\n".join(sections) if sections else "No active positions found."

    lines = [
        f"📊 LP positions for {format_wallet(wallet_address)}",
        "",
        body,
        "",
        f"Total value: ${result.total_value_usd:,.2f}",
        f"Total fees (est.): ${result.total_fees_usd:,.2f}",
    ]

    if result.chain_errors:
        lines.append("")
        lines.append("⚠️ Unavailable chains:")
        for err in result.chain_errors:
            name = SUPPORTED_CHAINS.get(err.chain_id, str(err.chain_id))
            lines.append(f"  {name} ({err.chain_id}): {err.error}")

    lines.extend(["", f"{now_str()} UTC"])
    return "\n".join(lines)
