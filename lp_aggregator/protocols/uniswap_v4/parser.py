"""Pure parsing and valuation functions for Uniswap v4 positions (no I/O)."""
from __future__ import annotations

from decimal import Decimal, localcontext
from typing import Any

MIN_TICK = -887272
MAX_TICK = 887272

# uint128 liquidity divided by 10**decimals needs more than the default 28 digits.
_DECIMAL_PRECISION = 96


def _shorten(address: str) -> str:
    if len(address) > 12:
        return f"{address[:6]}...{address[-4:]}"
    return address


def format_pool_address(token0_address: str, token1_address: str) -> str:
    """Composite pool label built from both leg addresses.

    Example:
        ("0xc02aaa...6cc2", "0xa0b869...eb48") → "0xc02a...6cc2/0xa0b8...eb48"
    """
    return f"{_shorten(token0_address)}/{_shorten(token1_address)}"


def _parse_token(raw: Any, leg: str) -> dict[str, Any]:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise ValueError(f"pool.{leg} is missing or has no id")

    decimals = raw.get("decimals")
    return {
        "address": str(raw["id"]).lower(),
        "symbol": raw.get("symbol") or None,
        "decimals": int(decimals) if decimals not in (None, "") else None,
    }


def parse_tick(value: Any, name: str) -> int:
    """Parse a tick bound, accepting ints, numeric strings or ``{tickIdx}`` objects."""
    if isinstance(value, dict):
        value = value.get("tickIdx")
    if value is None or isinstance(value, bool):
        raise ValueError(f"{name} is missing")
    tick = int(value)
    if not MIN_TICK <= tick <= MAX_TICK:
        raise ValueError(f"{name} {tick} is outside [{MIN_TICK}, {MAX_TICK}]")
    return tick


def parse_liquidity(value: Any) -> str:
    """Normalise raw liquidity to a canonical non-negative integer string."""
    if value is None or isinstance(value, (bool, float)):
        raise ValueError(f"liquidity must be an integer string, got {value!r}")
    liquidity = int(str(value))
    if liquidity < 0:
        raise ValueError(f"liquidity must not be negative, got {liquidity}")
    return str(liquidity)


def parse_position_record(record: Any) -> dict[str, Any]:
    """Parse a single subgraph position record into structured data.

    Raises:
        ValueError: the record does not have the expected shape.
    """
    if not isinstance(record, dict):
        raise ValueError("position record is not an object")

    token_id = record.get("tokenId") or record.get("id")
    if not token_id:
        raise ValueError("position record has no tokenId")

    pool = record.get("pool")
    if not isinstance(pool, dict):
        raise ValueError(f"position {token_id} has no pool")

    tick_lower = parse_tick(record.get("tickLower"), "tickLower")
    tick_upper = parse_tick(record.get("tickUpper"), "tickUpper")
    if tick_lower > tick_upper:
        raise ValueError(f"position {token_id} has tickLower > tickUpper")

    return {
        "token_id": str(token_id),
        "liquidity": parse_liquidity(record.get("liquidity")),
        "tick_lower": tick_lower,
        "tick_upper": tick_upper,
        "token0": _parse_token(pool.get("token0"), "token0"),
        "token1": _parse_token(pool.get("token1"), "token1"),
    }


def split_liquidity(liquidity: str, decimals: int) -> str:
    """Approximate one leg's token amount as half the pooled liquidity.

    amount = liquidity / 2 / 10^decimals

    This ignores the tick range and current price entirely; it is a
    placeholder valuation, not tick math.
    """
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        amount = Decimal(liquidity) / 2 / (Decimal(10) ** decimals)
        return format(amount.normalize(), "f")


def leg_usd_value(amount: str, price_usd: float) -> float:
    """USD value of one leg: ``amount × price``."""
    return float(Decimal(amount) * Decimal(repr(float(price_usd))))


def estimate_fees(total_value_usd: float, fee_estimate_pct: float) -> float:
    """Flat fee estimate as a percentage of position value (never negative)."""
    return max(total_value_usd * fee_estimate_pct / 100, 0.0)
