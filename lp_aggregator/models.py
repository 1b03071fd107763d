"""Data models. All frozen."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class AssetLeg:
    """One of the two assets backing a liquidity position.

    ``price_usd`` is the unit price resolved when the position was fetched,
    or None if the fetcher had no price source. It is not serialized.
    """

    token_address: str
    symbol: str
    amount: str
    decimals: int
    usd_value: float = 0.0
    price_usd: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token_address,
            "symbol": self.symbol,
            "amount": self.amount,
            "decimals": self.decimals,
            "usdValue": self.usd_value,
        }


@dataclass(frozen=True)
class Position:
    """A single liquidity position on one chain.

    ``liquidity`` is kept as a string because raw pool liquidity routinely
    exceeds the range a float can represent exactly.
    """

    token_id: str
    chain_id: int
    pool_address: str
    token0: AssetLeg
    token1: AssetLeg
    liquidity: str
    tick_lower: int
    tick_upper: int
    fees_usd: float = 0.0
    total_value_usd: float = 0.0
    chain_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenId": self.token_id,
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "poolAddress": self.pool_address,
            "token0": self.token0.to_dict(),
            "token1": self.token1.to_dict(),
            "liquidity": self.liquidity,
            "tickLower": self.tick_lower,
            "tickUpper": self.tick_upper,
            "feesUsd": self.fees_usd,
            "totalValueUsd": self.total_value_usd,
        }


@dataclass(frozen=True)
class PriceEntry:
    """A cached USD price keyed by lowercase token address."""

    token_address: str
    symbol: str
    price_usd: float
    fetched_at_ms: int


@dataclass(frozen=True)
class ChainError:
    chain_id: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"chainId": self.chain_id, "error": self.error}


@dataclass(frozen=True)
class ChainOutcome:
    """Result of fetching one chain: either positions or an error message."""

    chain_id: int
    positions: tuple[Position, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AggregationResult:
    """Consolidated multi-chain position report."""

    positions: tuple[Position, ...] = ()
    total_value_usd: float = 0.0
    total_fees_usd: float = 0.0
    chain_errors: tuple[ChainError, ...] = ()
    success: bool = True

    def to_response(self, wallet_address: str, timestamp: str) -> dict[str, Any]:
        """Build the transport payload; ``timestamp`` is stamped by the caller."""
        return {
            "walletAddress": wallet_address,
            "positions": [p.to_dict() for p in self.positions],
            "totalValueUsd": self.total_value_usd,
            "totalFeesUsd": self.total_fees_usd,
            "timestamp": timestamp,
            "chainErrors": [e.to_dict() for e in self.chain_errors],
        }
