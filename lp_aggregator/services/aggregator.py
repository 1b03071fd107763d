"""Multi-chain position aggregation: per-chain fan-out, pricing and folding."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace

from ..chains.evm import EvmClient
from ..config import SUPPORTED_CHAIN_IDS, AppConfig
from ..errors import AggregationError, InvalidRequestError
from ..interfaces.chain import ChainClient
from ..interfaces.position_fetcher import PositionFetcher
from ..interfaces.price_oracle import PriceOracle
from ..models import AggregationResult, ChainError, ChainOutcome, Position
from ..oracles import CoinMarketCapOracle, PriceCache
from ..protocols.uniswap_v4 import UniswapV4Adapter
from ..protocols.uniswap_v4.parser import leg_usd_value

logger = logging.getLogger(__name__)

_WALLET_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def validate_wallet_address(wallet_address: str) -> str:
    """Return the address unchanged, or raise InvalidRequestError."""
    if not isinstance(wallet_address, str) or not _WALLET_RE.match(wallet_address):
        raise InvalidRequestError("Invalid wallet address format")
    return wallet_address


def validate_chain_id(chain_id: int | str | None) -> int | None:
    """Parse an optional chain id and check it against the supported set."""
    if chain_id is None or chain_id == "":
        return None
    try:
        parsed = int(chain_id)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid chainId: {chain_id!r}") from None
    if parsed not in SUPPORTED_CHAIN_IDS:
        supported = ", ".join(str(c) for c in SUPPORTED_CHAIN_IDS)
        raise InvalidRequestError(f"Invalid chainId. Supported: {supported}")
    return parsed


class PositionAggregator:
    """Consolidates liquidity positions across chains into one priced report.

    One instance is built per process and shared by every request, so the
    price cache behind ``oracle`` is reused across invocations.
    """

    def __init__(
        self,
        fetcher: PositionFetcher,
        oracle: PriceOracle,
        supported_chain_ids: tuple[int, ...] = SUPPORTED_CHAIN_IDS,
    ) -> None:
        self._fetcher = fetcher
        self._oracle = oracle
        self._supported_chain_ids = tuple(supported_chain_ids)

    @property
    def oracle(self) -> PriceOracle:
        return self._oracle

    @classmethod
    def from_config(cls, config: AppConfig) -> PositionAggregator:
        """Build the full object graph: RPC clients, shared price cache, fetcher."""
        chain_clients: dict[int, ChainClient] = {}
        for chain_id, chain_cfg in config.chains.items():
            if chain_cfg.rpc_endpoints:
                chain_clients[chain_id] = EvmClient(chain_id, chain_cfg)
            else:
                logger.debug("No RPC endpoints for chain %s", chain_id)

        cache = PriceCache(ttl_ms=config.pricing.cache_ttl_seconds * 1000)
        oracle = CoinMarketCapOracle(config.pricing, cache)
        fetcher = UniswapV4Adapter(
            config.chains, chain_clients, config.positions, oracle=oracle
        )
        return cls(fetcher, oracle)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _resolve_chains(self, chain_id: int | None) -> tuple[int, ...]:
        if chain_id is None:
            return self._supported_chain_ids
        return (chain_id,)

    async def _fetch_chain(self, wallet_address: str, chain_id: int) -> ChainOutcome:
        """Fetch one chain, converting any failure into a tagged outcome."""
        try:
            positions = await self._fetcher.fetch_positions(wallet_address, chain_id)
        except Exception as e:
            logger.warning("Chain %s failed: %s", chain_id, e)
            return ChainOutcome(chain_id=chain_id, error=str(e) or type(e).__name__)

        logger.info("Chain %s returned %d positions", chain_id, len(positions))
        return ChainOutcome(chain_id=chain_id, positions=tuple(positions))

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def _price_chains(
        self, positions_by_chain: dict[int, list[Position]]
    ) -> dict[int, dict[str, float]]:
        """At most one pricing call per chain, run concurrently.

        Legs priced at fetch time reuse that price; only the remaining
        addresses of a chain are sent to the oracle.
        """
        prices_by_chain: dict[int, dict[str, float]] = {}
        pending: dict[int, set[str]] = {}
        for chain_id, positions in positions_by_chain.items():
            known: dict[str, float] = {}
            unpriced: set[str] = set()
            for position in positions:
                for leg in (position.token0, position.token1):
                    address = leg.token_address.lower()
                    if leg.price_usd is not None:
                        known[address] = leg.price_usd
                    else:
                        unpriced.add(address)
            prices_by_chain[chain_id] = known
            unpriced -= known.keys()
            if unpriced:
                pending[chain_id] = unpriced
            else:
                logger.debug("Chain %s fully priced at fetch time", chain_id)

        results = await asyncio.gather(
            *(self._oracle.get_token_prices(addrs, cid) for cid, addrs in pending.items())
        )
        for chain_id, fetched in zip(pending, results):
            prices_by_chain[chain_id].update(fetched)
        return prices_by_chain

    @staticmethod
    def _apply_prices(position: Position, prices: dict[str, float]) -> Position:
        token0 = replace(
            position.token0,
            usd_value=leg_usd_value(
                position.token0.amount,
                prices.get(position.token0.token_address.lower(), 0.0),
            ),
        )
        token1 = replace(
            position.token1,
            usd_value=leg_usd_value(
                position.token1.amount,
                prices.get(position.token1.token_address.lower(), 0.0),
            ),
        )
        return replace(
            position,
            token0=token0,
            token1=token1,
            total_value_usd=token0.usd_value + token1.usd_value,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_positions(
        self, wallet_address: str, chain_id: int | None = None
    ) -> AggregationResult:
        """Aggregate a wallet's positions over one chain or every supported chain.

        Chain failures are reported in ``chain_errors`` and never raise.

        Raises:
            InvalidRequestError: ``wallet_address`` is not a 20-byte hex address.
            AggregationError: an unexpected fault while pricing or folding.
        """
        validate_wallet_address(wallet_address)
        chain_ids = self._resolve_chains(chain_id)

        outcomes: list[ChainOutcome] = await asyncio.gather(
            *(self._fetch_chain(wallet_address, c) for c in chain_ids)
        )

        try:
            positions_by_chain: dict[int, list[Position]] = {}
            chain_errors: list[ChainError] = []
            for outcome in outcomes:
                if outcome.ok:
                    if outcome.positions:
                        positions_by_chain.setdefault(outcome.chain_id, []).extend(
                            outcome.positions
                        )
                else:
                    chain_errors.append(
                        ChainError(chain_id=outcome.chain_id, error=outcome.error or "")
                    )

            prices_by_chain = await self._price_chains(positions_by_chain)

            positions: list[Position] = []
            for cid, chain_positions in positions_by_chain.items():
                prices = prices_by_chain.get(cid, {})
                positions.extend(self._apply_prices(p, prices) for p in chain_positions)

            total_value = sum((p.total_value_usd for p in positions), 0.0)
            total_fees = sum((p.fees_usd for p in positions), 0.0)
        except Exception as e:
            logger.exception("Unexpected error aggregating positions for %s", wallet_address)
            raise AggregationError(f"Failed to aggregate positions: {e}") from e

        logger.info(
            "Aggregated %d positions across %d chains (%d failed): $%.2f value, $%.2f fees",
            len(positions),
            len(chain_ids),
            len(chain_errors),
            total_value,
            total_fees,
        )

        return AggregationResult(
            positions=tuple(positions),
            total_value_usd=total_value,
            total_fees_usd=total_fees,
            chain_errors=tuple(chain_errors),
            success=True,
        )
