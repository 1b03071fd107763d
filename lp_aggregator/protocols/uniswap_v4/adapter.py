"""Uniswap v4 position fetcher: one subgraph query per chain."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import SUPPORTED_CHAINS, ChainConfig, PositionsConfig
from ...errors import ChainFetchError, SchemaMismatchError
from ...interfaces.chain import ChainClient, TokenMetadata
from ...interfaces.price_oracle import PriceOracle
from ...models import AssetLeg, Position
from . import parser

logger = logging.getLogger(__name__)

POSITIONS_QUERY = """
query Positions($owner: String!, $first: Int!, $lastId: String!) {
  positions(
    where: {owner: $owner, id_gt: $lastId}
    first: $first
    orderBy: id
    orderDirection: asc
  ) {
    id
    tokenId
    liquidity
    tickLower
    tickUpper
    pool {
      id
      token0 { id symbol decimals }
      token1 { id symbol decimals }
    }
  }
}
"""


class UniswapV4Adapter:
    """Fetch Uniswap v4 liquidity positions for a wallet, one chain at a time."""

    def __init__(
        self,
        chains: dict[int, ChainConfig],
        chain_clients: dict[int, ChainClient],
        config: PositionsConfig,
        oracle: PriceOracle | None = None,
    ) -> None:
        self._chains = chains
        self._clients = chain_clients
        self._config = config
        self._oracle = oracle

    @property
    def protocol_name(self) -> str:
        return "uniswap_v4"

    # ------------------------------------------------------------------
    # Subgraph access
    # ------------------------------------------------------------------

    async def _post_query(
        self, chain_id: int, url: str, variables: dict[str, Any]
    ) -> list[Any]:
        """Run one page of the positions query and return the raw records."""
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    url,
                    json={"query": POSITIONS_QUERY, "variables": variables},
                    timeout=aiohttp.ClientTimeout(total=self._config.timeout),
                ) as response:
                    if response.status != 200:
                        raise ChainFetchError(
                            chain_id, f"Subgraph query failed: HTTP {response.status}"
                        )
                    payload = await response.json()
        except ChainFetchError:
            raise
        except Exception as e:
            raise ChainFetchError(chain_id, f"Subgraph unreachable: {e}") from e

        if not isinstance(payload, dict):
            raise SchemaMismatchError(chain_id, "Subgraph response is not an object")
        if payload.get("errors"):
            raise SchemaMismatchError(
                chain_id, f"Subgraph returned errors: {payload['errors']}"
            )

        data = payload.get("data")
        records = data.get("positions") if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise SchemaMismatchError(chain_id, "Subgraph response has no positions list")
        return records

    async def _query_positions(
        self, chain_id: int, chain_cfg: ChainConfig, wallet_address: str
    ) -> list[Any]:
        """Fetch every position record owned by the wallet (paginated by id)."""
        records: list[Any] = []
        last_id = ""
        page_size = self._config.page_size

        while True:
            page = await self._post_query(
                chain_id,
                chain_cfg.subgraph_url,
                {"owner": wallet_address.lower(), "first": page_size, "lastId": last_id},
            )
            records.extend(page)

            if len(page) < page_size:
                break
            last_id = str(page[-1].get("id", "")) if isinstance(page[-1], dict) else ""
            if not last_id:
                break

        return records

    # ------------------------------------------------------------------
    # Metadata and valuation
    # ------------------------------------------------------------------

    async def _resolve_token(
        self, chain_id: int, token: dict[str, Any]
    ) -> TokenMetadata:
        """Fill in symbol/decimals the subgraph did not provide."""
        if token["symbol"] is not None and token["decimals"] is not None:
            return TokenMetadata(token["symbol"], token["decimals"])

        client = self._clients.get(chain_id)
        if client is None:
            raise ChainFetchError(
                chain_id, f"No RPC client to resolve metadata for {token['address']}"
            )

        try:
            onchain = await client.get_token_metadata(token["address"])
        except Exception as e:
            raise ChainFetchError(
                chain_id, f"Token metadata lookup failed for {token['address']}: {e}"
            ) from e

        return TokenMetadata(
            token["symbol"] if token["symbol"] is not None else onchain.symbol,
            token["decimals"] if token["decimals"] is not None else onchain.decimals,
        )

    async def _price_legs(
        self, chain_id: int, parsed: list[dict[str, Any]]
    ) -> dict[str, float]:
        if self._oracle is None or not parsed:
            return {}
        addresses = {p["token0"]["address"] for p in parsed}
        addresses |= {p["token1"]["address"] for p in parsed}
        return await self._oracle.get_token_prices(addresses, chain_id)

    async def _build_position(
        self,
        chain_id: int,
        parsed: dict[str, Any],
        prices: dict[str, float],
    ) -> Position:
        legs: list[AssetLeg] = []
        for key in ("token0", "token1"):
            token = parsed[key]
            metadata = await self._resolve_token(chain_id, token)
            amount = parser.split_liquidity(parsed["liquidity"], metadata.decimals)
            price = prices.get(token["address"])
            legs.append(
                AssetLeg(
                    token_address=token["address"],
                    symbol=metadata.symbol,
                    amount=amount,
                    decimals=metadata.decimals,
                    usd_value=parser.leg_usd_value(amount, price or 0.0),
                    price_usd=price,
                )
            )

        token0, token1 = legs
        total_value = token0.usd_value + token1.usd_value
        return Position(
            token_id=parsed["token_id"],
            chain_id=chain_id,
            chain_name=SUPPORTED_CHAINS[chain_id],
            pool_address=parser.format_pool_address(
                token0.token_address, token1.token_address
            ),
            token0=token0,
            token1=token1,
            liquidity=parsed["liquidity"],
            tick_lower=parsed["tick_lower"],
            tick_upper=parsed["tick_upper"],
            fees_usd=parser.estimate_fees(total_value, self._config.fee_estimate_pct),
            total_value_usd=total_value,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_positions(self, wallet_address: str, chain_id: int) -> list[Position]:
        """Fetch all positions a wallet holds on ``chain_id``.

        Raises:
            ChainFetchError: unsupported chain, unconfigured or unreachable
                subgraph, or failed metadata lookup.
            SchemaMismatchError: the subgraph response has an unexpected shape.
        """
        if chain_id not in SUPPORTED_CHAINS:
            raise ChainFetchError(chain_id, f"Unsupported chainId: {chain_id}")

        chain_cfg = self._chains.get(chain_id)
        if chain_cfg is None or not chain_cfg.subgraph_url:
            raise ChainFetchError(
                chain_id, f"No subgraph configured for chain {chain_id}"
            )

        logger.info(
            "Checking Uniswap v4 positions on %s for wallet: %s",
            SUPPORTED_CHAINS[chain_id],
            wallet_address,
        )
        records = await self._query_positions(chain_id, chain_cfg, wallet_address)
        logger.info("Found %d position records on chain %s", len(records), chain_id)

        try:
            parsed = [parser.parse_position_record(r) for r in records]
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaMismatchError(chain_id, f"Unexpected position record: {e}") from e

        prices = await self._price_legs(chain_id, parsed)

        positions: list[Position] = []
        for item in parsed:
            positions.append(await self._build_position(chain_id, item, prices))
        return positions
