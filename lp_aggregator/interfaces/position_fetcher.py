"""Position fetcher protocol: per-chain position discovery."""
from typing import Protocol

from ..models import Position


class PositionFetcher(Protocol):
    """Fetch the raw liquidity positions a wallet holds on one chain.

    Implementations raise ``ChainFetchError`` for chain-scoped failures and
    return an empty list when the wallet simply has no positions.
    """

    async def fetch_positions(
        self, wallet_address: str, chain_id: int
    ) -> list[Position]: ...
