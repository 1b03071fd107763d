"""Price oracle protocol: USD pricing by token address."""
from typing import Iterable, Protocol


class PriceOracle(Protocol):
    """Abstract interface for fetching token prices; never raises."""

    async def get_token_prices(
        self, addresses: Iterable[str], chain_id: int
    ) -> dict[str, float]: ...
