"""Chain client protocol: EVM RPC abstraction."""
from typing import NamedTuple, Protocol


class TokenMetadata(NamedTuple):
    symbol: str
    decimals: int


class ChainClient(Protocol):
    """Abstract interface for on-chain token lookups."""

    async def get_token_metadata(self, token_address: str) -> TokenMetadata: ...
