"""Protocol interfaces for the LP position aggregator."""
from .chain import ChainClient, TokenMetadata
from .position_fetcher import PositionFetcher
from .price_oracle import PriceOracle

__all__ = ["ChainClient", "PositionFetcher", "PriceOracle", "TokenMetadata"]
