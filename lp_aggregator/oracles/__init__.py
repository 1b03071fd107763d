"""Price oracle implementations."""
from .coinmarketcap import CoinMarketCapOracle
from .price_cache import PriceCache

__all__ = ["CoinMarketCapOracle", "PriceCache"]
