"""CoinMarketCap price oracle with a shared TTL cache."""
from __future__ import annotations

import logging
import ssl
from typing import Any, Iterable

import aiohttp
import certifi

from ..config import PricingConfig
from ..models import PriceEntry
from .price_cache import PriceCache

logger = logging.getLogger(__name__)

QUOTES_PATH = "/v2/cryptocurrency/quotes/latest"


def _extract_usd_quote(token_data: Any) -> tuple[str, float] | None:
    """Return ``(symbol, price)`` from one response entry, or None if malformed.

    CMC may return either a single object or a list of candidates per key.
    """
    if isinstance(token_data, list):
        token_data = token_data[0] if token_data else None
    if not isinstance(token_data, dict):
        return None

    quote = token_data.get("quote")
    usd = quote.get("USD") if isinstance(quote, dict) else None
    price = usd.get("price") if isinstance(usd, dict) else None
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None

    return token_data.get("symbol") or "UNKNOWN", float(price)


class CoinMarketCapOracle:
    """Fetch USD token prices by contract address from CoinMarketCap."""

    def __init__(self, config: PricingConfig, cache: PriceCache | None = None) -> None:
        self.api_key = config.api_key
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self.platforms = dict(config.platforms)
        self.default_platform = config.default_platform
        self._cache = (
            cache
            if cache is not None
            else PriceCache(ttl_ms=config.cache_ttl_seconds * 1000)
        )

        if not self.api_key:
            logger.warning(
                "No CoinMarketCap API key provided - prices will not be available"
            )

    def platform_for(self, chain_id: int) -> str:
        """Map a chain id to CMC's platform slug."""
        platform = self.platforms.get(chain_id)
        if platform is None:
            logger.debug(
                "No CMC platform for chain %s, using %s", chain_id, self.default_platform
            )
            return self.default_platform
        return platform

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_size(self) -> int:
        return self._cache.size()

    async def get_token_prices(
        self, addresses: Iterable[str], chain_id: int
    ) -> dict[str, float]:
        """Return ``{lowercase_address: price_usd}``; 0 means no data.

        Never raises: a missing key, a failed request or a malformed payload
        all resolve to zero prices.
        """
        normalized = list(dict.fromkeys(addr.lower() for addr in addresses))
        prices: dict[str, float] = {}

        if not normalized:
            return prices

        if not self.api_key:
            logger.warning("No API key - returning zero prices for %d tokens", len(normalized))
            return {addr: 0.0 for addr in normalized}

        misses: list[str] = []
        for address in normalized:
            cached = self._cache.lookup(address)
            if cached is not None:
                prices[address] = cached.price_usd
            else:
                misses.append(address)

        if not misses:
            logger.debug("All %d prices served from cache", len(normalized))
            return prices

        logger.info(
            "Fetching %d prices from CoinMarketCap (chainId: %s)", len(misses), chain_id
        )
        prices.update(await self._fetch_uncached(misses, chain_id))
        return prices

    async def _fetch_uncached(self, misses: list[str], chain_id: int) -> dict[str, float]:
        """Issue one batched quote request for every cache miss."""
        result = {addr: 0.0 for addr in misses}

        url = f"{self.base_url}{QUOTES_PATH}"
        params = {
            "address": ",".join(misses),
            "convert": "USD",
            "aux": "platform",
            "platform": self.platform_for(chain_id),
        }
        headers = {"X-CMC_PRO_API_KEY": self.api_key, "Accept": "application/json"}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url,
                    params=params,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from CoinMarketCap: HTTP %s",
                            response.status,
                        )
                        return result

                    payload = await response.json()
        except Exception as e:
            logger.error("Failed to fetch prices from CoinMarketCap: %s", e)
            return result

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            logger.error("Malformed CoinMarketCap response: missing 'data' object")
            return result

        by_address = {str(k).lower(): v for k, v in data.items()}
        fetched_at = self._cache.now()

        for address in misses:
            quote = _extract_usd_quote(by_address.get(address))
            if quote is None:
                logger.warning("No price data for %s - setting to 0", address)
                continue

            symbol, price = quote
            self._cache.store(
                address,
                PriceEntry(
                    token_address=address,
                    symbol=symbol,
                    price_usd=price,
                    fetched_at_ms=fetched_at,
                ),
            )
            result[address] = price
            logger.info("Fetched %s (%s): $%.4f", symbol, address, price)

        return result
