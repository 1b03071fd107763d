"""EVM JSON-RPC client with fallback support."""
from __future__ import annotations

import logging
import ssl
from typing import Any

import aiohttp
import certifi
from eth_abi import decode

from ...config import ChainConfig
from ...interfaces.chain import TokenMetadata

logger = logging.getLogger(__name__)

# 4-byte selectors of the ERC-20 metadata getters.
SYMBOL_SELECTOR = "0x95d89b41"
DECIMALS_SELECTOR = "0x313ce567"

NATIVE_TOKEN_ADDRESS = "0x" + "0" * 40
NATIVE_SYMBOLS: dict[int, str] = {56: "BNB"}


def decode_symbol(raw: bytes) -> str:
    """Decode an ABI ``string`` return value, tolerating legacy ``bytes32`` symbols."""
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    (symbol,) = decode(["string"], raw)
    return symbol


def decode_decimals(raw: bytes) -> int:
    (decimals,) = decode(["uint8"], raw)
    return int(decimals)


class EvmClient:
    """EVM RPC client with automatic endpoint fallback."""

    def __init__(self, chain_id: int, config: ChainConfig) -> None:
        self.chain_id = chain_id
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0
        self._metadata_cache: dict[str, TokenMetadata] = {}

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints."""
        if not self.endpoints:
            raise RuntimeError(f"No RPC endpoints configured for chain {self.chain_id}")

        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
                        if "error" in result:
                            raise RuntimeError(f"RPC Error: {result['error']}")

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result.get("result")
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise RuntimeError(f"All RPC endpoints failed. Last error: {last_error}")

    async def eth_call(self, to: str, data: str) -> bytes:
        """Execute a read-only contract call at the latest block."""
        result = await self.rpc_call("eth_call", [{"to": to, "data": data}, "latest"])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RuntimeError(f"Unexpected eth_call result: {result!r}")
        return bytes.fromhex(result[2:])

    async def get_token_metadata(self, token_address: str) -> TokenMetadata:
        """Resolve an ERC-20's symbol and decimals (memoised per address)."""
        address = token_address.lower()
        if address in self._metadata_cache:
            return self._metadata_cache[address]

        if address == NATIVE_TOKEN_ADDRESS:
            metadata = TokenMetadata(NATIVE_SYMBOLS.get(self.chain_id, "ETH"), 18)
        else:
            symbol_raw = await self.eth_call(address, SYMBOL_SELECTOR)
            decimals_raw = await self.eth_call(address, DECIMALS_SELECTOR)
            metadata = TokenMetadata(
                decode_symbol(symbol_raw), decode_decimals(decimals_raw)
            )

        self._metadata_cache[address] = metadata
        return metadata
