"""Integration tests for the EVM client: RPC fallback and token metadata."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from eth_abi import encode

from lp_aggregator.chains.evm.client import (
    DECIMALS_SELECTOR,
    SYMBOL_SELECTOR,
    EvmClient,
    decode_decimals,
    decode_symbol,
)
from lp_aggregator.config import ChainConfig

SESSION = "lp_aggregator.chains.evm.client.aiohttp.ClientSession"
CONNECTOR = "lp_aggregator.chains.evm.client.aiohttp.TCPConnector"
WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"


@pytest.fixture()
def client() -> EvmClient:
    return EvmClient(
        1,
        ChainConfig(
            rpc_endpoints=(
                "https://rpc1.example.com",
                "https://rpc2.example.com",
                "https://rpc3.example.com",
            ),
            rpc_timeout=5,
        ),
    )


def _mock_session(response_data: dict | None = None, error: Exception | None = None):
    """Create a mock aiohttp session that returns given data or raises error."""
    mock_response = AsyncMock()
    mock_response.json = AsyncMock(return_value=response_data or {})
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if error:
        mock_session.post = MagicMock(side_effect=error)
    else:
        mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    return mock_session


def _hex(data: bytes) -> str:
    return "0x" + data.hex()


class TestRpcCall:
    @pytest.mark.asyncio
    async def test_successful_call(self, client: EvmClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": "0x1"})

        with patch(SESSION, return_value=mock_session):
            with patch(CONNECTOR):
                result = await client.rpc_call("eth_blockNumber", [])

        assert result == "0x1"

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self, client: EvmClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "error": {"code": -32000, "message": "bad"}}
        )

        with patch(SESSION, return_value=mock_session):
            with patch(CONNECTOR):
                with pytest.raises(RuntimeError, match="All RPC endpoints failed"):
                    await client.rpc_call("eth_call", [])

    @pytest.mark.asyncio
    async def test_fallback_on_connection_error(self, client: EvmClient) -> None:
        """When the first endpoint fails, the next one is tried and remembered."""
        call_count = 0

        success_response = AsyncMock()
        success_response.json = AsyncMock(return_value={"jsonrpc": "2.0", "result": "0x2"})
        success_response.__aenter__ = AsyncMock(return_value=success_response)
        success_response.__aexit__ = AsyncMock(return_value=None)

        def side_effect(*args, **kwargs):
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise ConnectionError("first endpoint down")
            return success_response

        mock_session = AsyncMock()
        mock_session.post = MagicMock(side_effect=side_effect)
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=None)

        with patch(SESSION, return_value=mock_session):
            with patch(CONNECTOR):
                result = await client.rpc_call("eth_blockNumber", [])

        assert result == "0x2"
        assert client.current_rpc_index == 1

    @pytest.mark.asyncio
    async def test_no_endpoints(self) -> None:
        client = EvmClient(56, ChainConfig())
        with pytest.raises(RuntimeError, match="No RPC endpoints"):
            await client.rpc_call("eth_blockNumber", [])


class TestDecoding:
    def test_decode_string_symbol(self) -> None:
        assert decode_symbol(encode(["string"], ["WETH"])) == "WETH"

    def test_decode_bytes32_symbol(self) -> None:
        assert decode_symbol(b"MKR".ljust(32, b"\x00")) == "MKR"

    def test_decode_decimals(self) -> None:
        assert decode_decimals(encode(["uint8"], [6])) == 6


class TestGetTokenMetadata:
    @pytest.mark.asyncio
    async def test_resolves_and_memoises(self, client: EvmClient) -> None:
        responses = {
            SYMBOL_SELECTOR: _hex(encode(["string"], ["WETH"])),
            DECIMALS_SELECTOR: _hex(encode(["uint8"], [18])),
        }

        async def fake_rpc(method, params):
            assert method == "eth_call"
            assert params[0]["to"] == WETH
            return responses[params[0]["data"]]

        client.rpc_call = AsyncMock(side_effect=fake_rpc)  # type: ignore[method-assign]

        metadata = await client.get_token_metadata(WETH.upper().replace("0X", "0x"))
        again = await client.get_token_metadata(WETH)

        assert metadata.symbol == "WETH"
        assert metadata.decimals == 18
        assert again == metadata
        assert client.rpc_call.await_count == 2

    @pytest.mark.asyncio
    async def test_native_token_needs_no_rpc(self) -> None:
        client = EvmClient(56, ChainConfig(rpc_endpoints=("https://bsc.example.com",)))
        client.rpc_call = AsyncMock()  # type: ignore[method-assign]

        metadata = await client.get_token_metadata("0x" + "0" * 40)

        assert metadata == ("BNB", 18)
        client.rpc_call.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_eth_call_result_raises(self, client: EvmClient) -> None:
        client.rpc_call = AsyncMock(return_value=None)  # type: ignore[method-assign]
        with pytest.raises(RuntimeError, match="Unexpected eth_call result"):
            await client.get_token_metadata(WETH)
