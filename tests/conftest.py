"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from lp_aggregator.config import (
    AppConfig,
    ChainConfig,
    PositionsConfig,
    PricingConfig,
)
from lp_aggregator.models import AssetLeg, Position

WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
ZERO_WALLET = "0x0000000000000000000000000000000000000000"


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_pricing_config() -> PricingConfig:
    return PricingConfig(
        api_key="test-api-key",
        base_url="https://cmc.example.com",
        timeout=10,
        cache_ttl_seconds=60,
    )


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        name="Ethereum",
        subgraph_url="https://subgraph.example.com/eth",
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_positions_config() -> PositionsConfig:
    return PositionsConfig(fee_estimate_pct=1.0, page_size=100, timeout=10)


@pytest.fixture()
def sample_app_config(
    sample_pricing_config: PricingConfig,
    sample_chain_config: ChainConfig,
    sample_positions_config: PositionsConfig,
) -> AppConfig:
    return AppConfig(
        pricing=sample_pricing_config,
        positions=sample_positions_config,
        chains={1: sample_chain_config},
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


def make_position(
    token_id: str = "1", chain_id: int = 1, fees_usd: float = 90.0
) -> Position:
    return Position(
        token_id=token_id,
        chain_id=chain_id,
        chain_name="Ethereum" if chain_id == 1 else "Base",
        pool_address="0xc02a...6cc2/0xa0b8...eb48",
        token0=AssetLeg(
            token_address=WETH, symbol="WETH", amount="1.5", decimals=18, usd_value=0.0
        ),
        token1=AssetLeg(
            token_address=USDC, symbol="USDC", amount="4500.0", decimals=6, usd_value=0.0
        ),
        liquidity="1000000",
        tick_lower=-887220,
        tick_upper=887220,
        fees_usd=fees_usd,
        total_value_usd=0.0,
    )


@pytest.fixture()
def sample_position() -> Position:
    return make_position()


@pytest.fixture()
def position_factory():
    return make_position


@pytest.fixture()
def sample_prices() -> dict[str, float]:
    return {WETH: 3000.0, USDC: 1.0}


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    pricing:
      provider: coinmarketcap
      coinmarketcap:
        api_key: "cmc-key"
        base_url: "https://cmc.example.com"
        timeout: 5
        cache_ttl_seconds: 30
    positions:
      fee_estimate_pct: 1.0
      page_size: 50
      timeout: 7
    chains:
      1:
        name: Ethereum
        subgraph_url: "https://subgraph.example.com/eth"
        rpc_endpoints: ["https://rpc.example.com"]
        rpc_timeout: 10
      8453:
        subgraph_url: "https://subgraph.example.com/base"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample subgraph data
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_position_record() -> dict:
    return {
        "id": "0x01",
        "tokenId": "12345",
        "liquidity": "3000000000000000000",
        "tickLower": "-887220",
        "tickUpper": "887220",
        "pool": {
            "id": "0xpool",
            "token0": {
                "id": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
                "symbol": "WETH",
                "decimals": "18",
            },
            "token1": {"id": USDC, "symbol": "USDC", "decimals": "6"},
        },
    }
