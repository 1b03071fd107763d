"""Configuration loader: reads config.yaml and interpolates env vars."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Chain constants
# ---------------------------------------------------------------------------

SUPPORTED_CHAINS: dict[int, str] = {
    1: "Ethereum",
    56: "BNB Chain",
    8453: "Base",
    42161: "Arbitrum",
    1301: "Unichain",
}
SUPPORTED_CHAIN_IDS: tuple[int, ...] = tuple(SUPPORTED_CHAINS)

# CoinMarketCap platform slugs. Unichain has no listing of its own yet.
DEFAULT_PLATFORMS: dict[int, str] = {
    1: "ethereum",
    56: "binance-smart-chain",
    8453: "base",
    42161: "arbitrum-one",
    1301: "ethereum",
}
DEFAULT_PLATFORM = "ethereum"

PRICE_CACHE_TTL_MS = 60_000

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PricingConfig:
    api_key: str = ""
    base_url: str = "https://pro-api.coinmarketcap.com"
    timeout: int = 10
    cache_ttl_seconds: int = PRICE_CACHE_TTL_MS // 1000
    default_platform: str = DEFAULT_PLATFORM
    platforms: dict[int, str] = field(default_factory=lambda: dict(DEFAULT_PLATFORMS))


@dataclass(frozen=True)
class PositionsConfig:
    fee_estimate_pct: float = 1.0
    page_size: int = 100
    timeout: int = 10


@dataclass(frozen=True)
class ChainConfig:
    name: str = ""
    subgraph_url: str = ""
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 10


@dataclass(frozen=True)
class AppConfig:
    pricing: PricingConfig = field(default_factory=PricingConfig)
    positions: PositionsConfig = field(default_factory=PositionsConfig)
    chains: dict[int, ChainConfig] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_pricing(raw: dict[str, Any]) -> PricingConfig:
    cmc = raw.get("coinmarketcap", {})
    platforms = dict(DEFAULT_PLATFORMS)
    platforms.update({int(k): str(v) for k, v in cmc.get("platforms", {}).items()})
    return PricingConfig(
        api_key=cmc.get("api_key", ""),
        base_url=cmc.get("base_url", PricingConfig.base_url),
        timeout=int(cmc.get("timeout", 10)),
        cache_ttl_seconds=int(cmc.get("cache_ttl_seconds", PRICE_CACHE_TTL_MS // 1000)),
        default_platform=cmc.get("default_platform", DEFAULT_PLATFORM),
        platforms=platforms,
    )


def _build_positions(raw: dict[str, Any]) -> PositionsConfig:
    return PositionsConfig(
        fee_estimate_pct=float(raw.get("fee_estimate_pct", 1.0)),
        page_size=int(raw.get("page_size", 100)),
        timeout=int(raw.get("timeout", 10)),
    )


def _build_chains(raw: dict[Any, Any]) -> dict[int, ChainConfig]:
    chains: dict[int, ChainConfig] = {}
    for chain_id, cfg in raw.items():
        chain_id = int(chain_id)
        chains[chain_id] = ChainConfig(
            name=cfg.get("name", SUPPORTED_CHAINS.get(chain_id, "")),
            subgraph_url=cfg.get("subgraph_url", ""),
            rpc_endpoints=tuple(cfg.get("rpc_endpoints", [])),
            rpc_timeout=int(cfg.get("rpc_timeout", 10)),
        )
    return chains


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        pricing=_build_pricing(raw.get("pricing", {})),
        positions=_build_positions(raw.get("positions", {})),
        chains=_build_chains(raw.get("chains", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chains:
        raise ValueError("At least one chain must be configured")

    for chain_id, chain in cfg.chains.items():
        if chain_id not in SUPPORTED_CHAINS:
            raise ValueError(f"Unsupported chain id {chain_id} in chains section")
        if not chain.subgraph_url:
            logger.warning(
                "Chain %s (%s) has no subgraph_url; its positions will be reported as errors",
                chain_id,
                chain.name,
            )

    if cfg.positions.fee_estimate_pct < 0:
        raise ValueError("positions.fee_estimate_pct must not be negative")
    if cfg.positions.page_size <= 0:
        raise ValueError("positions.page_size must be positive")
    if cfg.pricing.cache_ttl_seconds <= 0:
        raise ValueError("pricing.coinmarketcap.cache_ttl_seconds must be positive")
