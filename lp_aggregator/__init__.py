"""Multi-chain liquidity position aggregator."""

__version__ = "0.1.0"
