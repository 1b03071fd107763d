"""Service modules"""
from .aggregator import PositionAggregator, validate_chain_id, validate_wallet_address

__all__ = ["PositionAggregator", "validate_chain_id", "validate_wallet_address"]
