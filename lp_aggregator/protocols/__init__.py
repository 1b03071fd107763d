"""DEX protocol adapters."""
