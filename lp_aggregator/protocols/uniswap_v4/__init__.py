from .adapter import UniswapV4Adapter

__all__ = ["UniswapV4Adapter"]
