"""Exception hierarchy for the position aggregator."""


class AggregatorError(Exception):
    """Base class for all aggregator errors."""

    code = "INTERNAL_ERROR"


class InvalidRequestError(AggregatorError):
    """Raised when a wallet address or chain id is malformed."""

    code = "INVALID_REQUEST"


class ChainFetchError(AggregatorError):
    """Raised when positions for a single chain cannot be fetched."""

    code = "CHAIN_FETCH_FAILED"

    def __init__(self, chain_id: int, message: str) -> None:
        super().__init__(message)
        self.chain_id = chain_id


class SchemaMismatchError(ChainFetchError):
    """Raised when a position-data provider returns an unexpected shape."""
    pass


class AggregationError(AggregatorError):
    """Raised for unexpected faults while folding chain results."""

    code = "INTERNAL_ERROR"
