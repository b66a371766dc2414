"""Price oracle protocol — price feed abstraction."""
from typing import Protocol


class PriceOracle(Protocol):
    """Abstract interface for fetching asset prices.

    Prices are reference units (8 decimals) per whole asset and must never be
    zero: adapters raise ``OraclePriceUnavailable`` instead.
    """

    async def get_price(self, asset: str) -> int: ...
