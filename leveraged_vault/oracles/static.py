"""Fixed price table oracle for simulations and tests."""
from __future__ import annotations

from ..errors import OraclePriceUnavailable


class StaticPriceOracle:
    """Serve prices from a mutable in-memory table."""

    def __init__(self, prices: dict[str, int] | None = None) -> None:
        self._prices = dict(prices or {})

    def set_price(self, asset: str, price: int) -> None:
        self._prices[asset] = price

    async def get_price(self, asset: str) -> int:
        price = self._prices.get(asset, 0)
        if price <= 0:
            raise OraclePriceUnavailable(f"No price for {asset}")
        return price
