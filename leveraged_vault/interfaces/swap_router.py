"""Swap router protocol — converts one asset into another."""
from typing import Protocol


class SwapRouter(Protocol):
    """Abstract interface for swapping harvested proceeds."""

    async def swap(
        self, asset_in: str, asset_out: str, amount_in: int, account: str
    ) -> int: ...
