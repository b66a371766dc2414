"""Yield target protocol — proportional-share vault over the borrowed asset."""
from typing import Protocol


class YieldTarget(Protocol):
    """Abstract interface for the secondary yield source."""

    async def deposit(self, assets: int, account: str) -> int: ...

    async def withdraw(self, assets: int, account: str) -> int: ...

    async def redeem(self, shares: int, account: str) -> int: ...

    async def balance_of(self, account: str) -> int: ...

    async def convert_to_assets(self, shares: int) -> int: ...

    async def preview_withdraw(self, assets: int) -> int: ...
