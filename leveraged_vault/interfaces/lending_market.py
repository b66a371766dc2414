"""Lending market protocol — collateral supply and borrowing abstraction."""
from typing import Protocol

from ..models import AccountPosition, ReserveStatus


class LendingMarket(Protocol):
    """Abstract interface for a collateralised lending market.

    Amounts are token base units; account totals are reference units.
    """

    async def supply(self, asset: str, amount: int, account: str) -> None: ...

    async def withdraw(self, asset: str, amount: int, account: str, to: str) -> int: ...

    async def borrow(self, asset: str, amount: int, account: str, to: str) -> None: ...

    async def repay(self, asset: str, amount: int, account: str) -> int: ...

    async def get_account_position(self, account: str) -> AccountPosition: ...

    async def get_reserve_status(self, asset: str) -> ReserveStatus: ...

    async def receipt_balance(self, asset: str, account: str) -> int: ...

    async def debt_balance(self, asset: str, account: str) -> int: ...
