"""In-memory proportional-share vault over the borrowed asset."""
from __future__ import annotations

import logging

from ...errors import ProtocolCallError
from ...fixed_point import FEE_SCALE, YEAR_IN_SECONDS, Rounding, mul_div
from .token import SimulatedToken

logger = logging.getLogger(__name__)


class SimulatedYieldVault:
    """Share vault whose price rises when yield is paid into it."""

    def __init__(
        self, token: SimulatedToken, address: str = "0xYIELD", annual_yield_rate: int = 0
    ) -> None:
        self._token = token
        self.address = address
        self.annual_yield_rate = annual_yield_rate
        self.total_supply = 0
        self._shares: dict[str, int] = {}

    async def total_assets(self) -> int:
        return await self._token.balance_of(self.address)

    async def _convert(self, amount: int, to_shares: bool, rounding: Rounding) -> int:
        total = await self.total_assets()
        if self.total_supply == 0 or total == 0:
            return amount
        if to_shares:
            return mul_div(amount, self.total_supply, total, rounding)
        return mul_div(amount, total, self.total_supply, rounding)

    async def balance_of(self, account: str) -> int:
        return self._shares.get(account, 0)

    async def convert_to_assets(self, shares: int) -> int:
        return await self._convert(shares, False, Rounding.DOWN)

    async def preview_withdraw(self, assets: int) -> int:
        return await self._convert(assets, True, Rounding.UP)

    async def deposit(self, assets: int, account: str) -> int:
        shares = await self._convert(assets, True, Rounding.DOWN)
        if shares == 0:
            raise ProtocolCallError(f"Depositing {assets} mints no yield shares")
        await self._token.transfer(account, self.address, assets)
        self._mint(account, shares)
        return shares

    async def withdraw(self, assets: int, account: str) -> int:
        shares = await self.preview_withdraw(assets)
        self._burn(account, shares)
        await self._token.transfer(self.address, account, assets)
        return shares

    async def redeem(self, shares: int, account: str) -> int:
        assets = await self.convert_to_assets(shares)
        self._burn(account, shares)
        await self._token.transfer(self.address, account, assets)
        return assets

    async def accrue(self, seconds: int) -> int:
        """Pay the configured annual yield for ``seconds`` into the vault."""
        total = await self.total_assets()
        earned = mul_div(
            total * self.annual_yield_rate, seconds, FEE_SCALE * YEAR_IN_SECONDS, Rounding.DOWN
        )
        if earned:
            self.accrue_yield(earned)
        return earned

    def accrue_yield(self, amount: int) -> None:
        self._token.mint(self.address, amount)
        logger.debug("Yield vault earned %d %s", amount, self._token.symbol)

    def _mint(self, account: str, shares: int) -> None:
        self._shares[account] = self._shares.get(account, 0) + shares
        self.total_supply += shares

    def _burn(self, account: str, shares: int) -> None:
        held = self._shares.get(account, 0)
        if held < shares:
            raise ProtocolCallError(f"{account} holds {held} yield shares, needs {shares}")
        self._shares[account] = held - shares
        self.total_supply -= shares
