"""Accounting engine — proportional-share vault over the collateral asset.

Deposited assets are supplied to the lending market immediately, so managed
assets are the vault's interest-bearing receipt balance rather than a raw
token balance.
"""
from __future__ import annotations

import logging

from .errors import InsolventVault, ZeroAssets, ZeroShares
from .fixed_point import Rounding, mul_div
from .interfaces.asset import AssetToken
from .interfaces.lending_market import LendingMarket
from .ledger import ShareLedger
from .transaction import ExecutionGuard, Transaction

logger = logging.getLogger(__name__)


class AccountingEngine:
    """Share math and collateral movement for user deposits and withdrawals."""

    def __init__(
        self,
        asset: AssetToken,
        market: LendingMarket,
        ledger: ShareLedger,
        guard: ExecutionGuard,
        address: str,
    ) -> None:
        self._asset = asset
        self._market = market
        self._ledger = ledger
        self._guard = guard
        self._address = address

    @property
    def asset_symbol(self) -> str:
        return self._asset.symbol

    async def total_assets(self) -> int:
        return await self._market.receipt_balance(self._asset.symbol, self._address)

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    async def _to_shares(self, assets: int, rounding: Rounding) -> int:
        supply = self._ledger.total_supply
        if supply == 0:
            return assets
        total = await self.total_assets()
        if total == 0:
            raise InsolventVault(f"{supply} shares outstanding with no managed assets")
        return mul_div(assets, supply, total, rounding)

    async def _to_assets(self, shares: int, rounding: Rounding) -> int:
        supply = self._ledger.total_supply
        if supply == 0:
            return shares
        total = await self.total_assets()
        return mul_div(shares, total, supply, rounding)

    async def convert_to_shares(self, assets: int) -> int:
        return await self._to_shares(assets, Rounding.DOWN)

    async def convert_to_assets(self, shares: int) -> int:
        return await self._to_assets(shares, Rounding.DOWN)

    async def preview_deposit(self, assets: int) -> int:
        return await self._to_shares(assets, Rounding.DOWN)

    async def preview_mint(self, shares: int) -> int:
        return await self._to_assets(shares, Rounding.UP)

    async def preview_withdraw(self, assets: int) -> int:
        return await self._to_shares(assets, Rounding.UP)

    async def preview_redeem(self, shares: int) -> int:
        return await self._to_assets(shares, Rounding.DOWN)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def deposit(self, assets: int, receiver: str, caller: str) -> int:
        async with self._guard.enter("deposit") as tx:
            shares = await self.preview_deposit(assets)
            if shares == 0:
                raise ZeroShares(f"depositing {assets} assets mints no shares")
            await self._pull_and_supply(tx, caller, assets)
            self._ledger.mint(receiver, shares)

        logger.info(
            "Deposit: %s supplied %d %s, %s received %d shares",
            caller, assets, self._asset.symbol, receiver, shares,
        )
        return shares

    async def mint(self, shares: int, receiver: str, caller: str) -> int:
        async with self._guard.enter("mint") as tx:
            if shares == 0:
                raise ZeroShares("cannot mint zero shares")
            assets = await self.preview_mint(shares)
            await self._pull_and_supply(tx, caller, assets)
            self._ledger.mint(receiver, shares)

        logger.info(
            "Mint: %s supplied %d %s, %s received %d shares",
            caller, assets, self._asset.symbol, receiver, shares,
        )
        return assets

    async def withdraw(
        self, assets: int, receiver: str, owner: str, caller: str
    ) -> int:
        async with self._guard.enter("withdraw") as tx:
            if assets == 0:
                raise ZeroAssets("cannot withdraw zero assets")
            shares = await self.preview_withdraw(assets)
            self._burn_from(tx, owner, caller, shares)
            await self._market.withdraw(
                self._asset.symbol, assets, self._address, receiver
            )

        logger.info(
            "Withdraw: %s burned %d shares of %s, %s received %d %s",
            caller, shares, owner, receiver, assets, self._asset.symbol,
        )
        return shares

    async def redeem(
        self, shares: int, receiver: str, owner: str, caller: str
    ) -> int:
        async with self._guard.enter("redeem") as tx:
            assets = await self.preview_redeem(shares)
            if assets == 0:
                raise ZeroAssets(f"redeeming {shares} shares returns no assets")
            self._burn_from(tx, owner, caller, shares)
            await self._market.withdraw(
                self._asset.symbol, assets, self._address, receiver
            )

        logger.info(
            "Redeem: %s burned %d shares of %s, %s received %d %s",
            caller, shares, owner, receiver, assets, self._asset.symbol,
        )
        return assets

    async def _pull_and_supply(
        self, tx: Transaction, caller: str, assets: int
    ) -> None:
        # Assets are secured before any share is credited.
        symbol = self._asset.symbol
        await self._asset.transfer(caller, self._address, assets)
        tx.on_rollback(
            f"refund {assets} {symbol} to {caller}",
            self._asset.transfer, self._address, caller, assets,
        )
        await self._market.supply(symbol, assets, self._address)
        tx.on_rollback(
            f"withdraw {assets} {symbol} collateral",
            self._market.withdraw, symbol, assets, self._address, self._address,
        )

    def _burn_from(
        self, tx: Transaction, owner: str, caller: str, shares: int
    ) -> None:
        # Burn happens before the lending market releases any asset.
        if caller != owner:
            spent = self._ledger.spend_allowance(owner, caller, shares)
            if spent:
                tx.on_rollback(
                    f"restore {spent} share allowance of {caller} over {owner}",
                    self._ledger.increase_allowance, owner, caller, spent,
                )
        self._ledger.burn(owner, shares)
        tx.on_rollback(
            f"re-credit {shares} shares to {owner}", self._ledger.mint, owner, shares
        )
