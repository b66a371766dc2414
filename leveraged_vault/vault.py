"""Leveraged vault — the public surface over accounting, rewards and rebalancing."""
from __future__ import annotations

import logging
import time
from typing import Callable

from .accounting import AccountingEngine
from .config import AssetConfig, StrategyConfig, VaultConfig
from .controller import RebalancingController
from .errors import AssetNotEligible
from .interfaces.asset import AssetToken
from .interfaces.lending_market import LendingMarket
from .interfaces.price_oracle import PriceOracle
from .interfaces.swap_router import SwapRouter
from .interfaces.yield_target import YieldTarget
from .ledger import ShareLedger
from .models import RebalanceReport, VaultSnapshot
from .rewards import RewardAccrual
from .transaction import ExecutionGuard, VaultState

logger = logging.getLogger(__name__)


class LeveragedVault:
    """Leveraged yield vault with a permissionless rebalance trigger.

    Everything passed to the constructor is fixed for the vault's lifetime.
    Use :meth:`create` to also run the one-time reserve eligibility checks.
    """

    def __init__(
        self,
        config: VaultConfig,
        strategy: StrategyConfig,
        asset: AssetToken,
        debt_asset: AssetConfig,
        market: LendingMarket,
        oracle: PriceOracle,
        yield_target: YieldTarget,
        swap_router: SwapRouter,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = config.name
        self.symbol = config.symbol
        self.owner = config.owner
        self.address = config.address
        self.strategy = strategy
        self.collateral_asset = AssetConfig(symbol=asset.symbol, decimals=asset.decimals)
        self.debt_asset = debt_asset
        self._market = market

        self._ledger = ShareLedger()
        self._guard = ExecutionGuard()
        self._accounting = AccountingEngine(
            asset, market, self._ledger, self._guard, self.address
        )
        self._rewards = RewardAccrual(
            self._ledger, strategy.annual_fee_rate, strategy.rebalance_interval
        )
        self._controller = RebalancingController(
            strategy,
            self.collateral_asset,
            debt_asset,
            market,
            oracle,
            yield_target,
            swap_router,
            self._rewards,
            self._guard,
            self.address,
            clock,
        )

    @classmethod
    async def create(cls, *args, **kwargs) -> LeveragedVault:
        """Construct the vault and validate both lending market reserves."""
        vault = cls(*args, **kwargs)
        await vault.validate_reserves()
        return vault

    async def validate_reserves(self) -> None:
        collateral = await self._market.get_reserve_status(self.collateral_asset.symbol)
        if not collateral.is_active or not collateral.is_collateral_eligible:
            raise AssetNotEligible(
                f"{self.collateral_asset.symbol} is not an active collateral reserve"
            )
        if collateral.max_ltv < self.strategy.upper_bound_ltv:
            raise AssetNotEligible(
                f"{self.collateral_asset.symbol} max LTV {collateral.max_ltv} is below "
                f"the upper bound {self.strategy.upper_bound_ltv}"
            )

        debt = await self._market.get_reserve_status(self.debt_asset.symbol)
        if not debt.is_active or not debt.is_borrowable:
            raise AssetNotEligible(
                f"{self.debt_asset.symbol} is not an active borrowable reserve"
            )
        logger.info(
            "Reserves validated: %s collateral, %s debt",
            self.collateral_asset.symbol,
            self.debt_asset.symbol,
        )

    @property
    def state(self) -> VaultState:
        return self._guard.state

    # ------------------------------------------------------------------
    # Share token
    # ------------------------------------------------------------------

    @property
    def total_supply(self) -> int:
        return self._ledger.total_supply

    @property
    def last_rebalance_timestamp(self) -> int:
        return self._controller.last_rebalance_timestamp

    def balance_of(self, account: str) -> int:
        return self._ledger.balance_of(account)

    def allowance(self, owner: str, spender: str) -> int:
        return self._ledger.allowance(owner, spender)

    def approve(self, owner: str, spender: str, shares: int) -> None:
        self._ledger.approve(owner, spender, shares)

    def transfer(self, sender: str, recipient: str, shares: int) -> None:
        self._ledger.transfer(sender, recipient, shares)

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------

    async def total_assets(self) -> int:
        return await self._accounting.total_assets()

    async def convert_to_shares(self, assets: int) -> int:
        return await self._accounting.convert_to_shares(assets)

    async def convert_to_assets(self, shares: int) -> int:
        return await self._accounting.convert_to_assets(shares)

    async def preview_deposit(self, assets: int) -> int:
        return await self._accounting.preview_deposit(assets)

    async def preview_mint(self, shares: int) -> int:
        return await self._accounting.preview_mint(shares)

    async def preview_withdraw(self, assets: int) -> int:
        return await self._accounting.preview_withdraw(assets)

    async def preview_redeem(self, shares: int) -> int:
        return await self._accounting.preview_redeem(shares)

    async def deposit(
        self, assets: int, receiver: str, *, caller: str | None = None
    ) -> int:
        return await self._accounting.deposit(assets, receiver, caller or receiver)

    async def mint(self, shares: int, receiver: str, *, caller: str | None = None) -> int:
        return await self._accounting.mint(shares, receiver, caller or receiver)

    async def withdraw(
        self, assets: int, receiver: str, owner: str, *, caller: str | None = None
    ) -> int:
        return await self._accounting.withdraw(assets, receiver, owner, caller or owner)

    async def redeem(
        self, shares: int, receiver: str, owner: str, *, caller: str | None = None
    ) -> int:
        return await self._accounting.redeem(shares, receiver, owner, caller or owner)

    # ------------------------------------------------------------------
    # Position and rebalancing
    # ------------------------------------------------------------------

    async def get_collateral_value(self) -> int:
        return await self._controller.get_collateral_value()

    async def get_debt_value(self) -> int:
        return await self._controller.get_debt_value()

    async def get_current_ltv(self) -> int:
        return await self._controller.get_current_ltv()

    async def is_rebalance_due(self) -> bool:
        return await self._controller.is_rebalance_due()

    async def rebalance(self, caller: str) -> RebalanceReport:
        return await self._controller.rebalance(caller)

    async def snapshot(self) -> VaultSnapshot:
        position = await self._controller.get_position()
        ltv = position.current_ltv() if position.collateral_value else None
        return VaultSnapshot(
            timestamp=self._controller.now(),
            total_assets=await self.total_assets(),
            total_shares=self.total_supply,
            collateral_value=position.collateral_value,
            debt_value=position.debt_value,
            ltv=ltv,
            rebalance_due=await self.is_rebalance_due(),
        )
