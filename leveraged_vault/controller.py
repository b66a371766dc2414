"""Rebalancing controller — harvests yield and recenters the LTV band.

The controller is either Settled or Due; due-ness is evaluated on demand from
a fresh lending market read and is never scheduled.
"""
from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable

from .config import AssetConfig, StrategyConfig, validate_strategy
from .errors import OracleError, OraclePriceUnavailable, RebalanceNotDue, ZeroCollateral
from .fixed_point import (
    Rounding,
    apply_ratio,
    clamp,
    format_ratio,
    lerp_ratio,
    value_to_amount,
)
from .interfaces.lending_market import LendingMarket
from .interfaces.price_oracle import PriceOracle
from .interfaces.swap_router import SwapRouter
from .interfaces.yield_target import YieldTarget
from .models import AccountPosition, HarvestResult, RebalanceReport, RecenterResult
from .rewards import RewardAccrual
from .transaction import ExecutionGuard, Transaction, VaultState

logger = logging.getLogger(__name__)


class RebalancingController:
    """Keeps the vault's debt position inside the configured LTV band."""

    def __init__(
        self,
        strategy: StrategyConfig,
        collateral_asset: AssetConfig,
        debt_asset: AssetConfig,
        market: LendingMarket,
        oracle: PriceOracle,
        yield_target: YieldTarget,
        swap_router: SwapRouter,
        rewards: RewardAccrual,
        guard: ExecutionGuard,
        address: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        validate_strategy(strategy)
        self.strategy = strategy
        self._collateral = collateral_asset
        self._debt = debt_asset
        self._market = market
        self._oracle = oracle
        self._yield_target = yield_target
        self._swap_router = swap_router
        self._rewards = rewards
        self._guard = guard
        self._address = address
        self._clock = clock
        self.last_rebalance_timestamp = self.now()

    def now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Read-through position
    # ------------------------------------------------------------------

    async def get_position(self) -> AccountPosition:
        return await self._market.get_account_position(self._address)

    async def get_collateral_value(self) -> int:
        return (await self.get_position()).collateral_value

    async def get_debt_value(self) -> int:
        return (await self.get_position()).debt_value

    async def get_current_ltv(self) -> int:
        return (await self.get_position()).current_ltv()

    async def is_rebalance_due(self) -> bool:
        position = await self.get_position()
        if position.collateral_value == 0:
            return False
        if self.now() - self.last_rebalance_timestamp > self.strategy.rebalance_interval:
            return True
        ltv = position.current_ltv()
        return ltv < self.strategy.lower_bound_ltv or ltv > self.strategy.upper_bound_ltv

    # ------------------------------------------------------------------
    # Rebalance
    # ------------------------------------------------------------------

    async def rebalance(self, caller: str) -> RebalanceReport:
        """Harvest, recenter, stamp the time and pay the keeper."""
        async with self._guard.enter("rebalance", VaultState.REBALANCING) as tx:
            if not await self.is_rebalance_due():
                raise RebalanceNotDue("position is inside its band and interval")

            # Price is validated before any state changes.
            price = await self._debt_price()
            harvest = await self._harvest(tx)
            recenter = await self._recenter(tx, price)
            resulting_ltv = await self.get_current_ltv()
            # Stamp and reward last; nothing below awaits.
            self.last_rebalance_timestamp = self.now()
            reward_shares = self._rewards.accrue(caller)

        report = RebalanceReport(
            timestamp=self.last_rebalance_timestamp,
            keeper=caller,
            harvest=harvest,
            recenter=recenter,
            reward_shares=reward_shares,
            resulting_ltv=resulting_ltv,
        )
        logger.info(
            "Rebalanced by %s: LTV %s -> %s (borrowed %d, repaid %d, harvested %d %s)",
            caller,
            format_ratio(recenter.previous_ltv),
            format_ratio(resulting_ltv),
            recenter.borrowed,
            recenter.repaid,
            harvest.profit,
            self._debt.symbol,
        )
        return report

    async def _debt_price(self) -> int:
        try:
            price = await self._oracle.get_price(self._debt.symbol)
        except OracleError:
            raise
        except Exception as e:
            raise OraclePriceUnavailable(
                f"oracle call for {self._debt.symbol} failed: {e}"
            ) from e
        if price <= 0:
            raise OraclePriceUnavailable(
                f"oracle returned non-positive price {price} for {self._debt.symbol}"
            )
        return price

    async def _harvest(self, tx: Transaction) -> HarvestResult:
        shares = await self._yield_target.balance_of(self._address)
        target_balance = await self._yield_target.convert_to_assets(shares)
        debt_balance = await self._market.debt_balance(self._debt.symbol, self._address)

        if target_balance <= debt_balance:
            logger.debug(
                "No yield to harvest (target %d <= debt %d)", target_balance, debt_balance
            )
            return HarvestResult(target_balance=target_balance, debt_balance=debt_balance)

        profit = target_balance - debt_balance
        debt_symbol, collateral_symbol = self._debt.symbol, self._collateral.symbol
        await self._yield_target.withdraw(profit, self._address)
        # Debt tokens to put back; the reverse swap replaces it with what it returns.
        loose = profit

        async def redeposit() -> None:
            if loose > 0:
                await self._yield_target.deposit(loose, self._address)

        tx.on_rollback(f"redeposit harvested {debt_symbol} into yield target", redeposit)

        proceeds = await self._swap_router.swap(
            debt_symbol, collateral_symbol, profit, self._address
        )

        async def swap_back() -> None:
            nonlocal loose
            loose = 0
            loose = await self._swap_router.swap(
                collateral_symbol, debt_symbol, proceeds, self._address
            )

        tx.on_rollback(f"swap {proceeds} {collateral_symbol} back", swap_back)

        if proceeds > 0:
            await self._market.supply(self._collateral.symbol, proceeds, self._address)
            tx.on_rollback(
                f"withdraw {proceeds} harvested {self._collateral.symbol}",
                self._market.withdraw,
                self._collateral.symbol, proceeds, self._address, self._address,
            )

        logger.info(
            "Harvested %d %s into %d %s collateral",
            profit, self._debt.symbol, proceeds, self._collateral.symbol,
        )
        return HarvestResult(
            target_balance=target_balance,
            debt_balance=debt_balance,
            profit=profit,
            collateral_added=proceeds,
        )

    async def _recenter(self, tx: Transaction, price: int) -> RecenterResult:
        position = await self.get_position()
        if position.collateral_value == 0:
            raise ZeroCollateral("cannot recenter a position without collateral")

        current_ltv = position.current_ltv()
        estimated_ltv = lerp_ratio(
            current_ltv, self.strategy.target_ltv, self.strategy.recentering_speed
        )
        new_ltv = clamp(
            estimated_ltv, self.strategy.lower_bound_ltv, self.strategy.upper_bound_ltv
        )
        new_debt_value = apply_ratio(position.collateral_value, new_ltv, Rounding.DOWN)
        logger.debug(
            "Recenter: current %s, estimated %s, new %s (debt value %d -> %d)",
            format_ratio(current_ltv),
            format_ratio(estimated_ltv),
            format_ratio(new_ltv),
            position.debt_value,
            new_debt_value,
        )

        result = RecenterResult(
            previous_ltv=current_ltv, estimated_ltv=estimated_ltv, new_ltv=new_ltv
        )
        if new_debt_value > position.debt_value:
            amount = value_to_amount(
                new_debt_value - position.debt_value,
                price,
                self._debt.decimals,
                Rounding.DOWN,
            )
            borrowed = await self._lever_up(tx, amount)
            return replace(result, borrowed=borrowed)

        amount = value_to_amount(
            position.debt_value - new_debt_value,
            price,
            self._debt.decimals,
            Rounding.DOWN,
        )
        repaid = await self._lever_down(tx, amount)
        return replace(result, repaid=repaid)

    async def _lever_up(self, tx: Transaction, amount: int) -> int:
        if amount == 0:
            return 0
        symbol = self._debt.symbol
        await self._market.borrow(symbol, amount, self._address, self._address)
        tx.on_rollback(
            f"repay {amount} {symbol}", self._market.repay, symbol, amount, self._address
        )
        await self._yield_target.deposit(amount, self._address)
        tx.on_rollback(
            f"withdraw {amount} {symbol} from yield target",
            self._yield_target.withdraw, amount, self._address,
        )
        return amount

    async def _lever_down(self, tx: Transaction, amount: int) -> int:
        if amount == 0:
            return 0
        symbol = self._debt.symbol
        held = await self._yield_target.balance_of(self._address)
        shares = min(await self._yield_target.preview_withdraw(amount), held)
        if shares == 0:
            logger.warning("Yield target holds nothing to repay %d %s", amount, symbol)
            return 0

        redeemed = await self._yield_target.redeem(shares, self._address)
        tx.on_rollback(
            f"redeposit {redeemed} {symbol} into yield target",
            self._yield_target.deposit, redeemed, self._address,
        )
        repaid = await self._market.repay(symbol, redeemed, self._address)
        tx.on_rollback(
            f"re-borrow {repaid} {symbol}",
            self._market.borrow, symbol, repaid, self._address, self._address,
        )
        return repaid

