"""In-memory lending market with index-based interest accrual.

Balances are stored scaled by a per-reserve ray index, so supplied receipts
and outstanding debt grow as ``accrue`` advances time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from ...errors import ProtocolCallError
from ...fixed_point import (
    FEE_SCALE,
    RAY,
    YEAR_IN_SECONDS,
    Rounding,
    amount_to_value,
    apply_ratio,
    mul_div,
    ray_div,
    ray_mul,
)
from ...interfaces.price_oracle import PriceOracle
from ...models import AccountPosition, ReserveStatus
from .token import SimulatedToken

logger = logging.getLogger(__name__)


@dataclass
class _Reserve:
    token: SimulatedToken
    status: ReserveStatus
    supply_rate: int = 0
    borrow_rate: int = 0
    liquidity_index: int = RAY
    borrow_index: int = RAY
    scaled_supply: dict[str, int] = field(default_factory=dict)
    scaled_debt: dict[str, int] = field(default_factory=dict)

    def receipt(self, account: str) -> int:
        return ray_mul(self.scaled_supply.get(account, 0), self.liquidity_index)

    def debt(self, account: str) -> int:
        return ray_mul(self.scaled_debt.get(account, 0), self.borrow_index, Rounding.UP)


def _growth_factor(rate: int, seconds: int) -> int:
    """Linear growth over ``seconds`` at an annual 1e18-scaled ``rate``, in ray."""
    return RAY + mul_div(rate * seconds, RAY, FEE_SCALE * YEAR_IN_SECONDS, Rounding.DOWN)


class SimulatedLendingMarket:
    """Aave-style market: supply receipts, variable debt, per-asset max LTV."""

    def __init__(self, oracle: PriceOracle, address: str = "0xMARKET") -> None:
        self._oracle = oracle
        self.address = address
        self._reserves: dict[str, _Reserve] = {}

    def list_reserve(
        self,
        token: SimulatedToken,
        status: ReserveStatus,
        supply_rate: int = 0,
        borrow_rate: int = 0,
    ) -> None:
        self._reserves[token.symbol] = _Reserve(
            token=token,
            status=status,
            supply_rate=supply_rate,
            borrow_rate=borrow_rate,
        )

    def set_reserve_status(self, asset: str, **changes: object) -> None:
        reserve = self._reserve(asset)
        reserve.status = replace(reserve.status, **changes)

    def accrue(self, seconds: int) -> None:
        for reserve in self._reserves.values():
            reserve.liquidity_index = ray_mul(
                reserve.liquidity_index, _growth_factor(reserve.supply_rate, seconds)
            )
            reserve.borrow_index = ray_mul(
                reserve.borrow_index,
                _growth_factor(reserve.borrow_rate, seconds),
                Rounding.UP,
            )

    def _reserve(self, asset: str) -> _Reserve:
        reserve = self._reserves.get(asset)
        if reserve is None:
            raise ProtocolCallError(f"No reserve listed for {asset}")
        return reserve

    def _active_reserve(self, asset: str) -> _Reserve:
        reserve = self._reserve(asset)
        if not reserve.status.is_active:
            raise ProtocolCallError(f"Reserve {asset} is not active")
        return reserve

    async def _available_liquidity(self, reserve: _Reserve, amount: int) -> None:
        available = await reserve.token.balance_of(self.address)
        if available < amount:
            raise ProtocolCallError(
                f"Market holds {available} {reserve.token.symbol}, cannot release {amount}"
            )

    async def _account_totals(self, account: str) -> tuple[int, int, int]:
        """Collateral value, debt value and borrowing power of ``account``."""
        collateral_value = debt_value = borrow_power = 0
        for symbol, reserve in self._reserves.items():
            supplied = reserve.receipt(account)
            owed = reserve.debt(account)
            if not supplied and not owed:
                continue
            price = await self._oracle.get_price(symbol)
            decimals = reserve.token.decimals
            if supplied and reserve.status.is_collateral_eligible:
                value = amount_to_value(supplied, price, decimals, Rounding.DOWN)
                collateral_value += value
                borrow_power += apply_ratio(value, reserve.status.max_ltv, Rounding.DOWN)
            if owed:
                debt_value += amount_to_value(owed, price, decimals, Rounding.UP)
        return collateral_value, debt_value, borrow_power

    async def _ensure_healthy(
        self, account: str, extra_debt: int = 0, removed_power: int = 0
    ) -> None:
        _, debt_value, borrow_power = await self._account_totals(account)
        if debt_value + extra_debt > borrow_power - removed_power:
            raise ProtocolCallError(
                f"{account} would exceed its borrowing power "
                f"({debt_value + extra_debt} > {borrow_power - removed_power})"
            )

    # ------------------------------------------------------------------
    # Lending market interface
    # ------------------------------------------------------------------

    async def supply(self, asset: str, amount: int, account: str) -> None:
        reserve = self._active_reserve(asset)
        await reserve.token.transfer(account, self.address, amount)
        scaled = ray_div(amount, reserve.liquidity_index)
        reserve.scaled_supply[account] = reserve.scaled_supply.get(account, 0) + scaled
        logger.debug("Market: %s supplied %d %s", account, amount, asset)

    async def withdraw(self, asset: str, amount: int, account: str, to: str) -> int:
        reserve = self._active_reserve(asset)
        balance = reserve.receipt(account)
        if amount > balance:
            raise ProtocolCallError(
                f"{account} has {balance} {asset} supplied, cannot withdraw {amount}"
            )
        await self._available_liquidity(reserve, amount)
        if reserve.status.is_collateral_eligible and any(
            r.debt(account) for r in self._reserves.values()
        ):
            price = await self._oracle.get_price(asset)
            value = amount_to_value(amount, price, reserve.token.decimals, Rounding.UP)
            await self._ensure_healthy(
                account,
                removed_power=apply_ratio(value, reserve.status.max_ltv, Rounding.UP),
            )

        if amount == balance:
            reserve.scaled_supply[account] = 0
        else:
            reserve.scaled_supply[account] -= ray_div(
                amount, reserve.liquidity_index, Rounding.UP
            )
        await reserve.token.transfer(self.address, to, amount)
        logger.debug("Market: %s withdrew %d %s to %s", account, amount, asset, to)
        return amount

    async def borrow(self, asset: str, amount: int, account: str, to: str) -> None:
        reserve = self._active_reserve(asset)
        if not reserve.status.is_borrowable:
            raise ProtocolCallError(f"Reserve {asset} is not borrowable")
        await self._available_liquidity(reserve, amount)
        price = await self._oracle.get_price(asset)
        await self._ensure_healthy(
            account,
            extra_debt=amount_to_value(amount, price, reserve.token.decimals, Rounding.UP),
        )

        scaled = ray_div(amount, reserve.borrow_index, Rounding.UP)
        reserve.scaled_debt[account] = reserve.scaled_debt.get(account, 0) + scaled
        await reserve.token.transfer(self.address, to, amount)
        logger.debug("Market: %s borrowed %d %s", account, amount, asset)

    async def repay(self, asset: str, amount: int, account: str) -> int:
        reserve = self._active_reserve(asset)
        owed = reserve.debt(account)
        repaid = min(amount, owed)
        if repaid == 0:
            return 0

        await reserve.token.transfer(account, self.address, repaid)
        if repaid == owed:
            reserve.scaled_debt[account] = 0
        else:
            reserve.scaled_debt[account] -= ray_div(repaid, reserve.borrow_index)
        logger.debug("Market: %s repaid %d %s", account, repaid, asset)
        return repaid

    async def get_account_position(self, account: str) -> AccountPosition:
        collateral_value, debt_value, _ = await self._account_totals(account)
        return AccountPosition(collateral_value=collateral_value, debt_value=debt_value)

    async def get_reserve_status(self, asset: str) -> ReserveStatus:
        return self._reserve(asset).status

    async def receipt_balance(self, asset: str, account: str) -> int:
        return self._reserve(asset).receipt(account)

    async def debt_balance(self, asset: str, account: str) -> int:
        return self._reserve(asset).debt(account)
