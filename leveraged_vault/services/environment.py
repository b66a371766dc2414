"""Wires a vault to simulated protocols from application config."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from ..config import AppConfig
from ..interfaces.price_oracle import PriceOracle
from ..models import ReserveStatus
from ..oracles import PythOracle, StaticPriceOracle
from ..protocols.simulated import (
    OracleSwapRouter,
    SimulatedLendingMarket,
    SimulatedToken,
    SimulatedYieldVault,
)
from ..vault import LeveragedVault

logger = logging.getLogger(__name__)


class SimulationClock:
    """Manually advanced clock returning whole seconds."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@dataclass
class SimulatedEnvironment:
    config: AppConfig
    clock: Callable[[], float]
    collateral: SimulatedToken
    debt: SimulatedToken
    oracle: PriceOracle
    market: SimulatedLendingMarket
    yield_vault: SimulatedYieldVault
    router: OracleSwapRouter
    vault: LeveragedVault
    synced_at: int = 0

    async def sync(self) -> int:
        """Accrue market interest and target yield up to the clock's current time."""
        now = int(self.clock())
        elapsed = max(0, now - self.synced_at)
        if elapsed:
            self.market.accrue(elapsed)
            await self.yield_vault.accrue(elapsed)
            logger.debug("Accrued %d seconds of interest and yield", elapsed)
        self.synced_at = now
        return elapsed


def build_oracle(config: AppConfig) -> PriceOracle:
    if config.price_oracle.provider == "pyth":
        return PythOracle(config.price_oracle.pyth)
    return StaticPriceOracle(config.price_oracle.static_prices)


async def build_environment(
    config: AppConfig, clock: Callable[[], float] | None = None
) -> SimulatedEnvironment:
    """Create tokens, market, yield vault, router and a validated vault.

    Pass ``time.time`` as the clock to let the world accrue in wall time.
    """
    clock = clock or SimulationClock()
    collateral = SimulatedToken(config.collateral_asset.symbol, config.collateral_asset.decimals)
    debt = SimulatedToken(config.debt_asset.symbol, config.debt_asset.decimals)
    tokens = {collateral.symbol: collateral, debt.symbol: debt}

    # Pyth prices are checked against wall time, not the simulation clock.
    oracle = build_oracle(config)
    market = SimulatedLendingMarket(oracle, config.lending_market.address)
    for symbol, reserve in config.lending_market.reserves.items():
        token = tokens.get(symbol)
        if token is None:
            logger.warning("Skipping reserve %s: not a vault asset", symbol)
            continue
        market.list_reserve(
            token,
            ReserveStatus(
                is_active=reserve.is_active,
                is_collateral_eligible=reserve.is_collateral_eligible,
                is_borrowable=reserve.is_borrowable,
                max_ltv=reserve.max_ltv,
            ),
            supply_rate=reserve.supply_rate,
            borrow_rate=reserve.borrow_rate,
        )
        if reserve.liquidity:
            token.mint(market.address, reserve.liquidity)

    yield_vault = SimulatedYieldVault(
        debt, config.yield_target.address, config.yield_target.annual_yield_rate
    )
    router = OracleSwapRouter(
        tokens, oracle, config.swap_router.address, config.swap_router.slippage_bps
    )

    vault = await LeveragedVault.create(
        config.vault,
        config.strategy,
        collateral,
        config.debt_asset,
        market,
        oracle,
        yield_vault,
        router,
        clock=clock,
    )

    sim = config.simulation
    if sim.initial_deposit:
        collateral.mint(sim.depositor, sim.initial_deposit)
        await vault.deposit(sim.initial_deposit, sim.depositor)

    return SimulatedEnvironment(
        config=config,
        clock=clock,
        collateral=collateral,
        debt=debt,
        oracle=oracle,
        market=market,
        yield_vault=yield_vault,
        router=router,
        vault=vault,
        synced_at=int(clock()),
    )
