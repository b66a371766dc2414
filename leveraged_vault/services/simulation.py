"""Step-based simulation of the vault against simulated protocols."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from ..errors import ConfigurationError
from ..fixed_point import format_ratio
from ..models import RebalanceReport, VaultSnapshot
from ..oracles import StaticPriceOracle
from .environment import SimulatedEnvironment, SimulationClock
from .keeper import Keeper

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    snapshots: list[VaultSnapshot] = field(default_factory=list)
    rebalances: list[RebalanceReport] = field(default_factory=list)

    @property
    def final(self) -> VaultSnapshot | None:
        return self.snapshots[-1] if self.snapshots else None


class Simulation:
    """Advance time, accrue interest and yield, and let the keeper act."""

    def __init__(self, env: SimulatedEnvironment, keeper: Keeper) -> None:
        if not isinstance(env.clock, SimulationClock):
            raise ConfigurationError("a simulation needs a manually advanced clock")
        self.env = env
        self.clock = env.clock
        self.keeper = keeper
        sim = env.config.simulation
        self.step_seconds = sim.step_seconds
        self.price_volatility = sim.price_volatility
        self._rng = random.Random(sim.seed)

    async def _drift_price(self) -> None:
        oracle = self.env.oracle
        if not self.price_volatility or not isinstance(oracle, StaticPriceOracle):
            return
        symbol = self.env.collateral.symbol
        price = await oracle.get_price(symbol)
        shock = self._rng.gauss(0.0, self.price_volatility)
        oracle.set_price(symbol, max(1, int(price * (1 + shock))))

    async def step(self) -> RebalanceReport | None:
        self.clock.advance(self.step_seconds)
        await self.env.sync()
        await self._drift_price()
        return await self.keeper.check_and_rebalance()

    async def run(self, steps: int) -> SimulationResult:
        result = SimulationResult()
        for i in range(steps):
            report = await self.step()
            if report is not None:
                result.rebalances.append(report)
            snapshot = await self.env.vault.snapshot()
            result.snapshots.append(snapshot)
            logger.info(
                "Step %d: assets %d, share price %.6f, LTV %s",
                i + 1,
                snapshot.total_assets,
                snapshot.share_price,
                format_ratio(snapshot.ltv) if snapshot.ltv is not None else "—",
            )

        logger.info(
            "Simulation finished: %d steps, %d rebalances", steps, len(result.rebalances)
        )
        return result
