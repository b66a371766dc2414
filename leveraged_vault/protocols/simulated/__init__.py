"""In-memory protocol adapters for simulations and tests."""
from .lending_market import SimulatedLendingMarket
from .swap_router import OracleSwapRouter
from .token import SimulatedToken
from .yield_vault import SimulatedYieldVault

__all__ = [
    "OracleSwapRouter",
    "SimulatedLendingMarket",
    "SimulatedToken",
    "SimulatedYieldVault",
]
