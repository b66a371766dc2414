"""Service modules"""
from .environment import SimulatedEnvironment, SimulationClock, build_environment
from .keeper import Keeper
from .simulation import Simulation, SimulationResult

__all__ = [
    "Keeper",
    "SimulatedEnvironment",
    "Simulation",
    "SimulationClock",
    "SimulationResult",
    "build_environment",
]
