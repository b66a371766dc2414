"""Leveraged yield vault with an LTV-band rebalancing controller."""
from .errors import VaultError
from .vault import LeveragedVault

__all__ = ["LeveragedVault", "VaultError"]

__version__ = "0.1.0"
