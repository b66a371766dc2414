"""Protocol interfaces for the leveraged vault's external collaborators."""
from .asset import AssetToken
from .lending_market import LendingMarket
from .notifier import Notifier
from .price_oracle import PriceOracle
from .swap_router import SwapRouter
from .yield_target import YieldTarget

__all__ = [
    "AssetToken",
    "LendingMarket",
    "Notifier",
    "PriceOracle",
    "SwapRouter",
    "YieldTarget",
]
