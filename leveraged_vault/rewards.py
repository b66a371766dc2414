"""Reward accrual — time-proportional management fee paid in new shares."""
from __future__ import annotations

import logging

from .fixed_point import FEE_SCALE, YEAR_IN_SECONDS, Rounding, mul_div
from .ledger import ShareLedger

logger = logging.getLogger(__name__)


class RewardAccrual:
    """Mints the fee for one rebalance interval to the triggering keeper.

    The mint adds no backing assets, so every holder is diluted pro rata.
    """

    def __init__(
        self, ledger: ShareLedger, annual_fee_rate: int, rebalance_interval: int
    ) -> None:
        self._ledger = ledger
        self.annual_fee_rate = annual_fee_rate
        self.rebalance_interval = rebalance_interval

    @property
    def fee_rate(self) -> int:
        """Fee for one interval, on the 1e18 scale."""
        return mul_div(
            self.annual_fee_rate,
            self.rebalance_interval,
            YEAR_IN_SECONDS,
            Rounding.DOWN,
        )

    def compute_reward_shares(self) -> int:
        return mul_div(
            self._ledger.total_supply, self.fee_rate, FEE_SCALE, Rounding.DOWN
        )

    def accrue(self, recipient: str) -> int:
        reward_shares = self.compute_reward_shares()
        if reward_shares == 0:
            logger.debug("No reward shares to mint")
            return 0
        self._ledger.mint(recipient, reward_shares)
        logger.info("Minted %d reward shares to %s", reward_shares, recipient)
        return reward_shares
