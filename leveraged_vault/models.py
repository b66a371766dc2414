"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass

from .errors import ZeroCollateral
from .fixed_point import Rounding, ratio_of


@dataclass(frozen=True)
class ReserveStatus:
    """Lending market reserve flags; ``max_ltv`` is on the 1e6 LTV scale."""

    is_active: bool
    is_collateral_eligible: bool
    is_borrowable: bool
    max_ltv: int


@dataclass(frozen=True)
class AccountPosition:
    """Collateral and debt of one account, in oracle reference units."""

    collateral_value: int
    debt_value: int

    def current_ltv(self) -> int:
        """Debt over collateral, rounded up."""
        if self.collateral_value == 0:
            raise ZeroCollateral("collateral value is zero, LTV is undefined")
        return ratio_of(self.debt_value, self.collateral_value, Rounding.UP)


@dataclass(frozen=True)
class HarvestResult:
    target_balance: int
    debt_balance: int
    profit: int = 0
    collateral_added: int = 0


@dataclass(frozen=True)
class RecenterResult:
    previous_ltv: int
    estimated_ltv: int
    new_ltv: int
    borrowed: int = 0
    repaid: int = 0


@dataclass(frozen=True)
class RebalanceReport:
    timestamp: int
    keeper: str
    harvest: HarvestResult
    recenter: RecenterResult
    reward_shares: int
    resulting_ltv: int


@dataclass(frozen=True)
class VaultSnapshot:
    """Point-in-time view of the vault for reports and simulations."""

    timestamp: int
    total_assets: int
    total_shares: int
    collateral_value: int
    debt_value: int
    ltv: int | None
    rebalance_due: bool

    @property
    def share_price(self) -> float:
        if self.total_shares == 0:
            return 1.0
        return self.total_assets / self.total_shares
