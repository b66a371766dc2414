"""In-memory share ledger: balances, allowances and total supply."""
from __future__ import annotations

from .errors import InsufficientAllowance, InsufficientShares
from .fixed_point import MAX_UINT256


class ShareLedger:
    """Vault share token storage.

    Allowances set to ``MAX_UINT256`` are treated as unlimited and never
    decremented.
    """

    def __init__(self) -> None:
        self._total_supply = 0
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("allowance must be non-negative")
        self._allowances[(owner, spender)] = amount

    def spend_allowance(self, owner: str, spender: str, amount: int) -> int:
        """Decrement the allowance and return how much was actually deducted."""
        allowed = self.allowance(owner, spender)
        if allowed == MAX_UINT256:
            return 0
        if allowed < amount:
            raise InsufficientAllowance(
                f"{spender} may spend {allowed} of {owner}'s shares, needs {amount}"
            )
        self._allowances[(owner, spender)] = allowed - amount
        return amount

    def increase_allowance(self, owner: str, spender: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed == MAX_UINT256:
            return
        self._allowances[(owner, spender)] = min(allowed + amount, MAX_UINT256)

    def mint(self, account: str, shares: int) -> None:
        self._balances[account] = self.balance_of(account) + shares
        self._total_supply += shares

    def burn(self, account: str, shares: int) -> None:
        balance = self.balance_of(account)
        if balance < shares:
            raise InsufficientShares(
                f"{account} holds {balance} shares, cannot burn {shares}"
            )
        self._balances[account] = balance - shares
        self._total_supply -= shares

    def transfer(self, sender: str, recipient: str, shares: int) -> None:
        self.burn(sender, shares)
        self.mint(recipient, shares)
