"""In-memory fungible token."""
from __future__ import annotations

from ...errors import ProtocolCallError


class SimulatedToken:
    """Balance book for one asset; transfers need no allowance."""

    def __init__(self, symbol: str, decimals: int) -> None:
        self._symbol = symbol
        self._decimals = decimals
        self._balances: dict[str, int] = {}
        self.total_supply = 0

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def decimals(self) -> int:
        return self._decimals

    def mint(self, account: str, amount: int) -> None:
        self._balances[account] = self._balances.get(account, 0) + amount
        self.total_supply += amount

    def burn(self, account: str, amount: int) -> None:
        self._debit(account, amount)
        self.total_supply -= amount

    def balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    async def balance_of(self, account: str) -> int:
        return self.balance(account)

    async def transfer(self, sender: str, recipient: str, amount: int) -> None:
        self._debit(sender, amount)
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

    def _debit(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ProtocolCallError(f"negative {self._symbol} amount {amount}")
        balance = self.balance(account)
        if balance < amount:
            raise ProtocolCallError(
                f"{account} holds {balance} {self._symbol}, needs {amount}"
            )
        self._balances[account] = balance - amount
