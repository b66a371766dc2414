"""Asset token protocol — fungible token transfer abstraction."""
from typing import Protocol


class AssetToken(Protocol):
    """Abstract interface for a fungible token the vault moves around."""

    @property
    def symbol(self) -> str: ...

    @property
    def decimals(self) -> int: ...

    async def balance_of(self, account: str) -> int: ...

    async def transfer(self, sender: str, recipient: str, amount: int) -> None: ...
