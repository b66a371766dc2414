"""Re-entrancy guard and all-or-nothing execution for vault operations.

Every awaited collaborator call hands control to code the vault does not own.
Operations started from separate tasks are serialized; an operation started
from inside another one (same task, same context) is rejected. Each operation
runs inside a ``Transaction``: every completed step, external or on the share
ledger, registers a compensating action. On failure the compensations are
unwound newest first and the original error propagates, so only the failed
operation's own effects are reverted.
"""
from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Callable

from .errors import RebalanceInProgress, ReentrantCall

logger = logging.getLogger(__name__)


class VaultState(Enum):
    SETTLED = "settled"
    PROCESSING = "processing"
    REBALANCING = "rebalancing"


class Transaction:
    """Compensating actions registered by one operation.

    Compensations may be plain callables or coroutine functions.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self._compensations: list[tuple[str, Callable[..., Any], tuple[Any, ...]]] = []

    def on_rollback(
        self, description: str, action: Callable[..., Any], *args: Any
    ) -> None:
        self._compensations.append((description, action, args))

    async def rollback(self) -> None:
        while self._compensations:
            description, action, args = self._compensations.pop()
            try:
                result = action(*args)
                if inspect.isawaitable(result):
                    await result
                logger.info("Rolled back %s: %s", self.operation, description)
            except Exception:
                logger.exception(
                    "Compensation failed during %s rollback: %s",
                    self.operation,
                    description,
                )


class ExecutionGuard:
    """Serializing guard shared by every mutating vault operation."""

    def __init__(self) -> None:
        self.state = VaultState.SETTLED
        self._lock = asyncio.Lock()
        self._active: contextvars.ContextVar[str] = contextvars.ContextVar(
            f"vault_operation_{id(self)}", default=""
        )

    @property
    def active_operation(self) -> str:
        """Operation in flight in the current context, or an empty string."""
        return self._active.get()

    @asynccontextmanager
    async def enter(
        self, operation: str, state: VaultState = VaultState.PROCESSING
    ) -> AsyncIterator[Transaction]:
        active = self._active.get()
        if active:
            if state is VaultState.REBALANCING:
                raise RebalanceInProgress(f"{operation} called while {active} is in flight")
            raise ReentrantCall(f"{operation} called while {active} is in flight")

        async with self._lock:
            token = self._active.set(operation)
            self.state = state
            tx = Transaction(operation)
            try:
                yield tx
            except Exception:
                logger.warning("%s failed, rolling back", operation)
                await tx.rollback()
                raise
            finally:
                self._active.reset(token)
                self.state = VaultState.SETTLED
