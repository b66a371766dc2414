"""Unit tests for the execution guard and compensating transactions."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from leveraged_vault.errors import RebalanceInProgress, ReentrantCall
from leveraged_vault.ledger import ShareLedger
from leveraged_vault.transaction import ExecutionGuard, Transaction, VaultState


@pytest.fixture()
def ledger() -> ShareLedger:
    return ShareLedger()


@pytest.fixture()
def guard() -> ExecutionGuard:
    return ExecutionGuard()


class TestTransaction:
    @pytest.mark.asyncio
    async def test_rollback_runs_newest_first(self) -> None:
        calls: list[str] = []

        async def record(name: str) -> None:
            calls.append(name)

        tx = Transaction("test")
        tx.on_rollback("first", record, "first")
        tx.on_rollback("second", record, "second")
        await tx.rollback()

        assert calls == ["second", "first"]

    @pytest.mark.asyncio
    async def test_failed_compensation_does_not_stop_rollback(self) -> None:
        failing = AsyncMock(side_effect=RuntimeError("gone"))
        succeeding = AsyncMock()

        tx = Transaction("test")
        tx.on_rollback("succeeding", succeeding)
        tx.on_rollback("failing", failing)
        await tx.rollback()

        failing.assert_awaited_once()
        succeeding.assert_awaited_once()


class TestExecutionGuard:
    @pytest.mark.asyncio
    async def test_state_during_and_after(self, guard: ExecutionGuard) -> None:
        async with guard.enter("deposit"):
            assert guard.state is VaultState.PROCESSING
            assert guard.active_operation == "deposit"
        assert guard.state is VaultState.SETTLED
        assert guard.active_operation == ""

    @pytest.mark.asyncio
    async def test_nested_operation_rejected(self, guard: ExecutionGuard) -> None:
        async with guard.enter("deposit"):
            with pytest.raises(ReentrantCall) as exc_info:
                async with guard.enter("withdraw"):
                    pass
        assert exc_info.type is ReentrantCall

    @pytest.mark.asyncio
    async def test_nested_rebalance_rejected(self, guard: ExecutionGuard) -> None:
        async with guard.enter("rebalance", VaultState.REBALANCING):
            assert guard.state is VaultState.REBALANCING
            with pytest.raises(RebalanceInProgress):
                async with guard.enter("rebalance", VaultState.REBALANCING):
                    pass

    @pytest.mark.asyncio
    async def test_concurrent_operations_are_serialized(
        self, guard: ExecutionGuard
    ) -> None:
        events: list[str] = []

        async def operation(name: str) -> None:
            async with guard.enter(name):
                events.append(f"{name} start")
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                events.append(f"{name} end")

        await asyncio.gather(operation("deposit"), operation("redeem"))

        assert events == ["deposit start", "deposit end", "redeem start", "redeem end"]
        assert guard.state is VaultState.SETTLED

    @pytest.mark.asyncio
    async def test_failure_runs_compensations_newest_first(
        self, guard: ExecutionGuard, ledger: ShareLedger
    ) -> None:
        ledger.mint("alice", 100)
        compensation = AsyncMock()

        with pytest.raises(RuntimeError, match="boom"):
            async with guard.enter("redeem") as tx:
                ledger.burn("alice", 40)
                tx.on_rollback("re-credit", ledger.mint, "alice", 40)
                tx.on_rollback("undo", compensation, "arg")
                raise RuntimeError("boom")

        compensation.assert_awaited_once_with("arg")
        assert ledger.balance_of("alice") == 100
        assert guard.state is VaultState.SETTLED

    @pytest.mark.asyncio
    async def test_rollback_leaves_other_changes_alone(
        self, guard: ExecutionGuard, ledger: ShareLedger
    ) -> None:
        ledger.mint("alice", 100)

        with pytest.raises(RuntimeError):
            async with guard.enter("mint") as tx:
                ledger.mint("bob", 50)
                tx.on_rollback("burn", ledger.burn, "bob", 50)
                # a share transfer made outside the operation
                ledger.transfer("alice", "carol", 30)
                raise RuntimeError("boom")

        assert ledger.balance_of("bob") == 0
        assert ledger.balance_of("carol") == 30
        assert ledger.total_supply == 100

    @pytest.mark.asyncio
    async def test_success_keeps_changes(
        self, guard: ExecutionGuard, ledger: ShareLedger
    ) -> None:
        compensation = AsyncMock()
        async with guard.enter("mint") as tx:
            ledger.mint("bob", 50)
            tx.on_rollback("undo", compensation)

        compensation.assert_not_awaited()
        assert ledger.balance_of("bob") == 50
