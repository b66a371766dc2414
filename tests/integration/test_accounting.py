"""Integration tests for deposits, withdrawals and allowances on a simulated market."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from leveraged_vault.accounting import AccountingEngine
from leveraged_vault.config import AppConfig
from leveraged_vault.errors import (
    InsolventVault,
    InsufficientAllowance,
    InsufficientShares,
    ProtocolCallError,
    ReentrantCall,
    ZeroAssets,
    ZeroShares,
)
from leveraged_vault.fixed_point import MAX_UINT256
from leveraged_vault.ledger import ShareLedger
from leveraged_vault.services import SimulatedEnvironment, SimulationClock, build_environment
from leveraged_vault.transaction import ExecutionGuard, VaultState

ALICE = "0xALICE"
BOB = "0xBOB"
ONE_WETH = 10**18


async def _funded_env(
    app_config: AppConfig, clock: SimulationClock, amount: int = 10 * ONE_WETH
) -> SimulatedEnvironment:
    env = await build_environment(app_config, clock)
    env.collateral.mint(ALICE, amount)
    return env


class TestDepositRedeem:
    @pytest.mark.asyncio
    async def test_first_deposit_mints_one_to_one(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)

        shares = await env.vault.deposit(4 * ONE_WETH, ALICE)

        assert shares == 4 * ONE_WETH
        assert env.vault.balance_of(ALICE) == shares
        assert await env.vault.total_assets() == 4 * ONE_WETH
        assert env.collateral.balance(ALICE) == 6 * ONE_WETH
        # assets sit in the market as collateral, not in the vault
        assert env.collateral.balance("0xVAULT") == 0

    @pytest.mark.asyncio
    async def test_round_trip_returns_deposit(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.collateral.transfer(ALICE, BOB, ONE_WETH)
        await env.vault.deposit(ONE_WETH, BOB)

        shares = await env.vault.deposit(1_234_567_891, ALICE)
        assets = await env.vault.redeem(shares, ALICE, ALICE)

        assert abs(assets - 1_234_567_891) <= 1
        assert env.vault.balance_of(ALICE) == 0

    @pytest.mark.asyncio
    async def test_deposit_after_yield_uses_pre_deposit_price(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(ONE_WETH, ALICE)
        # doubling the managed assets doubles the share price
        env.collateral.mint(BOB, 3 * ONE_WETH)
        await env.market.supply("WETH", ONE_WETH, BOB)
        env.market._reserves["WETH"].scaled_supply["0xVAULT"] *= 2

        shares = await env.vault.deposit(2 * ONE_WETH, BOB)

        assert shares == ONE_WETH

    @pytest.mark.asyncio
    async def test_mint_rounds_assets_up(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(3, ALICE)
        env.market._reserves["WETH"].scaled_supply["0xVAULT"] = 4

        assets = await env.vault.mint(1, ALICE)

        # one share is worth 4/3 assets
        assert assets == 2


class TestZeroAmounts:
    @pytest.mark.asyncio
    async def test_zero_deposit_fails(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)

        with pytest.raises(ZeroShares):
            await env.vault.deposit(0, ALICE)
        assert env.vault.total_supply == 0

    @pytest.mark.asyncio
    async def test_dust_deposit_rounding_to_zero_shares(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(1, ALICE)
        env.market._reserves["WETH"].scaled_supply["0xVAULT"] = 10

        with pytest.raises(ZeroShares):
            await env.vault.deposit(9, ALICE)
        assert env.collateral.balance(ALICE) == 10 * ONE_WETH - 1

    @pytest.mark.asyncio
    async def test_zero_mint_fails(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        with pytest.raises(ZeroShares):
            await env.vault.mint(0, ALICE)

    @pytest.mark.asyncio
    async def test_zero_redeem_fails(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(ONE_WETH, ALICE)
        with pytest.raises(ZeroAssets):
            await env.vault.redeem(0, ALICE, ALICE)

    @pytest.mark.asyncio
    async def test_zero_withdraw_fails(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(ONE_WETH, ALICE)
        with pytest.raises(ZeroAssets):
            await env.vault.withdraw(0, ALICE, ALICE)


class TestAllowance:
    @pytest.mark.asyncio
    async def test_exact_allowance_is_consumed(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(1_000, ALICE)
        needed = await env.vault.preview_withdraw(400)
        env.vault.approve(ALICE, BOB, needed)

        shares = await env.vault.withdraw(400, BOB, ALICE, caller=BOB)

        assert shares == needed
        assert env.vault.allowance(ALICE, BOB) == 0
        assert env.vault.balance_of(ALICE) == 600
        assert env.collateral.balance(BOB) == 400

    @pytest.mark.asyncio
    async def test_allowance_one_short_fails(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(1_000, ALICE)
        needed = await env.vault.preview_withdraw(400)
        env.vault.approve(ALICE, BOB, needed - 1)

        with pytest.raises(InsufficientAllowance):
            await env.vault.withdraw(400, BOB, ALICE, caller=BOB)

        assert env.vault.allowance(ALICE, BOB) == needed - 1
        assert env.vault.balance_of(ALICE) == 1_000
        assert env.collateral.balance(BOB) == 0
        assert await env.vault.total_assets() == 1_000

    @pytest.mark.asyncio
    async def test_unlimited_allowance(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(1_000, ALICE)
        env.vault.approve(ALICE, BOB, MAX_UINT256)

        await env.vault.redeem(300, BOB, ALICE, caller=BOB)

        assert env.vault.allowance(ALICE, BOB) == MAX_UINT256
        assert env.collateral.balance(BOB) == 300

    @pytest.mark.asyncio
    async def test_owner_needs_no_allowance(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(1_000, ALICE)

        await env.vault.withdraw(1_000, ALICE, ALICE)

        assert env.vault.total_supply == 0
        assert env.collateral.balance(ALICE) == 10 * ONE_WETH

    @pytest.mark.asyncio
    async def test_redeem_more_than_held(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(1_000, ALICE)
        await env.collateral.transfer(ALICE, BOB, 1_000)
        await env.vault.deposit(1_000, BOB)

        with pytest.raises(InsufficientShares):
            await env.vault.redeem(1_001, ALICE, ALICE)
        assert await env.vault.total_assets() == 2_000


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_failed_supply_refunds_caller(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        env.market.set_reserve_status("WETH", is_active=False)

        with pytest.raises(ProtocolCallError):
            await env.vault.deposit(ONE_WETH, ALICE)

        assert env.collateral.balance(ALICE) == 10 * ONE_WETH
        assert env.collateral.balance("0xVAULT") == 0
        assert env.vault.total_supply == 0
        assert env.vault.state is VaultState.SETTLED

    @pytest.mark.asyncio
    async def test_withdraw_blocked_by_health_check_restores_shares(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(ONE_WETH, ALICE)
        clock.advance(86_401)
        await env.vault.rebalance("0xKEEPER")
        supply_before = env.vault.total_supply

        # half the collateral cannot leave while half its value is borrowed
        with pytest.raises(ProtocolCallError):
            await env.vault.withdraw(ONE_WETH // 2, ALICE, ALICE)

        assert env.vault.balance_of(ALICE) == ONE_WETH
        assert env.vault.total_supply == supply_before

    @pytest.mark.asyncio
    async def test_blocked_spender_withdraw_restores_allowance(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.vault.deposit(ONE_WETH, ALICE)
        clock.advance(86_401)
        await env.vault.rebalance("0xKEEPER")
        env.vault.approve(ALICE, BOB, ONE_WETH)

        with pytest.raises(ProtocolCallError):
            await env.vault.withdraw(ONE_WETH // 2, BOB, ALICE, caller=BOB)

        assert env.vault.allowance(ALICE, BOB) == ONE_WETH
        assert env.vault.balance_of(ALICE) == ONE_WETH
        assert env.collateral.balance(BOB) == 0

    @pytest.mark.asyncio
    async def test_concurrent_deposits_are_serialized(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        await env.collateral.transfer(ALICE, BOB, ONE_WETH)
        original_transfer = env.collateral.transfer

        async def slow_transfer(sender: str, recipient: str, amount: int) -> None:
            await asyncio.sleep(0)
            await original_transfer(sender, recipient, amount)

        env.collateral.transfer = slow_transfer  # type: ignore[method-assign]

        results = await asyncio.gather(
            env.vault.deposit(ONE_WETH, ALICE), env.vault.deposit(ONE_WETH, BOB)
        )

        assert results == [ONE_WETH, ONE_WETH]
        assert env.vault.total_supply == 2 * ONE_WETH
        assert await env.vault.total_assets() == 2 * ONE_WETH

    @pytest.mark.asyncio
    async def test_reentrant_deposit_rejected(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await _funded_env(app_config, clock)
        vault = env.vault
        original_transfer = env.collateral.transfer

        async def reentering_transfer(sender: str, recipient: str, amount: int) -> None:
            if recipient == "0xVAULT":
                await vault.deposit(amount, sender)
            await original_transfer(sender, recipient, amount)

        env.collateral.transfer = reentering_transfer  # type: ignore[method-assign]

        with pytest.raises(ReentrantCall):
            await vault.deposit(ONE_WETH, ALICE)

        assert vault.total_supply == 0
        assert vault.state is VaultState.SETTLED
        assert env.collateral.balance(ALICE) == 10 * ONE_WETH


class TestConversions:
    @pytest.mark.asyncio
    async def test_empty_vault_converts_one_to_one(
        self, app_config: AppConfig, clock: SimulationClock
    ) -> None:
        env = await build_environment(app_config, clock)
        assert await env.vault.convert_to_shares(123) == 123
        assert await env.vault.convert_to_assets(123) == 123
        assert await env.vault.preview_mint(123) == 123
        assert await env.vault.preview_redeem(123) == 123

    @pytest.mark.asyncio
    async def test_shares_without_assets_is_insolvent(self) -> None:
        asset = MagicMock()
        asset.symbol = "WETH"
        market = AsyncMock()
        market.receipt_balance.return_value = 0
        ledger = ShareLedger()
        ledger.mint(ALICE, 100)
        engine = AccountingEngine(
            asset, market, ledger, ExecutionGuard(), "0xVAULT"
        )

        with pytest.raises(InsolventVault):
            await engine.convert_to_shares(10)
