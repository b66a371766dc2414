"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from dataclasses import replace
from pathlib import Path

import pytest

from leveraged_vault.config import (
    AppConfig,
    AssetConfig,
    LendingMarketConfig,
    PriceOracleConfig,
    ReserveConfig,
    SimulationConfig,
    StrategyConfig,
    SwapRouterConfig,
    VaultConfig,
)
from leveraged_vault.services import SimulationClock

WETH_PRICE = 3_000 * 10**8
USDC_PRICE = 10**8


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def strategy() -> StrategyConfig:
    return StrategyConfig(
        target_ltv=600_000,
        lower_bound_ltv=500_000,
        upper_bound_ltv=700_000,
        recentering_speed=200_000,
        rebalance_interval=86_400,
        annual_fee_rate=10**16,
    )


@pytest.fixture()
def sample_reserves() -> dict[str, ReserveConfig]:
    return {
        "WETH": ReserveConfig(
            is_active=True,
            is_collateral_eligible=True,
            is_borrowable=False,
            max_ltv=800_000,
        ),
        "USDC": ReserveConfig(
            is_active=True,
            is_collateral_eligible=False,
            is_borrowable=True,
            liquidity=10**14,
        ),
    }


@pytest.fixture()
def app_config(
    strategy: StrategyConfig, sample_reserves: dict[str, ReserveConfig]
) -> AppConfig:
    return AppConfig(
        vault=VaultConfig(
            name="Test Vault", symbol="tvWETH", owner="0xOWNER", address="0xVAULT"
        ),
        collateral_asset=AssetConfig(symbol="WETH", decimals=18),
        debt_asset=AssetConfig(symbol="USDC", decimals=6),
        strategy=strategy,
        lending_market=LendingMarketConfig(address="0xMARKET", reserves=sample_reserves),
        price_oracle=PriceOracleConfig(
            provider="static",
            static_prices={"WETH": WETH_PRICE, "USDC": USDC_PRICE},
        ),
        swap_router=SwapRouterConfig(slippage_bps=0),
        simulation=SimulationConfig(initial_deposit=0),
    )


@pytest.fixture()
def funded_config(app_config: AppConfig) -> AppConfig:
    """Config whose environment starts with 10 WETH deposited."""
    return replace(
        app_config,
        simulation=SimulationConfig(depositor="0xDEPOSITOR", initial_deposit=10 * 10**18),
    )


@pytest.fixture()
def clock() -> SimulationClock:
    return SimulationClock(start=1_700_000_000)


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    vault:
      name: Sample Vault
      symbol: svWETH
      owner: "0xOWNER"
    assets:
      collateral: {symbol: weth, decimals: 18}
      debt: {symbol: USDC, decimals: 6}
    strategy:
      target_ltv: 600000
      lower_bound_ltv: 500000
      upper_bound_ltv: 700000
      recentering_speed: 200000
      rebalance_interval: 3600
    lending_market:
      reserves:
        WETH: {active: true, collateral: true, max_ltv: 800000, supply_rate: 20000000000000000}
        USDC: {active: true, borrowable: true, borrow_rate: 50000000000000000, liquidity: 1000000000000}
    price_oracle:
      provider: static
      static_prices: {WETH: 300000000000, USDC: 100000000}
    yield_target:
      annual_yield_rate: 80000000000000000
    swap_router:
      slippage_bps: 10
    keeper:
      address: "${TEST_KEEPER_ADDRESS}"
      check_interval_minutes: 5
    simulation:
      steps: 3
      initial_deposit: 1000000000000000000
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: 999
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
