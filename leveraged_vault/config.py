"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .fixed_point import FEE_SCALE, LTV_SCALE, REFERENCE_DECIMALS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StrategyConfig:
    """LTV band and pacing; ratios use 6 implied decimals."""

    target_ltv: int = 600_000
    lower_bound_ltv: int = 500_000
    upper_bound_ltv: int = 700_000
    recentering_speed: int = 200_000
    rebalance_interval: int = 86_400
    annual_fee_rate: int = 10**16  # 1% on the 1e18 scale


@dataclass(frozen=True)
class AssetConfig:
    symbol: str = ""
    decimals: int = 18


@dataclass(frozen=True)
class VaultConfig:
    name: str = "Leveraged Yield Vault"
    symbol: str = "lyVault"
    owner: str = ""
    address: str = "0xVAULT"


@dataclass(frozen=True)
class ReserveConfig:
    is_active: bool = True
    is_collateral_eligible: bool = False
    is_borrowable: bool = False
    max_ltv: int = 0
    supply_rate: int = 0  # annual, 1e18 scale
    borrow_rate: int = 0  # annual, 1e18 scale
    liquidity: int = 0  # base units seeded into the market


@dataclass(frozen=True)
class LendingMarketConfig:
    address: str = "0xMARKET"
    reserves: dict[str, ReserveConfig] = field(default_factory=dict)


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    feeds: dict[str, str] = field(default_factory=dict)
    max_price_age: int = 120
    reference_decimals: int = REFERENCE_DECIMALS
    timeout: int = 10


@dataclass(frozen=True)
class PriceOracleConfig:
    provider: str = "static"
    pyth: PythConfig = field(default_factory=PythConfig)
    static_prices: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class YieldTargetConfig:
    address: str = "0xYIELD"
    annual_yield_rate: int = 0  # 1e18 scale


@dataclass(frozen=True)
class SwapRouterConfig:
    address: str = "0xROUTER"
    slippage_bps: int = 30


@dataclass(frozen=True)
class KeeperConfig:
    address: str = "0xKEEPER"
    check_interval_minutes: int = 15


@dataclass(frozen=True)
class SimulationConfig:
    steps: int = 30
    step_seconds: int = 86_400
    depositor: str = "0xDEPOSITOR"
    initial_deposit: int = 0
    price_volatility: float = 0.0
    seed: int = 0


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class AppConfig:
    vault: VaultConfig = field(default_factory=VaultConfig)
    collateral_asset: AssetConfig = field(default_factory=AssetConfig)
    debt_asset: AssetConfig = field(default_factory=AssetConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    lending_market: LendingMarketConfig = field(default_factory=LendingMarketConfig)
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)
    yield_target: YieldTargetConfig = field(default_factory=YieldTargetConfig)
    swap_router: SwapRouterConfig = field(default_factory=SwapRouterConfig)
    keeper: KeeperConfig = field(default_factory=KeeperConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_strategy(raw: dict[str, Any]) -> StrategyConfig:
    defaults = StrategyConfig()
    return StrategyConfig(
        target_ltv=int(raw.get("target_ltv", defaults.target_ltv)),
        lower_bound_ltv=int(raw.get("lower_bound_ltv", defaults.lower_bound_ltv)),
        upper_bound_ltv=int(raw.get("upper_bound_ltv", defaults.upper_bound_ltv)),
        recentering_speed=int(
            raw.get("recentering_speed", defaults.recentering_speed)
        ),
        rebalance_interval=int(
            raw.get("rebalance_interval", defaults.rebalance_interval)
        ),
        annual_fee_rate=int(raw.get("annual_fee_rate", defaults.annual_fee_rate)),
    )


def _build_asset(raw: dict[str, Any]) -> AssetConfig:
    return AssetConfig(
        symbol=str(raw.get("symbol", "")).upper(),
        decimals=int(raw.get("decimals", 18)),
    )


def _build_vault(raw: dict[str, Any]) -> VaultConfig:
    return VaultConfig(
        name=raw.get("name", VaultConfig.name),
        symbol=raw.get("symbol", VaultConfig.symbol),
        owner=raw.get("owner", ""),
        address=raw.get("address", VaultConfig.address),
    )


def _build_lending_market(raw: dict[str, Any]) -> LendingMarketConfig:
    reserves: dict[str, ReserveConfig] = {}
    for symbol, cfg in raw.get("reserves", {}).items():
        reserves[str(symbol).upper()] = ReserveConfig(
            is_active=bool(cfg.get("active", True)),
            is_collateral_eligible=bool(cfg.get("collateral", False)),
            is_borrowable=bool(cfg.get("borrowable", False)),
            max_ltv=int(cfg.get("max_ltv", 0)),
            supply_rate=int(cfg.get("supply_rate", 0)),
            borrow_rate=int(cfg.get("borrow_rate", 0)),
            liquidity=int(cfg.get("liquidity", 0)),
        )
    return LendingMarketConfig(
        address=raw.get("address", LendingMarketConfig.address),
        reserves=reserves,
    )


def _build_price_oracle(raw: dict[str, Any]) -> PriceOracleConfig:
    pyth_raw = raw.get("pyth", {})
    return PriceOracleConfig(
        provider=raw.get("provider", "static"),
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            feeds={k.upper(): v for k, v in pyth_raw.get("feeds", {}).items()},
            max_price_age=int(pyth_raw.get("max_price_age", 120)),
            reference_decimals=int(
                pyth_raw.get("reference_decimals", REFERENCE_DECIMALS)
            ),
            timeout=int(pyth_raw.get("timeout", 10)),
        ),
        static_prices={
            k.upper(): int(v) for k, v in raw.get("static_prices", {}).items()
        },
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


def _build_simulation(raw: dict[str, Any]) -> SimulationConfig:
    return SimulationConfig(
        steps=int(raw.get("steps", 30)),
        step_seconds=int(raw.get("step_seconds", 86_400)),
        depositor=raw.get("depositor", SimulationConfig.depositor),
        initial_deposit=int(raw.get("initial_deposit", 0)),
        price_volatility=float(raw.get("price_volatility", 0.0)),
        seed=int(raw.get("seed", 0)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from the package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)
    assets = raw.get("assets", {})
    yield_raw = raw.get("yield_target", {})
    router_raw = raw.get("swap_router", {})
    keeper_raw = raw.get("keeper", {})

    cfg = AppConfig(
        vault=_build_vault(raw.get("vault", {})),
        collateral_asset=_build_asset(assets.get("collateral", {})),
        debt_asset=_build_asset(assets.get("debt", {})),
        strategy=_build_strategy(raw.get("strategy", {})),
        lending_market=_build_lending_market(raw.get("lending_market", {})),
        price_oracle=_build_price_oracle(raw.get("price_oracle", {})),
        yield_target=YieldTargetConfig(
            address=yield_raw.get("address", YieldTargetConfig.address),
            annual_yield_rate=int(yield_raw.get("annual_yield_rate", 0)),
        ),
        swap_router=SwapRouterConfig(
            address=router_raw.get("address", SwapRouterConfig.address),
            slippage_bps=int(router_raw.get("slippage_bps", 30)),
        ),
        keeper=KeeperConfig(
            address=keeper_raw.get("address") or KeeperConfig.address,
            check_interval_minutes=int(keeper_raw.get("check_interval_minutes", 15)),
        ),
        simulation=_build_simulation(raw.get("simulation", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def validate_strategy(strategy: StrategyConfig) -> None:
    """Raise ConfigurationError unless the LTV band and pacing are coherent."""
    if not (
        0
        < strategy.lower_bound_ltv
        < strategy.target_ltv
        < strategy.upper_bound_ltv
        < LTV_SCALE
    ):
        raise ConfigurationError(
            "LTV bounds must satisfy 0 < lower < target < upper < "
            f"{LTV_SCALE}, got lower={strategy.lower_bound_ltv} "
            f"target={strategy.target_ltv} upper={strategy.upper_bound_ltv}"
        )
    if not 0 < strategy.recentering_speed < LTV_SCALE:
        raise ConfigurationError(
            f"recentering_speed must be in (0, {LTV_SCALE}), "
            f"got {strategy.recentering_speed}"
        )
    if strategy.rebalance_interval <= 0:
        raise ConfigurationError(
            f"rebalance_interval must be positive, got {strategy.rebalance_interval}"
        )
    if not 0 <= strategy.annual_fee_rate < FEE_SCALE:
        raise ConfigurationError(
            f"annual_fee_rate must be in [0, {FEE_SCALE}), "
            f"got {strategy.annual_fee_rate}"
        )


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    validate_strategy(cfg.strategy)

    for label, asset in (("collateral", cfg.collateral_asset), ("debt", cfg.debt_asset)):
        if not asset.symbol:
            raise ConfigurationError(f"The {label} asset has no symbol")
        if asset.decimals < 0:
            raise ConfigurationError(f"The {label} asset has negative decimals")
    if cfg.collateral_asset.symbol == cfg.debt_asset.symbol:
        raise ConfigurationError("Collateral and debt assets must differ")

    provider = cfg.price_oracle.provider
    if provider not in ("static", "pyth"):
        raise ConfigurationError(f"Unknown price oracle provider '{provider}'")
    if provider == "pyth":
        for asset in (cfg.collateral_asset, cfg.debt_asset):
            if asset.symbol not in cfg.price_oracle.pyth.feeds:
                raise ConfigurationError(f"No Pyth feed configured for {asset.symbol}")

    if not 0 <= cfg.swap_router.slippage_bps < 10_000:
        raise ConfigurationError("slippage_bps must be in [0, 10000)")
