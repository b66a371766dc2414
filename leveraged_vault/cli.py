"""Command-line interface for the leveraged vault keeper and simulator."""
from __future__ import annotations

import argparse
import asyncio
import sys
import time

from .config import AppConfig, load_config
from .interfaces.notifier import Notifier
from .logging_setup import configure_logging
from .notifications import TelegramNotifier
from .services import Keeper, Simulation, SimulationClock, build_environment


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="leveraged-vault",
        description="Leveraged yield vault keeper and simulator",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("check", help="Rebalance once if due")
    sub.add_parser("report", help="Send a vault status report")

    keeper_parser = sub.add_parser("keeper", help="Continuous keeper loop")
    keeper_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Check interval in minutes (overrides config)",
    )

    simulate_parser = sub.add_parser("simulate", help="Run a step simulation")
    simulate_parser.add_argument(
        "steps",
        nargs="?",
        type=int,
        default=None,
        help="Number of steps (overrides config)",
    )

    return parser


def build_notifiers(config: AppConfig) -> list[Notifier]:
    notifiers: list[Notifier] = []
    if config.notifications.telegram.enabled:
        notifiers.append(TelegramNotifier(config.notifications.telegram))
    return notifiers


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "simulate":
        env = await build_environment(config, SimulationClock())
        keeper = Keeper(
            env.vault,
            config.keeper.address,
            build_notifiers(config),
            config.keeper.check_interval_minutes,
        )
        await Simulation(env, keeper).run(args.steps or config.simulation.steps)
        await keeper.generate_report()
        return

    # Live commands accrue the simulated market in wall time before each check.
    env = await build_environment(config, time.time)
    keeper = Keeper(
        env.vault,
        config.keeper.address,
        build_notifiers(config),
        config.keeper.check_interval_minutes,
        refresh=env.sync,
    )

    if args.command == "check":
        await keeper.check_and_rebalance()
    elif args.command == "report":
        await keeper.generate_report()
    elif args.command == "keeper":
        await keeper.run_continuous(args.interval)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    asyncio.run(_run(args))
