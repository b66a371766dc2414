"""Keeper service — triggers rebalances when due and reports the outcome."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..errors import VaultError
from ..fixed_point import format_ratio
from ..interfaces.notifier import Notifier
from ..models import RebalanceReport, VaultSnapshot
from ..vault import LeveragedVault

logger = logging.getLogger(__name__)


class Keeper:
    """Permissionless rebalance trigger for one vault.

    Failures are reported and left for the next check; the keeper never
    retries a failed rebalance inline. ``refresh`` runs before every check
    and report, e.g. to bring a simulated market up to wall time.
    """

    def __init__(
        self,
        vault: LeveragedVault,
        address: str,
        notifiers: list[Notifier] | None = None,
        check_interval_minutes: int = 15,
        refresh: Callable[[], Awaitable[Any]] | None = None,
    ) -> None:
        self._vault = vault
        self.address = address
        self._notifiers = list(notifiers or [])
        self.check_interval_minutes = check_interval_minutes
        self._refresh = refresh

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    def _build_rebalance_message(self, report: RebalanceReport) -> str:
        recenter = report.recenter
        action = "No debt change"
        if recenter.borrowed:
            action = f"Borrowed {recenter.borrowed} {self._vault.debt_asset.symbol}"
        elif recenter.repaid:
            action = f"Repaid {recenter.repaid} {self._vault.debt_asset.symbol}"
        return (
            f"🔁 {self._vault.name} ({self._vault.symbol}) rebalanced\n"
            f"\n"
            f"LTV: {format_ratio(recenter.previous_ltv)} → "
            f"{format_ratio(report.resulting_ltv)}\n"
            f"{action}\n"
            f"Harvested: {report.harvest.profit} {self._vault.debt_asset.symbol}\n"
            f"Keeper reward: {report.reward_shares} shares\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    def _build_status_message(self, snapshot: VaultSnapshot) -> str:
        ltv = format_ratio(snapshot.ltv) if snapshot.ltv is not None else "—"
        status = "⏳ Rebalance due" if snapshot.rebalance_due else "✅ Settled"
        return (
            f"📋 {self._vault.name} ({self._vault.symbol})\n"
            f"\n"
            f"{status}\n"
            f"\n"
            f"Total assets: {snapshot.total_assets} "
            f"{self._vault.collateral_asset.symbol}\n"
            f"Total shares: {snapshot.total_shares}\n"
            f"Share price: {snapshot.share_price:.6f}\n"
            f"Collateral value: {snapshot.collateral_value}\n"
            f"Debt value: {snapshot.debt_value}\n"
            f"LTV: {ltv}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _send_log(self, message: str, silent: bool = True) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=silent)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str, subject: str = "") -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    # ------------------------------------------------------------------
    # Core workflows
    # ------------------------------------------------------------------

    async def check_and_rebalance(self) -> RebalanceReport | None:
        """Rebalance once if due; return the report, or None if nothing ran."""
        if self._refresh is not None:
            await self._refresh()
        try:
            if not await self._vault.is_rebalance_due():
                logger.info("Rebalance not due for %s", self._vault.symbol)
                return None
            report = await self._vault.rebalance(self.address)
        except VaultError as e:
            logger.error("Rebalance of %s failed: %s", self._vault.symbol, e)
            await self._send_alert(
                f"⚠️ Rebalance of {self._vault.name} failed\n\n{e}\n\n"
                f"{self._now_str()} UTC",
                subject="⚠️ Rebalance failed",
            )
            return None

        await self._send_log(self._build_rebalance_message(report), silent=True)
        return report

    async def generate_report(self) -> VaultSnapshot:
        """Send a status report and return the snapshot it was built from."""
        if self._refresh is not None:
            await self._refresh()
        snapshot = await self._vault.snapshot()
        await self._send_log(self._build_status_message(snapshot), silent=False)
        logger.info("Status report sent")
        return snapshot

    async def run_continuous(self, check_interval_minutes: int | None = None) -> None:
        """Run the keeper loop until cancelled."""
        interval = check_interval_minutes or self.check_interval_minutes
        logger.info("Starting keeper loop (checking every %d minutes)", interval)

        while True:
            try:
                await self.check_and_rebalance()
                await asyncio.sleep(interval * 60)
            except Exception as e:
                logger.error("Error in keeper loop: %s", e)
                await asyncio.sleep(60)
