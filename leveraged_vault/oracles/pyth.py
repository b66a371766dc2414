"""Pyth Network price oracle adapter."""
from __future__ import annotations

import asyncio
import logging
import ssl
import time
from typing import Any, Callable

import aiohttp
import certifi

from ..config import PythConfig
from ..errors import OraclePriceUnavailable

logger = logging.getLogger(__name__)


class PythOracle:
    """Fetch prices from the Pyth Hermes API in oracle reference units."""

    def __init__(
        self, config: PythConfig, clock: Callable[[], float] = time.time
    ) -> None:
        self.hermes_url = config.hermes_url
        self.price_feeds = {
            symbol: feed_id.lower().removeprefix("0x")
            for symbol, feed_id in config.feeds.items()
        }
        self.max_price_age = config.max_price_age
        self.reference_decimals = config.reference_decimals
        self.timeout = config.timeout
        self._clock = clock

    async def _fetch_parsed(self, feed_id: str) -> list[dict[str, Any]]:
        url = f"{self.hermes_url}?ids[]={feed_id}"
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        raise OraclePriceUnavailable(
                            f"Pyth returned HTTP {response.status}"
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise OraclePriceUnavailable(f"Error fetching prices from Pyth: {e}") from e

        return data.get("parsed", [])

    def _scale(self, price_raw: int, expo: int) -> int:
        shift = self.reference_decimals + expo
        if shift >= 0:
            return price_raw * 10**shift
        return price_raw // 10 ** (-shift)

    async def get_price(self, asset: str) -> int:
        """Return the latest price of ``asset`` or raise OraclePriceUnavailable."""
        feed_id = self.price_feeds.get(asset)
        if not feed_id:
            raise OraclePriceUnavailable(f"No Pyth feed configured for {asset}")

        parsed = await self._fetch_parsed(feed_id)
        item = next(
            (p for p in parsed if p.get("id", "").lower().removeprefix("0x") == feed_id),
            None,
        )
        if item is None:
            raise OraclePriceUnavailable(f"Pyth response has no feed for {asset}")

        price_data = item.get("price", {})
        price_raw = int(price_data.get("price", 0))
        expo = int(price_data.get("expo", 0))
        publish_time = int(price_data.get("publish_time", 0))

        age = int(self._clock()) - publish_time
        if age > self.max_price_age:
            raise OraclePriceUnavailable(
                f"Pyth price for {asset} is stale ({age}s > {self.max_price_age}s)"
            )
        if age < 0:
            raise OraclePriceUnavailable(
                f"Pyth price for {asset} is published {-age}s in the future"
            )

        price = self._scale(price_raw, expo) if price_raw > 0 else 0
        if price <= 0:
            raise OraclePriceUnavailable(f"Pyth returned a non-positive price for {asset}")

        logger.debug("Pyth price %s: %d (expo %d, age %ds)", asset, price, expo, age)
        return price
