"""Swap router that fills at oracle prices less a fixed slippage."""
from __future__ import annotations

import logging

from ...errors import ProtocolCallError
from ...fixed_point import BPS_SCALE, Rounding, mul_div
from ...interfaces.price_oracle import PriceOracle
from .token import SimulatedToken

logger = logging.getLogger(__name__)


class OracleSwapRouter:
    """Burns the input token and mints the output token at the oracle rate."""

    def __init__(
        self,
        tokens: dict[str, SimulatedToken],
        oracle: PriceOracle,
        address: str = "0xROUTER",
        slippage_bps: int = 0,
    ) -> None:
        self._tokens = tokens
        self._oracle = oracle
        self.address = address
        self.slippage_bps = slippage_bps

    def _token(self, symbol: str) -> SimulatedToken:
        token = self._tokens.get(symbol)
        if token is None:
            raise ProtocolCallError(f"Router has no pool for {symbol}")
        return token

    async def quote(self, asset_in: str, asset_out: str, amount_in: int) -> int:
        token_in, token_out = self._token(asset_in), self._token(asset_out)
        price_in = await self._oracle.get_price(asset_in)
        price_out = await self._oracle.get_price(asset_out)
        gross = mul_div(
            amount_in * price_in,
            10**token_out.decimals,
            price_out * 10**token_in.decimals,
            Rounding.DOWN,
        )
        return mul_div(gross, BPS_SCALE - self.slippage_bps, BPS_SCALE, Rounding.DOWN)

    async def swap(
        self, asset_in: str, asset_out: str, amount_in: int, account: str
    ) -> int:
        amount_out = await self.quote(asset_in, asset_out, amount_in)
        await self._token(asset_in).transfer(account, self.address, amount_in)
        self._token(asset_in).burn(self.address, amount_in)
        self._token(asset_out).mint(account, amount_out)
        logger.debug(
            "Swapped %d %s for %d %s", amount_in, asset_in, amount_out, asset_out
        )
        return amount_out
