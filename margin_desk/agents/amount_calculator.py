"""
Amount Calculator — converts a USD target into a token amount at full precision.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from decimal import Decimal

from margin_desk.agents.price_oracle import PriceOracleClient
from margin_desk.chain.contracts import TokenContract
from margin_desk.utils.units import USD_DECIMALS, parse_units

log = logging.getLogger(__name__)


def token_amount_for_usd(usd_fixed18: int, decimals: int, price_fixed18: int) -> int:
    """
    floor(usd * 10**decimals / price), all operands integers.

    >>> token_amount_for_usd(10 * 10**18, 6, 2 * 10**18)
    5000000
    """
    if price_fixed18 <= 0:
        raise ValueError(f"Price must be positive, got {price_fixed18}")
    return (usd_fixed18 * 10**decimals) // price_fixed18


class AmountCalculator:
    def __init__(self, oracle: PriceOracleClient, tokens: Callable[[str], TokenContract]) -> None:
        self._oracle = oracle
        self._tokens = tokens

    async def amount_for_usd(self, token: str, usd_target: str | int | Decimal) -> int:
        """
        Return how many smallest units of *token* are worth *usd_target* dollars.

        Returns 0 when the token or oracle call fails or the price is unusable.
        Zero means "abort": callers must not submit a transaction with it.
        A malformed *usd_target* raises ValueError.
        """
        usd_fixed18 = parse_units(usd_target, USD_DECIMALS)
        try:
            decimals = await self._tokens(token).decimals()
            price = await self._oracle.price_of(token)
            amount = token_amount_for_usd(usd_fixed18, decimals, price)
        except Exception as exc:
            log.error("Could not size $%s of %s: %s", usd_target, token, exc)
            return 0

        log.info("$%s of %s = %d units (decimals=%d, price=%d)", usd_target, token, amount, decimals, price)
        return amount
