"""
Price Oracle Client — read-only access to the protocol price feed.

Prices are USD per whole token with 18 fraction digits. Every call goes to the
chain; nothing is cached and nothing is retried. Oracle reverts (stale price,
unsupported token) propagate unchanged for the caller to classify.
"""
from __future__ import annotations

import logging

from margin_desk.chain.contracts import OracleContract

log = logging.getLogger(__name__)


class PriceOracleClient:
    def __init__(self, contract: OracleContract) -> None:
        self._contract = contract

    async def price_of(self, token: str) -> int:
        """USD price of one whole *token*, fixed-18."""
        price = await self._contract.price_of(token)
        log.debug("Price of %s: %d", token, price)
        return price

    async def usd_value_of(self, token: str, amount: int) -> int:
        """USD value of *amount* smallest units of *token*, fixed-18."""
        return await self._contract.usd_value_of(token, amount)
