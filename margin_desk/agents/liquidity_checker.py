"""
Liquidity Capacity Checker — pre-flight check that a pool can fund the borrow
a leveraged position needs.

The check is advisory. The contract stays the final arbiter, and capacity that
shrinks between the check and the transaction shows up as an ordinary revert.
"""
from __future__ import annotations

import logging
from collections.abc import Callable

from margin_desk.chain.contracts import PoolContract, TokenContract
from margin_desk.models import BorrowCapacity
from margin_desk.utils.units import format_units

log = logging.getLogger(__name__)


def required_borrow(margin: int, leverage: int) -> int:
    """Amount the pool must lend for *margin* at *leverage*: margin * (leverage - 1)."""
    if leverage < 1:
        raise ValueError(f"Leverage must be at least 1, got {leverage}")
    return margin * (leverage - 1)


def is_sufficient(required: int, capacity: BorrowCapacity) -> bool:
    return capacity.raw_capacity >= required


class LiquidityCapacityChecker:
    def __init__(self, tokens: Callable[[str], TokenContract]) -> None:
        self._tokens = tokens

    async def capacity_of(self, pool: PoolContract, token: str) -> BorrowCapacity:
        raw = await pool.available_borrow_capacity(token)
        decimals = await self._tokens(token).decimals()
        capacity = BorrowCapacity(raw_capacity=raw, capacity_formatted=format_units(raw, decimals))
        log.debug("Borrow capacity of pool %s for %s: %s", pool.address, token, capacity.capacity_formatted)
        return capacity

    async def check(self, pool: PoolContract | None, token: str, margin: int, leverage: int) -> tuple[bool, BorrowCapacity | None]:
        """
        Return (sufficient, capacity) for opening *margin* at *leverage*.

        Leverage 1 borrows nothing and is sufficient without reading the pool.
        A missing pool is insufficient for any non-zero borrow.
        """
        required = required_borrow(margin, leverage)
        if required == 0:
            return True, None
        if pool is None:
            return False, None

        capacity = await self.capacity_of(pool, token)
        ok = is_sufficient(required, capacity)
        if not ok:
            log.warning(
                "Pool %s cannot lend %d of %s (capacity %d)",
                pool.address, required, token, capacity.raw_capacity,
            )
        return ok, capacity
