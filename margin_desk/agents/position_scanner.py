"""
Position Scanner Agent — walks the whole position-id space and returns the live set.

This is a full O(N) scan over ids 1..next_id-1, not a paginated or indexed
query. Every call starts over from id 1 and keeps no state between calls.
`max_concurrency` is the extension point for large registries: it caps the
number of reads in flight without changing the result.
"""
from __future__ import annotations

import asyncio
import logging

from margin_desk.agents.position_reader import PositionReader
from margin_desk.chain.contracts import RegistryContract
from margin_desk.models import AccountExposure, ExposureSummary, Position, PositionState

log = logging.getLogger(__name__)


class PositionScanner:
    def __init__(
        self,
        registry: RegistryContract,
        reader: PositionReader,
        *,
        max_concurrency: int | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self._registry = registry
        self._reader = reader
        self._max_concurrency = max_concurrency

    async def scan_all(self) -> list[Position]:
        """
        Read every position id concurrently and return the live ones ordered by id.

        A failed read is logged and skipped so one bad position never aborts the scan.
        """
        next_id = await self._registry.next_id()
        ids = range(1, int(next_id))
        log.debug("Scanning position ids 1..%d", next_id - 1)

        limiter = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None

        async def read(position_id: int) -> Position | None:
            if limiter is None:
                return await self._reader.read_position(position_id)
            async with limiter:
                return await self._reader.read_position(position_id)

        results = await asyncio.gather(*(read(i) for i in ids), return_exceptions=True)

        positions: list[Position] = []
        for position_id, result in zip(ids, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                log.warning("Failed to read position %d: %s", position_id, result)
                continue
            if result is None or result.state is PositionState.NONE:
                continue
            positions.append(result)

        log.info("Scanned %d id(s), %d live position(s)", len(ids), len(positions))
        return positions

    async def positions_of(self, owner: str) -> list[Position]:
        """Live positions owned by *owner* (address match is case-insensitive)."""
        owner = owner.lower()
        return [p for p in await self.scan_all() if p.owner.lower() == owner]


def summarize(positions: list[Position]) -> ExposureSummary:
    """Aggregate protocol-wide and per-account USD exposure."""
    summary = ExposureSummary()
    for p in positions:
        if p.state is PositionState.NONE:
            continue
        summary.position_count += 1
        account = summary.accounts.setdefault(p.owner, AccountExposure(owner=p.owner))
        account.position_ids.append(p.id)
        if p.is_short:
            summary.short_usd += p.size_usd
            account.short_usd += p.size_usd
        else:
            summary.long_usd += p.size_usd
            account.long_usd += p.size_usd
        if p.state.is_liquidatable:
            summary.liquidatable_ids.append(p.id)
    return summary
