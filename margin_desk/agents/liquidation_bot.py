"""
Liquidation Bot Agent — polls the market for liquidatable positions and
liquidates them in one batched transaction.

The bot alternates between IDLE and CHECKING forever. A failing check is logged
and treated as a no-op; nothing a single cycle does can stop the loop. Cycles
never overlap because the PeriodicTask runs them single-flight.
"""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from margin_desk.agents.error_classifier import classify
from margin_desk.agents.tx_sequencer import TransactionSequencer
from margin_desk.chain.contracts import MarketContract
from margin_desk.utils.scheduler import PeriodicTask

log = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0


class BotState(str, Enum):
    IDLE = "idle"
    CHECKING = "checking"


@dataclass
class CycleResult:
    reported_ids: list[int] = field(default_factory=list)   # as returned by the market
    liquidated_ids: list[int] = field(default_factory=list)  # submitted in the batch
    tx_hash: str | None = None
    error: str | None = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.error is None


def filter_position_ids(raw_ids: list[int]) -> list[int]:
    """Drop zero placeholder ids and duplicates, keeping the market's order."""
    seen: set[int] = set()
    ids: list[int] = []
    for raw in raw_ids:
        position_id = int(raw)
        if position_id <= 0 or position_id in seen:
            continue
        seen.add(position_id)
        ids.append(position_id)
    return ids


class LiquidationBot:
    def __init__(
        self,
        market: MarketContract,
        sequencer: TransactionSequencer,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        on_cycle: Callable[[CycleResult], Awaitable[None]] | None = None,
    ) -> None:
        self._market = market
        self._sequencer = sequencer
        self._on_cycle = on_cycle
        self.state = BotState.IDLE
        self.cycles = 0
        self._task = PeriodicTask("liquidation-check", interval, self.check_once)

    @property
    def interval(self) -> float:
        return self._task.interval

    async def check_once(self) -> CycleResult:
        """Run one IDLE -> CHECKING -> IDLE cycle. Never raises."""
        self.state = BotState.CHECKING
        result = CycleResult()
        try:
            log.info("Checking for liquidatable positions ...")
            result.reported_ids = await self._market.liquidatable_position_ids()
            ids = filter_position_ids(result.reported_ids)

            if ids:
                log.info("Found %d liquidatable position(s): %s", len(ids), ", ".join(map(str, ids)))
                async with self._sequencer.flow() as flow:
                    pending = await flow.submit(self._market.liquidate_positions(ids))
                    result.tx_hash = pending.tx_hash
                    await pending.wait()
                result.liquidated_ids = ids
                log.info("Liquidated position(s) %s in %s", ids, result.tx_hash)
            else:
                log.info("No liquidatable positions found.")
        except Exception as exc:
            result.error = classify(exc)
            log.error("Error during liquidation check: %s", result.error, exc_info=True)
        finally:
            self.state = BotState.IDLE
            self.cycles += 1
            result.finished_at = datetime.now(timezone.utc)

        if self._on_cycle is not None:
            try:
                await self._on_cycle(result)
            except Exception as exc:
                log.error("Cycle callback failed: %s", exc)
        return result

    def start(self) -> None:
        self._task.start()

    async def stop(self) -> None:
        await self._task.stop()

    async def run_forever(self) -> None:
        """Check immediately, then every interval, until cancelled."""
        self.start()
        try:
            await self._task.wait()
        finally:
            await self.stop()
