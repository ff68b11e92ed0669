"""
Tests for the Liquidation Bot agent.

Run with:  pytest tests/test_liquidation_bot.py
"""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from margin_desk.agents.liquidation_bot import BotState, LiquidationBot, filter_position_ids
from margin_desk.agents.tx_sequencer import TransactionSequencer
from margin_desk.chain.contracts import PreparedCall

OPERATOR = "0x1111111111111111111111111111111111111111"


def _make_sequencer(status: int = 1) -> tuple[TransactionSequencer, MagicMock]:
    w3 = MagicMock()
    w3.eth.get_transaction_count = AsyncMock(return_value=0)
    w3.eth.send_raw_transaction = AsyncMock(return_value=b"\x42" * 32)
    w3.eth.wait_for_transaction_receipt = AsyncMock(return_value={"status": status, "blockNumber": 9})
    account = MagicMock()
    account.address = OPERATOR
    account.sign_transaction = MagicMock(return_value=SimpleNamespace(raw_transaction=b"signed"))
    return TransactionSequencer(w3, account), w3


def _make_market(ids: list[int] | Exception) -> MagicMock:
    market = MagicMock()
    if isinstance(ids, Exception):
        market.liquidatable_position_ids = AsyncMock(side_effect=ids)
    else:
        market.liquidatable_position_ids = AsyncMock(return_value=ids)

    def liquidate(position_ids):
        function = MagicMock()
        function.build_transaction = AsyncMock(side_effect=lambda params: dict(params))
        return PreparedCall(function, f"liquidatePositions({len(position_ids)})")

    market.liquidate_positions = MagicMock(side_effect=liquidate)
    return market


class TestFilterPositionIds:
    def test_drops_zero_placeholders(self):
        assert filter_position_ids([0, 0, 7]) == [7]

    def test_all_zero(self):
        assert filter_position_ids([0, 0]) == []

    def test_duplicates_removed_order_kept(self):
        assert filter_position_ids([5, 3, 5, 0, 3, 8]) == [5, 3, 8]


class TestCheckOnce:
    @pytest.mark.asyncio
    async def test_single_batch_for_filtered_ids(self):
        sequencer, w3 = _make_sequencer()
        market = _make_market([0, 0, 7])
        bot = LiquidationBot(market, sequencer)

        result = await bot.check_once()

        market.liquidate_positions.assert_called_once_with([7])
        assert w3.eth.send_raw_transaction.await_count == 1
        w3.eth.wait_for_transaction_receipt.assert_awaited_once()
        assert result.liquidated_ids == [7]
        assert result.tx_hash == "0x" + "42" * 32
        assert result.ok

    @pytest.mark.asyncio
    async def test_nothing_submitted_for_placeholders_only(self):
        sequencer, w3 = _make_sequencer()
        market = _make_market([0, 0])
        bot = LiquidationBot(market, sequencer)

        result = await bot.check_once()

        market.liquidate_positions.assert_not_called()
        w3.eth.send_raw_transaction.assert_not_awaited()
        assert result.liquidated_ids == []
        assert result.ok

    @pytest.mark.asyncio
    async def test_rpc_failure_is_swallowed(self):
        sequencer, _ = _make_sequencer()
        bot = LiquidationBot(_make_market(ConnectionError("rpc down")), sequencer)

        result = await bot.check_once()

        assert not result.ok
        assert "rpc down" in result.error
        assert bot.state is BotState.IDLE
        assert bot.cycles == 1

    @pytest.mark.asyncio
    async def test_reverted_batch_is_reported_not_raised(self):
        sequencer, _ = _make_sequencer(status=0)
        bot = LiquidationBot(_make_market([3]), sequencer)

        result = await bot.check_once()

        assert not result.ok
        assert result.liquidated_ids == []
        assert result.tx_hash is not None

    @pytest.mark.asyncio
    async def test_cycle_callback_receives_result(self):
        sequencer, _ = _make_sequencer()
        on_cycle = AsyncMock()
        bot = LiquidationBot(_make_market([4]), sequencer, on_cycle=on_cycle)

        result = await bot.check_once()

        on_cycle.assert_awaited_once_with(result)

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_escape(self):
        sequencer, _ = _make_sequencer()
        on_cycle = AsyncMock(side_effect=RuntimeError("telegram down"))
        bot = LiquidationBot(_make_market([]), sequencer, on_cycle=on_cycle)
        result = await bot.check_once()
        assert result.ok


class TestLoop:
    @pytest.mark.asyncio
    async def test_loop_keeps_running_after_failures(self):
        sequencer, _ = _make_sequencer()
        market = _make_market(ConnectionError("flaky"))
        bot = LiquidationBot(market, sequencer, interval=0.01)

        bot.start()
        await asyncio.sleep(0.05)
        await bot.stop()

        assert market.liquidatable_position_ids.await_count >= 2
        assert bot.state is BotState.IDLE

    @pytest.mark.asyncio
    async def test_slow_cycle_never_overlaps(self):
        sequencer, _ = _make_sequencer()
        market = _make_market([])
        active = {"now": 0, "max": 0}

        async def slow_ids():
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
            await asyncio.sleep(0.03)
            active["now"] -= 1
            return []

        market.liquidatable_position_ids = AsyncMock(side_effect=slow_ids)
        bot = LiquidationBot(market, sequencer, interval=0.01)

        bot.start()
        await asyncio.sleep(0.1)
        await bot.stop()

        assert active["max"] == 1
