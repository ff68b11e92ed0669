"""
Tests for the liquidation bot entry point.

Run with:  pytest tests/test_main.py
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from margin_desk import main as entry
from margin_desk.errors import ConfigError


def _make_services(connected: bool) -> MagicMock:
    services = MagicMock()
    services.chain.is_connected = AsyncMock(return_value=connected)
    services.close = AsyncMock()
    return services


@pytest.fixture(autouse=True)
def _quiet_logging():
    with patch.object(entry, "setup_logging"):
        yield


class TestMain:
    @pytest.mark.asyncio
    async def test_config_error_returns_before_connecting(self):
        with patch.object(entry, "load_config", side_effect=ConfigError("PRIVATE_KEY is not a valid private key")), \
             patch.object(entry, "build_services") as build:
            await entry.main()
        build.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreachable_rpc_never_starts_bot(self):
        services = _make_services(connected=False)
        with patch.object(entry, "load_config", return_value=MagicMock(rpc_url="http://down:8545")), \
             patch.object(entry, "build_services", return_value=services), \
             patch.object(entry, "LiquidationBot") as bot_cls:
            await entry.main()

        bot_cls.assert_not_called()
        services.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_connected_rpc_runs_bot_and_cleans_up(self):
        services = _make_services(connected=True)
        config = MagicMock(telegram_enabled=False, liquidation_interval_seconds=10.0)
        bot = MagicMock()
        bot.run_forever = AsyncMock()
        with patch.object(entry, "load_config", return_value=config), \
             patch.object(entry, "build_services", return_value=services), \
             patch.object(entry, "LiquidationBot", return_value=bot), \
             patch.object(entry, "close_client", new=AsyncMock()) as close_client:
            await entry.main()

        bot.run_forever.assert_awaited_once()
        close_client.assert_awaited_once()
        services.close.assert_awaited_once()
