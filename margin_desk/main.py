"""
main.py — Entry point for the unattended liquidation bot.

Run with:
    python -m margin_desk.main
or, once installed:
    margin-desk-liquidator
"""
from __future__ import annotations

import asyncio
import logging

from margin_desk.agents import telegram_notifier
from margin_desk.agents.liquidation_bot import CycleResult, LiquidationBot
from margin_desk.config import AppConfig, load_config
from margin_desk.errors import ConfigError
from margin_desk.services import build_services
from margin_desk.utils.http_client import close_client
from margin_desk.utils.logger import setup_logging

log = logging.getLogger(__name__)


def make_cycle_reporter(config: AppConfig):
    """Build the per-cycle hook that forwards outcomes to Telegram."""

    async def report(result: CycleResult) -> None:
        if not config.telegram_enabled:
            return
        await telegram_notifier.send_cycle_result(
            result,
            bot_token=config.telegram_bot_token,
            chat_id=config.telegram_chat_id,
            on_liquidation=config.notifications.on_liquidation,
            on_cycle_error=config.notifications.on_cycle_error,
        )

    return report


async def main() -> None:
    setup_logging()

    log.info("Loading configuration …")
    try:
        config = load_config()
    except ConfigError as exc:
        log.critical("Configuration error: %s", exc)
        return

    services = build_services(config)
    if not await services.chain.is_connected():
        log.critical("Cannot reach the RPC endpoint at %s", config.rpc_url)
        await services.close()
        return

    operator = services.chain.address
    bot = LiquidationBot(
        services.chain.market,
        services.sequencer,
        interval=config.liquidation_interval_seconds,
        on_cycle=make_cycle_reporter(config),
    )

    log.info(
        "Liquidation bot started. Using wallet %s, checking every %.0fs.",
        operator, config.liquidation_interval_seconds,
    )

    if config.telegram_enabled:
        await telegram_notifier.send_startup_message(
            bot_token=config.telegram_bot_token,
            chat_id=config.telegram_chat_id,
            operator=operator,
            interval=config.liquidation_interval_seconds,
        )

    try:
        await bot.run_forever()
    except (KeyboardInterrupt, asyncio.CancelledError):
        log.info("Shutting down ...")
    finally:
        if config.telegram_enabled:
            await telegram_notifier.send_shutdown_message(
                bot_token=config.telegram_bot_token,
                chat_id=config.telegram_chat_id,
            )
        await close_client()
        await services.close()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
