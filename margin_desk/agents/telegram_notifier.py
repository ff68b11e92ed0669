"""
Telegram Notifier Agent — tells the liquidation operator what the bot is doing.

Every send is best effort: failures are logged and never reach the bot loop.
"""
from __future__ import annotations

import logging

from margin_desk.agents.liquidation_bot import CycleResult
from margin_desk.utils.http_client import post_json

log = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


def _short_address(address: str) -> str:
    if len(address) <= 12:
        return address
    return f"{address[:6]}…{address[-4:]}"


def _code_safe(text: str | None) -> str:
    # Markdown code spans cannot contain a backtick
    return (text or "").replace("`", "'")


def format_liquidation(result: CycleResult) -> str:
    ids = ", ".join(f"#{i}" for i in result.liquidated_ids)
    return (
        "⚡ *Positions Liquidated*\n\n"
        f"Count: {len(result.liquidated_ids)}\n"
        f"IDs: {ids}\n"
        f"Tx: `{result.tx_hash}`"
    )


def format_cycle_error(result: CycleResult) -> str:
    return (
        "⚠️ *Liquidation Check Failed*\n\n"
        f"`{_code_safe(result.error)}`\n"
        f"At: {result.finished_at:%Y-%m-%d %H:%M:%S} UTC"
    )


async def _send(text: str, bot_token: str, chat_id: str) -> bool:
    url = f"{TELEGRAM_API_BASE}/bot{bot_token}/sendMessage"
    try:
        result = await post_json(url, {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": True,
        })
    except Exception as exc:
        log.error("Failed to send Telegram message: %s", exc)
        return False

    ok = bool(result.get("ok", False))
    if not ok:
        log.error("Telegram rejected message: %s", result)
    return ok


async def send_cycle_result(
    result: CycleResult,
    bot_token: str,
    chat_id: str,
    *,
    on_liquidation: bool = True,
    on_cycle_error: bool = False,
) -> bool:
    """
    Send a message for *result* if its outcome type is enabled.

    Returns True only when a message was sent and accepted. Quiet cycles (nothing
    to liquidate) never produce a message.
    """
    if result.error is not None:
        if not on_cycle_error:
            return False
        text = format_cycle_error(result)
    elif result.liquidated_ids:
        if not on_liquidation:
            return False
        text = format_liquidation(result)
    else:
        return False

    sent = await _send(text, bot_token, chat_id)
    if sent:
        log.info("Telegram message sent for cycle outcome")
    return sent


async def send_startup_message(bot_token: str, chat_id: str, operator: str, interval: float) -> None:
    """Send a startup notification naming the operator wallet."""
    text = (
        "\U0001f7e2 *Liquidation bot is online*\n\n"
        f"Operator: `{_short_address(operator)}`\n"
        f"Checking every *{interval:g}s*"
    )
    if await _send(text, bot_token, chat_id):
        log.info("Startup message sent to Telegram.")


async def send_shutdown_message(bot_token: str, chat_id: str) -> None:
    """Send an offline notification when the bot is shutting down."""
    if await _send("\U0001f534 *Liquidation bot is offline*", bot_token, chat_id):
        log.info("Shutdown message sent to Telegram.")
