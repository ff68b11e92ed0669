"""
Log wallet balances and protocol state on their polling cadences until Ctrl-C.

Run with:  python scripts/watch_protocol.py
"""
from __future__ import annotations

import asyncio
import logging

from margin_desk.agents.position_scanner import summarize
from margin_desk.config import load_config
from margin_desk.services import Services, build_services
from margin_desk.utils.logger import setup_logging
from margin_desk.utils.scheduler import PeriodicTask
from margin_desk.utils.units import format_units, format_usd

log = logging.getLogger("watch_protocol")


async def log_wallet(services: Services) -> None:
    account = services.chain.address
    for key, bal in (await services.balances.wallet_balances(account)).items():
        log.info("wallet %-5s %s (~$%s)", key, bal.balance, bal.usd_formatted)


async def log_protocol(services: Services) -> None:
    protocol = await services.balances.protocol_balances(services.chain.address)
    for key, pool in protocol.pools.items():
        log.info(
            "pool %-5s assets %s (~$%s), my shares %s",
            key, format_units(pool.total_assets, pool.decimals),
            format_usd(pool.total_assets_usd), format_units(pool.user_shares, pool.decimals),
        )
    summary = summarize(await services.scanner.scan_all())
    log.info(
        "positions: %d live, long $%s, short $%s, liquidatable %s",
        summary.position_count, format_usd(summary.long_usd),
        format_usd(summary.short_usd), summary.liquidatable_ids,
    )


async def main() -> None:
    setup_logging()
    config = load_config()
    services = build_services(config)
    tasks = [
        PeriodicTask("wallet", config.wallet_poll_interval_seconds, lambda: log_wallet(services)),
        PeriodicTask("protocol", config.protocol_poll_interval_seconds, lambda: log_protocol(services)),
    ]
    try:
        await asyncio.gather(*(t.start() for t in tasks))
    finally:
        for t in tasks:
            await t.stop()
        await services.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
