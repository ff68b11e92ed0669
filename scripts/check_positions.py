"""
Print every live position and the protocol-wide exposure.

Run with:  python scripts/check_positions.py
"""
from __future__ import annotations

import asyncio

from margin_desk.agents.position_scanner import summarize
from margin_desk.config import load_config
from margin_desk.services import build_services
from margin_desk.utils.logger import setup_logging
from margin_desk.utils.units import format_usd


async def main() -> None:
    setup_logging()
    services = build_services(load_config())
    try:
        positions = await services.scanner.scan_all()
        for p in positions:
            print("\n--- Position Details ---")
            print(f"Position ID: {p.id}")
            print(f"Owner: {p.owner}")
            print(f"State: {p.state.name}")
            print(f"Liquidable: {'Yes' if p.state.is_liquidatable else 'No'}")
            print(f"Type: {p.direction} {p.leverage}x")
            print(f"Pair: {p.base_symbol}/{p.quote_symbol}")
            print(f"Size: {p.size_formatted} {p.base_symbol} (~${p.size_usd_formatted})")

        summary = summarize(positions)
        print("\n========================")
        print(f"Total Positions: {summary.position_count}")
        print(f"Long exposure:  ${format_usd(summary.long_usd)}")
        print(f"Short exposure: ${format_usd(summary.short_usd)}")
        print(f"Liquidatable:   {summary.liquidatable_ids or 'none'}")
        for owner, account in summary.accounts.items():
            print(f"  {owner}: {len(account.position_ids)} position(s), ${format_usd(account.total_usd)}")
    finally:
        await services.close()


if __name__ == "__main__":
    asyncio.run(main())
