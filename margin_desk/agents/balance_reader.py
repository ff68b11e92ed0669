"""
Balance Reader Agent — wallet balances and protocol holdings priced in USD.
"""
from __future__ import annotations

import asyncio
import logging

from margin_desk.agents.price_oracle import PriceOracleClient
from margin_desk.chain.client import ChainClient
from margin_desk.models import PoolBalance, ProtocolBalances, TokenBalance

log = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


class BalanceReader:
    def __init__(self, chain: ChainClient, oracle: PriceOracleClient) -> None:
        self._chain = chain
        self._oracle = oracle

    async def token_balance(self, token: str, account: str) -> TokenBalance:
        contract = self._chain.token(token)
        symbol, decimals, raw = await asyncio.gather(
            contract.symbol(), contract.decimals(), contract.balance_of(account)
        )
        usd = await self._oracle.usd_value_of(token, raw)
        return TokenBalance(symbol=symbol, decimals=decimals, raw_balance=raw, usd_value=usd)

    async def native_balance(self, account: str) -> TokenBalance:
        """Native ETH balance, priced as WETH."""
        raw = await self._chain.native_balance(account)
        usd = await self._oracle.usd_value_of(self._chain.config.token_address("WETH"), raw)
        return TokenBalance(symbol="ETH", decimals=NATIVE_DECIMALS, raw_balance=raw, usd_value=usd)

    async def wallet_balances(self, account: str) -> dict[str, TokenBalance]:
        """Native plus every supported token, keyed by symbol key."""
        tokens = self._chain.config.tokens
        results = await asyncio.gather(
            self.native_balance(account),
            *(self.token_balance(address, account) for address in tokens.values()),
        )
        return dict(zip(["ETH", *tokens.keys()], results))

    async def protocol_balances(self, account: str | None = None) -> ProtocolBalances:
        """
        Per supported token: what the positions contract holds, and the pool's
        total assets with *account*'s shares (when an account is given).
        """
        positions_address = self._chain.config.contracts.positions
        balances = ProtocolBalances()

        for key, token in self._chain.config.tokens.items():
            balances.positions_holdings[key] = await self.token_balance(token, positions_address)

            pool = await self._chain.pool_for(token)
            if pool is None:
                continue

            decimals = await self._chain.token(token).decimals()
            total_assets = await pool.total_assets()
            total_usd = await self._oracle.usd_value_of(token, total_assets)

            user_shares = user_assets = 0
            if account:
                user_shares = await pool.shares_of(account)
                if user_shares > 0:
                    user_assets = await pool.convert_shares_to_assets(user_shares)

            balances.pools[key] = PoolBalance(
                address=pool.address,
                decimals=decimals,
                total_assets=total_assets,
                total_assets_usd=total_usd,
                user_shares=user_shares,
                user_assets=user_assets,
            )
        return balances
