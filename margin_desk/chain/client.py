"""
Chain client — one AsyncWeb3 connection plus the signer and contract accessors.

The RPC connection is stateless and shared by every reader; the signer is only
used by the TransactionSequencer.
"""
from __future__ import annotations

import logging

from eth_account import Account
from web3 import AsyncWeb3

from margin_desk.chain.contracts import (
    ZERO_ADDRESS,
    FeeManagerContract,
    MarketContract,
    OracleContract,
    PoolContract,
    PoolFactoryContract,
    RegistryContract,
    TokenContract,
)
from margin_desk.config import AppConfig

log = logging.getLogger(__name__)


class ChainClient:
    def __init__(self, config: AppConfig, w3: AsyncWeb3 | None = None, account=None) -> None:
        self.config = config
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.rpc_url))
        self.account = account or Account.from_key(config.private_key)

        addrs = config.contracts
        self.oracle = OracleContract(self.w3, addrs.price_feed)
        self.registry = RegistryContract(self.w3, addrs.positions)
        self.market = MarketContract(self.w3, addrs.market)
        self.pool_factory = PoolFactoryContract(self.w3, addrs.pool_factory)
        self.fee_manager = FeeManagerContract(self.w3, addrs.fee_manager)

        self._tokens: dict[str, TokenContract] = {}
        self._pools: dict[str, PoolContract] = {}

    @property
    def address(self) -> str:
        """The signer's address."""
        return self.account.address

    def token(self, address: str) -> TokenContract:
        key = AsyncWeb3.to_checksum_address(address)
        if key not in self._tokens:
            self._tokens[key] = TokenContract(self.w3, key)
        return self._tokens[key]

    def pool(self, address: str) -> PoolContract:
        key = AsyncWeb3.to_checksum_address(address)
        if key not in self._pools:
            self._pools[key] = PoolContract(self.w3, key)
        return self._pools[key]

    async def pool_for(self, token: str) -> PoolContract | None:
        """Resolve the liquidity pool for *token*; None when the factory has none."""
        address = await self.pool_factory.pool_address_for(token)
        if not address or int(address, 16) == int(ZERO_ADDRESS, 16):
            log.debug("No liquidity pool registered for %s", token)
            return None
        return self.pool(address)

    async def native_balance(self, account: str) -> int:
        return await self.w3.eth.get_balance(account)

    async def is_connected(self) -> bool:
        return await self.w3.is_connected()

    async def close(self) -> None:
        provider = self.w3.provider
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
