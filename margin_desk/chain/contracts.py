"""
Typed accessors over the protocol contracts.

One method per contract call. Reads are coroutines returning plain Python
values; writes return a PreparedCall that only the TransactionSequencer turns
into a signed transaction, so nonce assignment cannot be bypassed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from margin_desk.chain.abis import (
    ERC20_ABI,
    FEE_MANAGER_ABI,
    LIQUIDITY_POOL_ABI,
    MARKET_ABI,
    POOL_FACTORY_ABI,
    POSITIONS_ABI,
    PRICE_FEED_ABI,
)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class PreparedCall:
    """An unsigned contract write waiting for a nonce."""
    function: Any            # web3 AsyncContractFunction
    label: str               # e.g. "approve(USDC)"
    gas: int | None = None   # fixed gas limit; estimated when None


@dataclass(frozen=True)
class PositionParams:
    base_token: str
    quote_token: str
    size: int
    is_short: bool
    leverage: int


class _Accessor:
    abi: list[dict] = []

    def __init__(self, w3, address: str) -> None:
        self.address = address
        self._contract = w3.eth.contract(address=address, abi=self.abi)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"


class TokenContract(_Accessor):
    """ERC-20 token. Symbol and decimals never change, so they are read once."""

    abi = ERC20_ABI

    def __init__(self, w3, address: str) -> None:
        super().__init__(w3, address)
        self._symbol: str | None = None
        self._decimals: int | None = None

    async def symbol(self) -> str:
        if self._symbol is None:
            self._symbol = await self._contract.functions.symbol().call()
        return self._symbol

    async def decimals(self) -> int:
        if self._decimals is None:
            self._decimals = int(await self._contract.functions.decimals().call())
        return self._decimals

    async def balance_of(self, account: str) -> int:
        return await self._contract.functions.balanceOf(account).call()

    async def allowance(self, owner: str, spender: str) -> int:
        return await self._contract.functions.allowance(owner, spender).call()

    def approve(self, spender: str, amount: int, label: str = "approve") -> PreparedCall:
        return PreparedCall(self._contract.functions.approve(spender, amount), label)


class OracleContract(_Accessor):
    abi = PRICE_FEED_ABI

    async def price_of(self, token: str) -> int:
        return await self._contract.functions.getTokenLatestPriceInUsd(token).call()

    async def usd_value_of(self, token: str, amount: int) -> int:
        return await self._contract.functions.getAmountInUsd(token, amount).call()


class RegistryContract(_Accessor):
    """The ERC-721 style position registry ("Positions")."""

    abi = POSITIONS_ABI

    async def owner_of(self, position_id: int) -> str:
        return await self._contract.functions.ownerOf(position_id).call()

    async def next_id(self) -> int:
        return await self._contract.functions.posId().call()

    async def state_of(self, position_id: int) -> int:
        return await self._contract.functions.getPositionState(position_id).call()


class MarketContract(_Accessor):
    abi = MARKET_ABI

    async def position_params(self, position_id: int) -> PositionParams:
        raw = await self._contract.functions.getPositionParams(position_id).call()
        return PositionParams(
            base_token=raw[0],
            quote_token=raw[1],
            size=int(raw[2]),
            is_short=bool(raw[4]),
            leverage=int(raw[5]),
        )

    async def liquidatable_position_ids(self) -> list[int]:
        return list(await self._contract.functions.getLiquidablePositions().call())

    async def trader_positions(self, trader: str) -> list[int]:
        return list(await self._contract.functions.getTraderPositions(trader).call())

    def open_position(
        self,
        token0: str,
        token1: str,
        fee: int,
        is_short: bool,
        leverage: int,
        amount: int,
        limit_price: int = 0,
        stop_loss_price: int = 0,
        *,
        gas: int | None = None,
    ) -> PreparedCall:
        fn = self._contract.functions.openPosition(
            token0, token1, fee, is_short, leverage, amount, limit_price, stop_loss_price
        )
        side = "short" if is_short else "long"
        return PreparedCall(fn, f"openPosition({side} {leverage}x)", gas)

    def close_position(self, position_id: int, *, gas: int | None = None) -> PreparedCall:
        return PreparedCall(
            self._contract.functions.closePosition(position_id), f"closePosition({position_id})", gas
        )

    def liquidate_positions(self, position_ids: list[int]) -> PreparedCall:
        ids = list(position_ids)
        return PreparedCall(
            self._contract.functions.liquidatePositions(ids), f"liquidatePositions({len(ids)})"
        )


class PoolContract(_Accessor):
    """ERC-4626 style liquidity pool for a single asset."""

    abi = LIQUIDITY_POOL_ABI

    async def total_assets(self) -> int:
        return await self._contract.functions.totalAssets().call()

    async def convert_shares_to_assets(self, shares: int) -> int:
        return await self._contract.functions.convertToAssets(shares).call()

    async def shares_of(self, account: str) -> int:
        return await self._contract.functions.balanceOf(account).call()

    async def available_borrow_capacity(self, token: str) -> int:
        return await self._contract.functions.availableBorrowCapacity(token).call()

    def deposit(self, amount: int, receiver: str) -> PreparedCall:
        return PreparedCall(self._contract.functions.deposit(amount, receiver), "deposit")

    def redeem(self, shares: int, receiver: str, owner: str) -> PreparedCall:
        return PreparedCall(self._contract.functions.redeem(shares, receiver, owner), "redeem")


class PoolFactoryContract(_Accessor):
    abi = POOL_FACTORY_ABI

    async def pool_address_for(self, token: str) -> str:
        return await self._contract.functions.getTokenToLiquidityPools(token).call()


class FeeManagerContract(_Accessor):
    abi = FEE_MANAGER_ABI

    async def default_treasure_fee(self) -> int:
        return await self._contract.functions.defaultTreasureFee().call()

    async def default_liquidation_reward(self) -> int:
        return await self._contract.functions.defaultLiquidationReward().call()

    def set_default_fees(self, treasure_fee: int, liquidation_reward: int) -> PreparedCall:
        return PreparedCall(
            self._contract.functions.setDefaultFees(treasure_fee, liquidation_reward),
            "setDefaultFees",
        )
