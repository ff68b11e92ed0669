"""
Tests for the Balance Reader agent.

Run with:  pytest tests/test_balance_reader.py
"""
from __future__ import annotations

from types import MappingProxyType, SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from margin_desk.agents.balance_reader import BalanceReader

ACCOUNT = "0x1111111111111111111111111111111111111111"
POSITIONS = "0x2222222222222222222222222222222222222222"
USDC = "0x3333333333333333333333333333333333333333"
WETH = "0x4444444444444444444444444444444444444444"
POOL = "0x5555555555555555555555555555555555555555"


def _make_token(symbol: str, decimals: int, balance: int) -> MagicMock:
    token = MagicMock()
    token.symbol = AsyncMock(return_value=symbol)
    token.decimals = AsyncMock(return_value=decimals)
    token.balance_of = AsyncMock(return_value=balance)
    return token


def _make_reader(pool=None):
    tokens = {USDC: _make_token("USDC", 6, 2_500_000), WETH: _make_token("WETH", 18, 10**18)}
    config = SimpleNamespace(
        tokens=MappingProxyType({"WETH": WETH, "USDC": USDC}),
        contracts=SimpleNamespace(positions=POSITIONS),
        token_address=lambda key: {"WETH": WETH, "USDC": USDC}[key],
    )
    chain = SimpleNamespace(
        config=config,
        token=tokens.__getitem__,
        native_balance=AsyncMock(return_value=2 * 10**18),
        pool_for=AsyncMock(side_effect=lambda token: pool if token == USDC else None),
    )
    oracle = MagicMock()
    oracle.usd_value_of = AsyncMock(side_effect=lambda token, amount: amount * 10**12 if token == USDC else amount * 3_000)
    return BalanceReader(chain, oracle), chain, oracle


class TestWalletBalances:
    @pytest.mark.asyncio
    async def test_native_priced_as_weth(self):
        reader, _, oracle = _make_reader()

        balance = await reader.native_balance(ACCOUNT)

        assert balance.symbol == "ETH"
        assert balance.balance == "2.0"
        oracle.usd_value_of.assert_awaited_once_with(WETH, 2 * 10**18)

    @pytest.mark.asyncio
    async def test_wallet_balances_keyed_by_symbol(self):
        reader, _, _ = _make_reader()

        balances = await reader.wallet_balances(ACCOUNT)

        assert list(balances) == ["ETH", "WETH", "USDC"]
        assert balances["USDC"].balance == "2.5"
        assert balances["USDC"].usd_formatted == "2.50"
        assert balances["WETH"].usd_formatted == "3000.00"


class TestProtocolBalances:
    @pytest.mark.asyncio
    async def test_holdings_and_pool_share(self):
        pool = MagicMock()
        pool.address = POOL
        pool.total_assets = AsyncMock(return_value=9_000_000)
        pool.shares_of = AsyncMock(return_value=400)
        pool.convert_shares_to_assets = AsyncMock(return_value=1_000_000)
        reader, _, _ = _make_reader(pool)

        balances = await reader.protocol_balances(ACCOUNT)

        assert set(balances.positions_holdings) == {"WETH", "USDC"}
        assert list(balances.pools) == ["USDC"]
        usdc_pool = balances.pools["USDC"]
        assert (usdc_pool.total_assets, usdc_pool.user_shares, usdc_pool.user_assets) == (9_000_000, 400, 1_000_000)
        pool.convert_shares_to_assets.assert_awaited_once_with(400)

    @pytest.mark.asyncio
    async def test_without_account_skips_share_lookup(self):
        pool = MagicMock()
        pool.address = POOL
        pool.total_assets = AsyncMock(return_value=1)
        pool.shares_of = AsyncMock()
        reader, _, _ = _make_reader(pool)

        balances = await reader.protocol_balances()

        pool.shares_of.assert_not_awaited()
        assert balances.pools["USDC"].user_assets == 0
