"""
Tests for unit conversion, the Amount Calculator and the Liquidity Capacity Checker.

Run with:  pytest tests/test_amounts.py
"""
from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from margin_desk.agents.amount_calculator import AmountCalculator, token_amount_for_usd
from margin_desk.agents.liquidity_checker import (
    LiquidityCapacityChecker,
    is_sufficient,
    required_borrow,
)
from margin_desk.models import BorrowCapacity
from margin_desk.utils.units import format_units, format_usd, parse_units

USDC = "0x3333333333333333333333333333333333333333"
WBTC = "0x6666666666666666666666666666666666666666"


def _make_tokens(decimals: dict[str, int]):
    tokens = {}
    for address, d in decimals.items():
        token = MagicMock()
        token.decimals = AsyncMock(return_value=d)
        tokens[address] = token
    return tokens.__getitem__


class TestUnits:
    def test_parse_units(self):
        assert parse_units("10", 18) == 10 * 10**18
        assert parse_units("1.5", 6) == 1_500_000
        assert parse_units("0.000001", 6) == 1
        assert parse_units(Decimal("2.50"), 2) == 250
        assert parse_units(7, 0) == 7

    @pytest.mark.parametrize("bad", ["abc", "-1", "NaN", "Infinity", "0.0000001"])
    def test_parse_units_rejects(self, bad):
        with pytest.raises(ValueError):
            parse_units(bad, 6)

    def test_format_units(self):
        assert format_units(1_500_000, 6) == "1.5"
        assert format_units(100 * 10**18, 18) == "100.0"
        assert format_units(1, 8) == "0.00000001"
        assert format_units(-25, 1) == "-2.5"

    def test_format_usd(self):
        assert format_usd(1234_567 * 10**15) == "1234.57"
        assert format_usd(0) == "0.00"


class TestTokenAmountForUsd:
    def test_exact_floor(self):
        # $10 at $3 per token with 6 decimals: 3.333333... -> 3333333
        assert token_amount_for_usd(10 * 10**18, 6, 3 * 10**18) == 3_333_333

    def test_large_values_stay_exact(self):
        usd = parse_units("123456789.123456789123456789", 18)
        price = parse_units("65000.12", 18)
        assert token_amount_for_usd(usd, 8, price) == (usd * 10**8) // price

    def test_monotonic_in_usd(self):
        price = 2_345 * 10**18
        amounts = [token_amount_for_usd(parse_units(u, 18), 18, price) for u in ("1", "1.01", "50", "50.5")]
        assert amounts == sorted(amounts)

    def test_monotonic_in_price(self):
        usd = parse_units("250", 18)
        prices = [parse_units(p, 18) for p in ("0.99", "1", "1.01", "2500", "65000.5")]
        amounts = [token_amount_for_usd(usd, 6, p) for p in prices]
        assert amounts == sorted(amounts, reverse=True)

    def test_non_positive_price_rejected(self):
        with pytest.raises(ValueError):
            token_amount_for_usd(10**18, 6, 0)


class TestAmountCalculator:
    @pytest.mark.asyncio
    async def test_amount_for_usd(self):
        oracle = MagicMock()
        oracle.price_of = AsyncMock(return_value=60_000 * 10**18)
        calculator = AmountCalculator(oracle, _make_tokens({WBTC: 8}))

        assert await calculator.amount_for_usd(WBTC, "600") == 1_000_000

    @pytest.mark.asyncio
    async def test_higher_price_never_buys_more(self):
        oracle = MagicMock()
        calculator = AmountCalculator(oracle, _make_tokens({WBTC: 8}))

        amounts = []
        for price in (30_000, 60_000, 60_001, 120_000):
            oracle.price_of = AsyncMock(return_value=price * 10**18)
            amounts.append(await calculator.amount_for_usd(WBTC, "600"))

        assert amounts == sorted(amounts, reverse=True)
        assert amounts[0] > amounts[-1]

    @pytest.mark.asyncio
    async def test_same_inputs_same_amount(self):
        oracle = MagicMock()
        oracle.price_of = AsyncMock(return_value=parse_units("3123.45", 18))
        calculator = AmountCalculator(oracle, _make_tokens({USDC: 6}))

        results = {await calculator.amount_for_usd(USDC, "777.77") for _ in range(3)}

        assert len(results) == 1
        assert isinstance(results.pop(), int)

    @pytest.mark.asyncio
    async def test_oracle_failure_returns_zero(self):
        oracle = MagicMock()
        oracle.price_of = AsyncMock(side_effect=ConnectionError("rpc down"))
        calculator = AmountCalculator(oracle, _make_tokens({USDC: 6}))

        assert await calculator.amount_for_usd(USDC, "10") == 0

    @pytest.mark.asyncio
    async def test_zero_price_returns_zero(self):
        oracle = MagicMock()
        oracle.price_of = AsyncMock(return_value=0)
        calculator = AmountCalculator(oracle, _make_tokens({USDC: 6}))

        assert await calculator.amount_for_usd(USDC, "10") == 0

    @pytest.mark.asyncio
    async def test_malformed_usd_raises(self):
        calculator = AmountCalculator(MagicMock(), _make_tokens({USDC: 6}))
        with pytest.raises(ValueError):
            await calculator.amount_for_usd(USDC, "ten dollars")


class TestLiquidityChecker:
    def test_required_borrow(self):
        assert required_borrow(1_000, 1) == 0
        assert required_borrow(1_000, 5) == 4_000
        with pytest.raises(ValueError):
            required_borrow(1_000, 0)

    def test_equal_capacity_is_sufficient(self):
        assert is_sufficient(2_000, BorrowCapacity(2_000, "0.002"))
        assert not is_sufficient(2_001, BorrowCapacity(2_000, "0.002"))

    @pytest.mark.asyncio
    async def test_check_reads_pool_capacity(self):
        pool = MagicMock()
        pool.address = "0x5555555555555555555555555555555555555555"
        pool.available_borrow_capacity = AsyncMock(return_value=5_000_000)
        checker = LiquidityCapacityChecker(_make_tokens({USDC: 6}))

        ok, capacity = await checker.check(pool, USDC, 1_000_000, 4)

        assert ok
        assert capacity.capacity_formatted == "5.0"
        pool.available_borrow_capacity.assert_awaited_once_with(USDC)

    @pytest.mark.asyncio
    async def test_check_insufficient(self):
        pool = MagicMock()
        pool.available_borrow_capacity = AsyncMock(return_value=2_999_999)
        checker = LiquidityCapacityChecker(_make_tokens({USDC: 6}))

        ok, capacity = await checker.check(pool, USDC, 1_000_000, 4)

        assert not ok
        assert capacity.raw_capacity == 2_999_999

    @pytest.mark.asyncio
    async def test_leverage_one_skips_pool(self):
        pool = MagicMock()
        pool.available_borrow_capacity = AsyncMock()
        checker = LiquidityCapacityChecker(_make_tokens({USDC: 6}))

        assert await checker.check(pool, USDC, 1_000_000, 1) == (True, None)
        pool.available_borrow_capacity.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_pool_is_insufficient(self):
        checker = LiquidityCapacityChecker(_make_tokens({USDC: 6}))
        assert await checker.check(None, USDC, 1_000_000, 2) == (False, None)
