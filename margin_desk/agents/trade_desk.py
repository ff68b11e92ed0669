"""
Trade Desk — the interactive write flows: open/close positions, pool deposits
and redemptions, fee updates.

Every flow raises ChainFailure with a classified message; raw web3 errors never
leave this module. Bad caller input (identical tokens, leverage below 1, a
malformed or negative amount) raises ValueError before anything touches the chain.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from margin_desk.agents.amount_calculator import AmountCalculator
from margin_desk.agents.error_classifier import to_failure
from margin_desk.agents.liquidity_checker import LiquidityCapacityChecker, required_borrow
from margin_desk.agents.tx_sequencer import PendingTransaction, Step, TransactionSequencer
from margin_desk.chain.client import ChainClient
from margin_desk.errors import ChainFailure, FailureKind
from margin_desk.models import FeeDefaults, TransactionIntent
from margin_desk.utils.units import USD_DECIMALS, parse_units

log = logging.getLogger(__name__)


class TradeDesk:
    def __init__(
        self,
        chain: ChainClient,
        calculator: AmountCalculator,
        checker: LiquidityCapacityChecker,
        sequencer: TransactionSequencer,
    ) -> None:
        self._chain = chain
        self._calculator = calculator
        self._checker = checker
        self._sequencer = sequencer
        self._config = chain.config

    async def open_position(
        self,
        collateral_token: str,
        target_token: str,
        usd_amount: str | int | Decimal,
        leverage: int,
        is_short: bool,
    ) -> PendingTransaction:
        """
        Open a position worth *usd_amount* of collateral at *leverage*.

        Steps: size the margin from the oracle, check the collateral pool can
        lend margin * (leverage - 1), approve the registry for the margin, then
        call openPosition and wait for it to confirm.
        """
        if collateral_token.lower() == target_token.lower():
            raise ValueError("Collateral and target tokens must differ.")
        if leverage < 1:
            raise ValueError(f"Leverage must be at least 1, got {leverage}")
        parse_units(usd_amount, USD_DECIMALS)  # rejects malformed or negative targets

        amount = await self._calculator.amount_for_usd(collateral_token, usd_amount)
        if amount == 0:
            raise ChainFailure(FailureKind.ORACLE, "Failed to calculate amount")

        try:
            await self._check_liquidity(collateral_token, amount, leverage)

            intent = TransactionIntent(
                spender=self._config.contracts.positions,
                token=collateral_token,
                required_amount=amount,
                action="openPosition",
            )
            call = self._chain.market.open_position(
                collateral_token,
                target_token,
                self._config.pool_fee,
                is_short,
                leverage,
                amount,
                0,
                0,
                gas=self._config.open_gas_limit,
            )
            async with self._sequencer.flow() as flow:
                pending = await self._sequencer.approve_then(
                    intent, self._chain.token(collateral_token), call, flow
                )
                await pending.wait()
        except Exception as exc:
            failure = to_failure(exc)
            log.error("Open position failed: %s", failure.message)
            raise failure from exc

        log.info("Opened %s %dx position with %d units (%s)",
                 "short" if is_short else "long", leverage, amount, pending.tx_hash)
        return pending

    async def _check_liquidity(self, token: str, margin: int, leverage: int) -> None:
        if required_borrow(margin, leverage) == 0:
            return
        pool = await self._chain.pool_for(token)
        ok, capacity = await self._checker.check(pool, token, margin, leverage)
        if ok:
            return
        if capacity is None:
            raise ChainFailure(FailureKind.LIQUIDITY, "No liquidity pool exists for the collateral token.")
        raise ChainFailure(
            FailureKind.LIQUIDITY,
            f"Not enough liquidity in the pool for this operation "
            f"(available: {capacity.capacity_formatted}).",
        )

    async def close_position(self, position_id: int) -> PendingTransaction:
        call = self._chain.market.close_position(position_id, gas=self._config.close_gas_limit)
        try:
            (pending,) = await self._sequencer.sequence([Step(call)])
        except Exception as exc:
            raise to_failure(exc) from exc
        return pending

    async def close_all_positions(self) -> list[PendingTransaction]:
        """Close every position the signer holds, one nonce-sequenced flow; stops at the first failure."""
        try:
            raw_ids = await self._chain.market.trader_positions(self._chain.address)
        except Exception as exc:
            raise to_failure(exc) from exc

        ids = [int(i) for i in raw_ids if int(i) > 0]
        if not ids:
            log.info("No open positions found.")
            return []

        log.info("Closing %d position(s): %s", len(ids), ids)
        steps = [Step(self._chain.market.close_position(i, gas=self._config.close_gas_limit)) for i in ids]
        try:
            return await self._sequencer.sequence(steps)
        except Exception as exc:
            raise to_failure(exc) from exc

    async def deposit_to_pool(self, token: str, amount: int) -> PendingTransaction:
        if amount <= 0:
            raise ValueError(f"Deposit amount must be positive, got {amount}")
        try:
            pool = await self._chain.pool_for(token)
            if pool is None:
                raise ChainFailure(FailureKind.LIQUIDITY, "Pool not found")

            receiver = self._chain.address
            intent = TransactionIntent(spender=pool.address, token=token, required_amount=amount, action="deposit")
            async with self._sequencer.flow() as flow:
                pending = await self._sequencer.approve_then(
                    intent, self._chain.token(token), pool.deposit(amount, receiver), flow
                )
                await pending.wait()
        except Exception as exc:
            raise to_failure(exc) from exc
        return pending

    async def redeem_from_pool(self, token: str, shares: int) -> PendingTransaction:
        try:
            pool = await self._chain.pool_for(token)
            if pool is None:
                raise ChainFailure(FailureKind.LIQUIDITY, "Pool not found")
            me = self._chain.address
            (pending,) = await self._sequencer.sequence([Step(pool.redeem(shares, me, me))])
        except Exception as exc:
            raise to_failure(exc) from exc
        return pending

    async def fee_defaults(self) -> FeeDefaults:
        fees = self._chain.fee_manager
        try:
            return FeeDefaults(
                treasure_fee=await fees.default_treasure_fee(),
                liquidation_reward=await fees.default_liquidation_reward(),
            )
        except Exception as exc:
            raise to_failure(exc) from exc

    async def update_fee_defaults(self, treasure_fee: int, liquidation_reward: int) -> PendingTransaction:
        call = self._chain.fee_manager.set_default_fees(treasure_fee, liquidation_reward)
        try:
            (pending,) = await self._sequencer.sequence([Step(call)])
        except Exception as exc:
            raise to_failure(exc) from exc
        return pending
