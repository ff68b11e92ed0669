"""
Transaction Sequencer — signs, nonces and submits contract writes in order.

A flow seeds its nonce from one pending-transaction-count read and then hands
out consecutive nonces through `reserve_next()`. Re-reading the count mid-flow
could return a value that lags the mempool and collide with a transaction
already sent.

Flows from the same sender are serialized behind one asyncio.Lock, so two
flows can never seed from the same count. Without it, two concurrent flows
(say a bot cycle and a manual close) would both start at nonce N.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass

from web3 import AsyncWeb3

from margin_desk.chain.contracts import PreparedCall, TokenContract
from margin_desk.errors import SequenceAborted, TransactionReverted
from margin_desk.models import TransactionIntent

log = logging.getLogger(__name__)


@dataclass
class PendingTransaction:
    """Handle for a broadcast transaction."""
    label: str
    tx_hash: str
    nonce: int
    _sequencer: "TransactionSequencer"
    receipt: dict | None = None

    async def wait(self) -> dict:
        """Wait for the receipt; raise TransactionReverted if it was mined with status 0."""
        if self.receipt is None:
            self.receipt = await self._sequencer.wait_for_receipt(self)
        return self.receipt


@dataclass(frozen=True)
class Step:
    call: PreparedCall
    wait: bool = True


class Flow:
    """Nonce counter for one multi-step flow. Only the sequencer creates these."""

    def __init__(self, sequencer: "TransactionSequencer", start_nonce: int) -> None:
        self._sequencer = sequencer
        self._next = start_nonce
        self.submitted: list[PendingTransaction] = []

    @property
    def sender(self) -> str:
        return self._sequencer.sender

    def reserve_next(self) -> int:
        nonce = self._next
        self._next += 1
        return nonce

    async def submit(self, call: PreparedCall) -> PendingTransaction:
        pending = await self._sequencer.send(call, self.reserve_next())
        self.submitted.append(pending)
        return pending


class TransactionSequencer:
    def __init__(self, w3: AsyncWeb3, account, *, receipt_timeout: float = 180.0) -> None:
        self._w3 = w3
        self._account = account
        self._receipt_timeout = receipt_timeout
        self._lock = asyncio.Lock()

    @property
    def sender(self) -> str:
        return self._account.address

    @asynccontextmanager
    async def flow(self) -> AsyncIterator[Flow]:
        """Hold the sender lock for one flow and seed its nonce from the chain."""
        async with self._lock:
            start = await self._w3.eth.get_transaction_count(self.sender, "pending")
            log.debug("Flow for %s starts at nonce %d", self.sender, start)
            yield Flow(self, start)

    async def send(self, call: PreparedCall, nonce: int) -> PendingTransaction:
        params: dict = {"from": self.sender, "nonce": nonce}
        if call.gas is not None:
            params["gas"] = call.gas
        tx = await call.function.build_transaction(params)
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        hash_hex = AsyncWeb3.to_hex(tx_hash)
        log.info("Sent %s (nonce %d): %s", call.label, nonce, hash_hex)
        return PendingTransaction(label=call.label, tx_hash=hash_hex, nonce=nonce, _sequencer=self)

    async def wait_for_receipt(self, pending: PendingTransaction) -> dict:
        receipt = await self._w3.eth.wait_for_transaction_receipt(
            pending.tx_hash, timeout=self._receipt_timeout
        )
        if receipt["status"] == 0:
            raise TransactionReverted(pending.label, pending.tx_hash, dict(receipt))
        log.info("Confirmed %s in block %s", pending.label, receipt.get("blockNumber"))
        return receipt

    async def ensure_allowance(
        self, token: TokenContract, spender: str, amount: int, flow: Flow
    ) -> PendingTransaction | None:
        """
        Make sure *spender* may pull *amount* of *token* from the sender.

        If the current allowance is short, approve exactly *amount* (not the
        missing delta) and wait for confirmation. Returns the approval handle,
        or None when the existing allowance already covers the amount.
        """
        allowance = await token.allowance(flow.sender, spender)
        if allowance >= amount:
            log.debug("Allowance %d for %s already covers %d", allowance, spender, amount)
            return None

        symbol = await token.symbol()
        log.info("Approving %s to spend %d %s (current allowance %d)", spender, amount, symbol, allowance)
        pending = await flow.submit(token.approve(spender, amount, label=f"approve({symbol})"))
        await pending.wait()
        return pending

    async def approve_then(
        self, intent: TransactionIntent, token: TokenContract, call: PreparedCall, flow: Flow
    ) -> PendingTransaction:
        """Run one approve-then-act pair; the action is only sent once the allowance is confirmed."""
        if token.address.lower() != intent.token.lower():
            raise ValueError(f"Intent is for {intent.token}, got token {token.address}")
        await self.ensure_allowance(token, intent.spender, intent.required_amount, flow)
        return await flow.submit(call)

    async def sequence(self, steps: Sequence[Step], flow: Flow | None = None) -> list[PendingTransaction]:
        """
        Submit *steps* strictly in order with consecutive nonces.

        A step with wait=True must confirm before the next one is sent. The first
        failure aborts the rest with SequenceAborted; earlier steps are not rolled back.
        """
        if flow is None:
            async with self.flow() as own_flow:
                return await self._run_steps(steps, own_flow)
        return await self._run_steps(steps, flow)

    async def _run_steps(self, steps: Sequence[Step], flow: Flow) -> list[PendingTransaction]:
        done: list[PendingTransaction] = []
        for step in steps:
            try:
                pending = await flow.submit(step.call)
                if step.wait:
                    await pending.wait()
            except Exception as exc:
                log.error("Step '%s' failed, aborting %d remaining step(s): %s",
                          step.call.label, len(steps) - len(done) - 1, exc)
                raise SequenceAborted(step.call.label, done, exc) from exc
            done.append(pending)
        return done
