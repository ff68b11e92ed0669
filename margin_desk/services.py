"""
Wires the agents together from one AppConfig.
"""
from __future__ import annotations

from dataclasses import dataclass

from margin_desk.agents.amount_calculator import AmountCalculator
from margin_desk.agents.balance_reader import BalanceReader
from margin_desk.agents.liquidity_checker import LiquidityCapacityChecker
from margin_desk.agents.position_reader import PositionReader
from margin_desk.agents.position_scanner import PositionScanner
from margin_desk.agents.price_oracle import PriceOracleClient
from margin_desk.agents.trade_desk import TradeDesk
from margin_desk.agents.tx_sequencer import TransactionSequencer
from margin_desk.chain.client import ChainClient
from margin_desk.config import AppConfig


@dataclass
class Services:
    chain: ChainClient
    oracle: PriceOracleClient
    calculator: AmountCalculator
    checker: LiquidityCapacityChecker
    reader: PositionReader
    scanner: PositionScanner
    sequencer: TransactionSequencer
    balances: BalanceReader
    desk: TradeDesk

    async def close(self) -> None:
        await self.chain.close()


def build_services(config: AppConfig, chain: ChainClient | None = None) -> Services:
    chain = chain or ChainClient(config)
    oracle = PriceOracleClient(chain.oracle)
    calculator = AmountCalculator(oracle, chain.token)
    checker = LiquidityCapacityChecker(chain.token)
    reader = PositionReader(chain.registry, chain.market, oracle, chain.token)
    scanner = PositionScanner(chain.registry, reader, max_concurrency=config.scan_max_concurrency)
    sequencer = TransactionSequencer(chain.w3, chain.account, receipt_timeout=config.receipt_timeout_seconds)
    return Services(
        chain=chain,
        oracle=oracle,
        calculator=calculator,
        checker=checker,
        reader=reader,
        scanner=scanner,
        sequencer=sequencer,
        balances=BalanceReader(chain, oracle),
        desk=TradeDesk(chain, calculator, checker, sequencer),
    )
