"""
Position Reader Agent — rebuilds one position from registry, market and oracle reads.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from margin_desk.agents.price_oracle import PriceOracleClient
from margin_desk.chain.contracts import MarketContract, RegistryContract, TokenContract
from margin_desk.models import Position, PositionState

log = logging.getLogger(__name__)


class PositionReader:
    def __init__(
        self,
        registry: RegistryContract,
        market: MarketContract,
        oracle: PriceOracleClient,
        tokens: Callable[[str], TokenContract],
    ) -> None:
        self._registry = registry
        self._market = market
        self._oracle = oracle
        self._tokens = tokens

    async def read_position(self, position_id: int) -> Position | None:
        """
        Return the position with *position_id*, or None if it does not exist.

        The registry's ownerOf reverts for ids that were never minted or have
        been burned on close; that is the normal "absent" outcome. Any failure
        after the owner lookup is a real error and propagates.
        """
        try:
            owner = await self._registry.owner_of(position_id)
        except Exception as exc:
            log.debug("Position %d has no owner (%s), treating as closed", position_id, exc)
            return None

        params, raw_state = await asyncio.gather(
            self._market.position_params(position_id),
            self._registry.state_of(position_id),
        )
        state = PositionState.from_raw(raw_state)
        if state is PositionState.NONE:
            log.debug("Position %d is in state NONE, skipping", position_id)
            return None

        base = self._tokens(params.base_token)
        quote = self._tokens(params.quote_token)
        base_symbol, base_decimals, quote_symbol, size_usd = await asyncio.gather(
            base.symbol(),
            base.decimals(),
            quote.symbol(),
            self._oracle.usd_value_of(params.base_token, params.size),
        )

        return Position(
            id=position_id,
            owner=owner,
            state=state,
            base_token=params.base_token,
            quote_token=params.quote_token,
            base_symbol=base_symbol,
            quote_symbol=quote_symbol,
            base_decimals=base_decimals,
            size=params.size,
            size_usd=size_usd,
            leverage=params.leverage,
            is_short=params.is_short,
        )
