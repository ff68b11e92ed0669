"""
Data models used across margin-desk.

Everything here is a read-only mirror of on-chain state or a short-lived value
describing one flow; nothing is persisted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from margin_desk.utils.units import format_units, format_usd


class PositionState(IntEnum):
    UNKNOWN = -1
    NONE = 0
    TAKE_PROFIT = 1
    ACTIVE = 2
    STOP_LOSS = 3
    LIQUIDATABLE = 4
    BAD_DEBT = 5
    EXPIRED = 6

    @classmethod
    def from_raw(cls, value: int) -> "PositionState":
        try:
            return cls(int(value))
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_liquidatable(self) -> bool:
        return self in (PositionState.LIQUIDATABLE, PositionState.BAD_DEBT)


@dataclass(frozen=True)
class Position:
    id: int
    owner: str
    state: PositionState
    base_token: str          # token whose units measure size
    quote_token: str
    base_symbol: str         # e.g. "WETH"
    quote_symbol: str        # e.g. "USDC"
    base_decimals: int
    size: int                # base-token smallest units
    size_usd: int            # USD, 18 fraction digits
    leverage: int
    is_short: bool

    @property
    def size_formatted(self) -> str:
        return format_units(self.size, self.base_decimals)

    @property
    def size_usd_formatted(self) -> str:
        return format_usd(self.size_usd)

    @property
    def direction(self) -> str:
        return "SHORT" if self.is_short else "LONG"


@dataclass(frozen=True)
class BorrowCapacity:
    raw_capacity: int        # token smallest units
    capacity_formatted: str  # e.g. "1520.25"


@dataclass(frozen=True)
class TransactionIntent:
    """An approve-then-act pair: *action* may only be sent once *spender* can pull *required_amount*."""
    spender: str
    token: str
    required_amount: int
    action: str


@dataclass(frozen=True)
class TokenBalance:
    symbol: str
    decimals: int
    raw_balance: int
    usd_value: int           # USD, 18 fraction digits

    @property
    def balance(self) -> str:
        return format_units(self.raw_balance, self.decimals)

    @property
    def usd_formatted(self) -> str:
        return format_usd(self.usd_value)


@dataclass(frozen=True)
class PoolBalance:
    address: str
    decimals: int
    total_assets: int
    total_assets_usd: int
    user_shares: int = 0
    user_assets: int = 0


@dataclass
class ProtocolBalances:
    positions_holdings: dict[str, TokenBalance] = field(default_factory=dict)
    pools: dict[str, PoolBalance] = field(default_factory=dict)


@dataclass(frozen=True)
class FeeDefaults:
    treasure_fee: int
    liquidation_reward: int


@dataclass
class AccountExposure:
    owner: str
    position_ids: list[int] = field(default_factory=list)
    long_usd: int = 0
    short_usd: int = 0

    @property
    def total_usd(self) -> int:
        return self.long_usd + self.short_usd


@dataclass
class ExposureSummary:
    position_count: int = 0
    long_usd: int = 0
    short_usd: int = 0
    liquidatable_ids: list[int] = field(default_factory=list)
    accounts: dict[str, AccountExposure] = field(default_factory=dict)

    @property
    def total_usd(self) -> int:
        return self.long_usd + self.short_usd
