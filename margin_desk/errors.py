"""
Failure types shared across margin-desk.

Raw web3/RPC exceptions are turned into a ChainFailure once, at the boundary
where an interactive flow first observes them (see agents.error_classifier).
"""
from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    NON_EXISTENCE = "non_existence"
    ORACLE = "oracle"
    LIQUIDITY = "liquidity"
    REVERT = "revert"
    TRANSPORT = "transport"


class ConfigError(ValueError):
    """A required address, endpoint or setting is missing or malformed."""


class ChainFailure(Exception):
    """A classified failure with a message fit to show to a trader or operator."""

    def __init__(self, kind: FailureKind, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause

    def __repr__(self) -> str:
        return f"ChainFailure(kind={self.kind.value!r}, message={self.message!r})"


class TransactionReverted(Exception):
    """A transaction was mined with status 0."""

    def __init__(self, label: str, tx_hash: str, receipt: dict | None = None):
        super().__init__(f"Transaction '{label}' reverted on-chain ({tx_hash})")
        self.label = label
        self.tx_hash = tx_hash
        self.receipt = receipt


class SequenceAborted(Exception):
    """A step of a multi-step flow failed; the remaining steps were not submitted."""

    def __init__(self, failed_step: str, completed: list, cause: BaseException):
        super().__init__(f"Step '{failed_step}' failed: {cause}")
        self.failed_step = failed_step
        self.completed = completed
        self.cause = cause
