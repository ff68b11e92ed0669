"""
Error Classifier — turns raw web3/RPC failures into readable messages and
tagged ChainFailure values.

The matching order in `classify` is fixed; changing it changes which message a
given failure produces.
"""
from __future__ import annotations

import re

from web3 import Web3
from web3.exceptions import ContractLogicError

from margin_desk.errors import (
    ChainFailure,
    ConfigError,
    FailureKind,
    SequenceAborted,
    TransactionReverted,
)

ERROR_MESSAGES: dict[str, str] = {
    "LiquidityPool__NOT_ENOUGH_LIQUIDITY": "Not enough liquidity in the pool for this operation.",
    "PriceFeedL1__TOKEN_NOT_SUPPORTED": "This token is not supported by the price feed.",
    "PriceFeedL1__STALE_PRICE": "The price feed data is currently stale.",
    "PriceFeedL1__PRICE_TOO_OLD": "The price data is too old.",
    "PriceFeedL1__INVALID_PRICE": "The price feed returned an invalid price.",
    "PriceFeedL1__ANSWER_IN_ROUND_INVALID": "The price feed answer in round is invalid.",
    "LiquidityPoolFactory__POOL_ALREADY_EXIST": "A liquidity pool for this token already exists.",
    "LiquidityPoolFactory__POSITIONS_ALREADY_DEFINED": "Positions contract is already defined.",
    "Positions__POSITION_NOT_OPEN": "This position is not open.",
    "Positions__POSITION_NOT_LIQUIDABLE_YET": "This position cannot be liquidated yet.",
    "Positions__POSITION_NOT_OWNED": "You do not own this position.",
    "Positions__POOL_NOT_OFFICIAL": "The specified Uniswap V3 pool is not supported.",
    "Positions__TOKEN_NOT_SUPPORTED": "This token is not supported by the protocol.",
    "Positions__TOKEN_NOT_SUPPORTED_ON_MARGIN": "This token is not supported for margin trading.",
    "Positions__NO_PRICE_FEED": "No price feed available for the given token pair.",
    "Positions__LEVERAGE_NOT_IN_RANGE": "The specified leverage is out of the allowed range.",
    "Positions__AMOUNT_TO_SMALL": "The position size is too small; it must meet the minimum USD requirement.",
    "Positions__LIMIT_ORDER_PRICE_NOT_CONCISTENT": "Limit order price is inconsistent with the market.",
    "Positions__STOP_LOSS_ORDER_PRICE_NOT_CONCISTENT": "Stop loss price is inconsistent with the market.",
    "Positions__NOT_LIQUIDABLE": "This position is not eligible for liquidation.",
    "Positions__WAIT_FOR_LIMIT_ORDER_TO_COMPLET": "A limit order is already pending for this position.",
    "Positions__TOKEN_RECEIVED_NOT_CONCISTENT": "Inconsistent token amount received from swap.",
    "User denied transaction signature": "Transaction was cancelled by the user.",
    "insufficient funds for gas": "Insufficient native token balance to pay for gas.",
    "ERC20: transfer amount exceeds balance": "Insufficient token balance.",
    "ERC20: transfer amount exceeds allowance": "Insufficient token allowance.",
}

GENERIC_REVERT_MESSAGE = (
    "Transaction execution reverted. This commonly occurs if there's insufficient "
    "liquidity or if the token pair does not have an active Uniswap pool for the "
    "entered configuration."
)

MAX_MESSAGE_LENGTH = 100

_CUSTOM_ERROR_RE = re.compile(r"([a-zA-Z0-9_]+)\(\)")
_REVERT_PREFIX = "execution reverted: "

# 4-byte selectors of the argument-less custom errors, as web3 reports them
# in ContractCustomError.data (e.g. "0x1c2b5e3a").
_SELECTORS: dict[str, str] = {
    Web3.to_hex(Web3.keccak(text=f"{name}()")[:4]): name
    for name in ERROR_MESSAGES
    if "__" in name
}

_ORACLE_PREFIX = "PriceFeedL1__"
_LIQUIDITY_IDS = {"LiquidityPool__NOT_ENOUGH_LIQUIDITY"}
_MISSING_IDS = {"ERC721NonexistentToken", "Positions__POSITION_NOT_OPEN"}
_MISSING_SELECTORS = {Web3.to_hex(Web3.keccak(text="ERC721NonexistentToken(uint256)")[:4])}


def _message_of(error: BaseException) -> str:
    message = getattr(error, "message", None) or getattr(error, "reason", None)
    if isinstance(message, str) and message:
        return message
    return str(error)


def _data_text(error: BaseException) -> str | None:
    """Text of the structured failure payload, if the error carries one."""
    data = getattr(error, "data", None)
    if isinstance(data, dict):
        parts = [data.get("message"), data.get("data")]
        text = " ".join(p for p in parts if isinstance(p, str))
        return text or None
    if isinstance(data, (bytes, bytearray)):
        return Web3.to_hex(bytes(data))
    if isinstance(data, str):
        return data
    return None


def _reason_of(error: BaseException, message: str) -> str | None:
    reason = getattr(error, "reason", None)
    if isinstance(reason, str) and reason:
        return reason
    if message.startswith(_REVERT_PREFIX) and len(message) > len(_REVERT_PREFIX):
        return message[len(_REVERT_PREFIX):]
    return None


def _is_call_exception(error: BaseException) -> bool:
    return isinstance(error, ContractLogicError) or getattr(error, "code", None) == "CALL_EXCEPTION"


# Longest first, so "X_ON_MARGIN" is not reported as its prefix "X".
_KEYS_BY_LENGTH = sorted(ERROR_MESSAGES, key=len, reverse=True)


def _known_identifier(text: str) -> str | None:
    for key in _KEYS_BY_LENGTH:
        if key in text:
            return key
    return None


def _selector_identifier(text: str) -> str | None:
    lowered = text.lower()
    for selector, name in _SELECTORS.items():
        if lowered.startswith(selector) or f" {selector}" in lowered:
            return name
    return None


def identify(error: BaseException) -> str | None:
    """Return the protocol error identifier the failure refers to, if any."""
    data_text = _data_text(error)
    if data_text:
        found = _known_identifier(data_text) or _selector_identifier(data_text)
        if found:
            return found
    message = _message_of(error)
    found = _known_identifier(message)
    if found:
        return found
    match = _CUSTOM_ERROR_RE.search(message)
    return match.group(1) if match else None


def classify(error: BaseException | None) -> str:
    """Map a failure to a human-readable message."""
    if error is None:
        return "Unknown Error"

    message = _message_of(error)

    # 1. identifier in the structured call-failure data
    data_text = _data_text(error)
    if data_text:
        key = _known_identifier(data_text) or _selector_identifier(data_text)
        if key:
            return ERROR_MESSAGES[key]

    # 2. identifier anywhere in the message
    key = _known_identifier(message)
    if key:
        return ERROR_MESSAGES[key]

    # 3. bare Identifier() in the message
    match = _CUSTOM_ERROR_RE.search(message)
    if match:
        name = match.group(1)
        return ERROR_MESSAGES.get(name, f"Contract error: {name}")

    # 4. explicit revert reason
    reason = _reason_of(error, message)
    if reason:
        return reason

    # 5. bare call failure
    if _is_call_exception(error) and not data_text:
        return GENERIC_REVERT_MESSAGE

    # 6. first line, truncated
    short = message.split("\n")[0]
    if len(short) > MAX_MESSAGE_LENGTH:
        return short[:MAX_MESSAGE_LENGTH] + "..."
    return short


def _is_missing(error: BaseException, identifier: str | None) -> bool:
    if identifier in _MISSING_IDS:
        return True
    text = f"{_message_of(error)} {_data_text(error) or ''}".lower()
    return any(name.lower() in text for name in _MISSING_IDS) or any(s in text for s in _MISSING_SELECTORS)


def to_failure(error: BaseException) -> ChainFailure:
    """Build the tagged ChainFailure for a raw exception."""
    if isinstance(error, ChainFailure):
        return error
    if isinstance(error, SequenceAborted):
        failure = to_failure(error.cause)
        return ChainFailure(failure.kind, failure.message, error)
    if isinstance(error, ConfigError):
        return ChainFailure(FailureKind.CONFIGURATION, str(error), error)

    message = classify(error)
    identifier = identify(error)
    if identifier in _LIQUIDITY_IDS:
        kind = FailureKind.LIQUIDITY
    elif _is_missing(error, identifier):
        kind = FailureKind.NON_EXISTENCE
    elif identifier and identifier.startswith(_ORACLE_PREFIX):
        kind = FailureKind.ORACLE
    elif isinstance(error, (ContractLogicError, TransactionReverted)) or _is_call_exception(error):
        kind = FailureKind.REVERT
    else:
        kind = FailureKind.TRANSPORT
    return ChainFailure(kind, message, error)
