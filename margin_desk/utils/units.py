"""
Exact conversions between on-chain integer amounts and decimal strings.

Floating point never touches an amount: the low-order units it drops are the
ones that decide whether a transfer reverts.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

USD_DECIMALS = 18


def parse_units(value: str | int | Decimal, decimals: int) -> int:
    """
    Convert a human decimal (e.g. "10.5") into an integer of *decimals* places.

    Raises ValueError for non-numeric input, negative values or more fraction
    digits than *decimals* allows.
    """
    try:
        number = Decimal(str(value).strip())
    except ArithmeticError as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc
    if not number.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    if number < 0:
        raise ValueError(f"Amount must not be negative: {value!r}")

    text = format(number, "f")
    whole, _, frac = text.partition(".")
    frac = frac.rstrip("0")
    if len(frac) > decimals:
        raise ValueError(f"{value!r} has more than {decimals} fraction digits")
    return int(whole or "0") * 10**decimals + int(frac.ljust(decimals, "0") or "0")


def format_units(value: int, decimals: int) -> str:
    """Render an integer amount with *decimals* places, e.g. 1500000, 6 -> "1.5"."""
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    frac_text = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{frac_text or '0'}"


def format_usd(value: int) -> str:
    """Render a fixed-18 USD value with two decimals, e.g. "1234.57"."""
    amount = Decimal(format_units(value, USD_DECIMALS))
    return str(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
