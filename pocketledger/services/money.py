"""Money / rounding helpers.

Centralized so the ledger, converter and HTTP layer use identical decimal
handling and display rules.
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from pocketledger.models.currency import CurrencyKind, CurrencyRecord

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
SATOSHI = Decimal("0.00000001")


def to_decimal(value: Number) -> Decimal:
    """Coerce to Decimal without float artifacts (floats go through str)."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e


def round2(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _group(digits: str) -> str:
    out = []
    for i, ch in enumerate(reversed(digits)):
        if i and i % 3 == 0:
            out.append(" ")
        out.append(ch)
    return "".join(reversed(out))


def format_number(amount: Number, kind: CurrencyKind = CurrencyKind.FIAT) -> str:
    """Absolute value with space grouping.

    Whole amounts print without decimals; fiat otherwise uses 2 places and
    crypto up to 8 significant fractional places.
    """
    value = abs(to_decimal(amount))
    if kind is CurrencyKind.CRYPTO:
        value = value.quantize(SATOSHI, rounding=ROUND_HALF_UP)
    else:
        value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if value == value.to_integral_value():
        return _group(str(value.to_integral_value()))
    whole, frac = f"{value:f}".split(".")
    if kind is CurrencyKind.CRYPTO:
        frac = frac.rstrip("0")
    return f"{_group(whole)}.{frac}"


def format_amount(amount: Number, currency: CurrencyRecord) -> str:
    """Signed display string with the currency symbol as suffix, e.g. ``-1 250.50 $``."""
    value = to_decimal(amount)
    digits = format_number(value, currency.kind)
    sign = "-" if value < 0 and digits != "0" else ""
    return f"{sign}{digits} {currency.symbol}"
