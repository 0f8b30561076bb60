"""
Currency Codes

Canonical currency codes and the sub-unit handling for Israeli agorot
(ILA = ILS / 100), which exchanges quote prices in.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal
from typing import Optional

from lib.config import ILA_PER_ILS


CURRENCY_ALIASES = {
    "NIS": "ILS",
    "SHEKEL": "ILS",
    "₪": "ILS",
    "AGOROT": "ILA",
    "AGORA": "ILA",
    "ILX": "ILA",
    "$": "USD",
    "US$": "USD",
    "€": "EUR",
    "£": "GBP",
}


def normalize_currency(code: Optional[str]) -> str:
    """
    Map a user or feed supplied currency label onto its ISO-style code.

    Raises:
        ValueError: If the code is blank
    """
    if code is None or not str(code).strip():
        raise ValueError("Currency code must not be empty")

    value = str(code).strip().upper()
    return CURRENCY_ALIASES.get(value, value)


def base_currency(code: str) -> str:
    """Currency family of a code: ILA belongs to ILS."""
    code = normalize_currency(code)
    return "ILS" if code == "ILA" else code


def is_same_family(first: str, second: str) -> bool:
    return base_currency(first) == base_currency(second)


def to_major_units(amount: Decimal, code: str) -> Decimal:
    """Express an amount in the family's major unit (agorot -> shekels)."""
    if normalize_currency(code) == "ILA":
        return amount / ILA_PER_ILS
    return amount


def from_major_units(amount: Decimal, code: str) -> Decimal:
    if normalize_currency(code) == "ILA":
        return amount * ILA_PER_ILS
    return amount
