"""
Fee and Tax Schedule Resolution

Pure lookups of the rates in force on a given date:

    (portfolio base, dated history, date) -> resolved rates

The newest history entry starting on or before the date wins. Fields the
entry leaves unset come from the portfolio base, never from an older entry.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence, TypeVar

from lib.portfolio_config import FeeHistoryEntry, MgmtFreq, MgmtType, Portfolio, TaxHistoryEntry

Entry = TypeVar('Entry', FeeHistoryEntry, TaxHistoryEntry)


@dataclass(frozen=True)
class TaxRates:
    cgt: Decimal
    inc_tax: Decimal


@dataclass(frozen=True)
class FeeRates:
    mgmt_val: Decimal
    mgmt_type: MgmtType
    mgmt_freq: MgmtFreq
    div_comm_rate: Decimal
    comm_rate: Decimal
    comm_min: Decimal
    comm_max: Decimal


def _normalize(on) -> date:
    # Time of day never matters for schedules
    if isinstance(on, datetime):
        return on.date()
    return on


def _effective_entry(history: Sequence[Entry], on: date) -> Optional[Entry]:
    for entry in sorted(history, key=lambda e: e.start_date, reverse=True):
        if entry.start_date <= on:
            return entry
    return None


def _pick(entry, portfolio: Portfolio, field_name: str):
    if entry is not None:
        value = getattr(entry, field_name)
        if value is not None:
            return value
    return getattr(portfolio, field_name)


def get_tax_rates_for_date(portfolio: Portfolio, on) -> TaxRates:
    entry = _effective_entry(portfolio.tax_history, _normalize(on))
    return TaxRates(
        cgt=_pick(entry, portfolio, 'cgt'),
        inc_tax=_pick(entry, portfolio, 'inc_tax'),
    )


def get_fee_rates_for_date(portfolio: Portfolio, on) -> FeeRates:
    entry = _effective_entry(portfolio.fee_history, _normalize(on))
    return FeeRates(
        mgmt_val=_pick(entry, portfolio, 'mgmt_val'),
        mgmt_type=_pick(entry, portfolio, 'mgmt_type'),
        mgmt_freq=_pick(entry, portfolio, 'mgmt_freq'),
        div_comm_rate=_pick(entry, portfolio, 'div_comm_rate'),
        comm_rate=_pick(entry, portfolio, 'comm_rate'),
        comm_min=_pick(entry, portfolio, 'comm_min'),
        comm_max=_pick(entry, portfolio, 'comm_max'),
    )


def calculate_commission(portfolio: Portfolio, on, value: Decimal) -> Decimal:
    """
    Broker commission for a trade of the given value.

    max(minimum, value * rate), capped at the maximum when one is set.
    """
    rates = get_fee_rates_for_date(portfolio, on)
    commission = max(rates.comm_min, abs(value) * rates.comm_rate)
    if rates.comm_max > 0:
        commission = min(commission, rates.comm_max)
    return commission
