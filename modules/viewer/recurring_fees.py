"""
Recurring Management Fee Generator

Synthesizes management fee charges for a holding from the portfolio fee
schedule. Accrual dates step one calendar month at a time from the holding's
first transaction (day-of-month kept, clamped to the last day of shorter
months: Jan 31 -> Feb 28/29 -> Mar 31). The schedule is resolved on each
candidate date; the candidate is due when its month count is a multiple of
the frequency (1 monthly, 3 quarterly, 12 yearly).

    percentage: units * price * rate / periods per year
    fixed:      rate per period, in portfolio currency

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import date
from decimal import Decimal
from typing import Callable, Iterator, List, Optional, Union

import pandas as pd

from lib.fx_rates import ExchangeRateTable, convert_currency
from lib.portfolio_config import MgmtType, Portfolio
from lib.validators import DataQualityLog
from modules.tax.schedule import get_fee_rates_for_date
from modules.tax.tax_events import FeeCharge
from modules.viewer.holding import Holding
from utils.logging_config import setup_logger

logger = setup_logger(__name__)

PriceLookup = Callable[[str, str, date], Optional[Union[Decimal, float, int]]]


def accrual_dates(anchor: date, until: date) -> Iterator[tuple]:
    """
    Yield (month count, date) for every month after ``anchor`` up to ``until``.

    Each date is computed from the anchor, not from the previous date, so a
    clamped February never drags later months to the 28th.
    """
    start = pd.Timestamp(anchor)
    months = 1
    while True:
        candidate = (start + pd.DateOffset(months=months)).date()
        if candidate > until:
            return
        yield months, candidate
        months += 1


def generate_recurring_fees(
    holding: Holding,
    portfolio: Portfolio,
    price_lookup: PriceLookup,
    as_of: date,
    rates: Optional[ExchangeRateTable] = None,
    warnings: Optional[DataQualityLog] = None
) -> List[FeeCharge]:
    """
    Append management fee charges to ``holding.fee_charges``.

    Args:
        holding: Ledger output for one instrument
        portfolio: Owning portfolio (fee schedule source)
        price_lookup: (ticker, exchange, date) -> price in stock currency
        as_of: Last date that may accrue
        rates: Rate table for stock -> portfolio currency conversion
        warnings: Collector for missing prices

    Returns:
        The charges added
    """
    warnings = warnings if warnings is not None else DataQualityLog()
    anchor = holding.first_transaction_date

    if anchor is None or not portfolio.has_management_fee:
        return []

    charges = []

    for months, accrual_date in accrual_dates(anchor, as_of):
        schedule = get_fee_rates_for_date(portfolio, accrual_date)
        if schedule.mgmt_val <= 0 or months % schedule.mgmt_freq.months != 0:
            continue

        quantity = holding.quantity_at(accrual_date)
        if quantity <= 0:
            continue

        if schedule.mgmt_type == MgmtType.FIXED:
            price = Decimal(0)
            amount = schedule.mgmt_val
        else:
            raw_price = price_lookup(holding.ticker, holding.exchange, accrual_date)
            if raw_price is None:
                warnings.warn(
                    DataQualityLog.MISSING_PRICE,
                    f"No price for {holding.key.price_key} on {accrual_date}; management fee skipped",
                    holding=str(holding.key),
                    date=accrual_date,
                )
                continue

            price = Decimal(str(raw_price))
            value = convert_currency(
                quantity * price,
                holding.stock_currency,
                holding.portfolio_currency,
                rates.rates_on(accrual_date) if rates is not None else {},
                warnings,
            )
            amount = value * schedule.mgmt_val / schedule.mgmt_freq.periods_per_year

        charge = FeeCharge(
            key=holding.key,
            date=accrual_date,
            amount=amount,
            quantity=quantity,
            price=price,
            mgmt_type=schedule.mgmt_type,
            mgmt_freq=schedule.mgmt_freq,
            rate=schedule.mgmt_val,
        )
        holding.fee_charges.append(charge)
        charges.append(charge)

    logger.debug(f"{holding.key}: {len(charges)} management fee accruals through {as_of}")
    return charges
