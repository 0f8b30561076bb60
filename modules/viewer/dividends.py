"""
Dividend Processing

Books per-share dividend events against holdings:

    gross = units held at the event date * amount per share
    fee   = gross * dividend commission rate in force at the event date
    tax   = per the portfolio's dividend policy (see DIVIDEND_TAX_RULES)
    net   = gross - fee - tax

Units held include every transaction dated on or before the event date.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from lib.fx_rates import ExchangeRateTable, convert_currency
from lib.parsers.enhanced_transaction import DividendEvent
from lib.portfolio_config import DividendPolicy, Portfolio, TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.schedule import TaxRates, get_fee_rates_for_date, get_tax_rates_for_date
from modules.tax.tax_events import DividendRecord
from modules.viewer.holding import Holding
from utils.logging_config import setup_logger

logger = setup_logger(__name__)

ZERO = Decimal(0)


# (vested share, unvested share, rates) -> tax amount
TaxRule = Callable[[Decimal, Decimal, TaxRates], Decimal]

DIVIDEND_TAX_RULES: Dict[DividendPolicy, TaxRule] = {
    # Paid out in cash: capital gains rate on everything
    DividendPolicy.CASH_TAXED: lambda vested, unvested, r: (vested + unvested) * r.cgt,
    # Reinvested inside a sheltered wrapper
    DividendPolicy.ACCUMULATE_TAX_FREE: lambda vested, unvested, r: ZERO,
    # Vested shares pay cgt; dividend equivalents on unvested grants are salary
    DividendPolicy.HYBRID_RSU: lambda vested, unvested, r: vested * r.cgt + unvested * r.inc_tax,
}


def dividend_tax(
    portfolio: Portfolio,
    gross_vested: Decimal,
    gross_unvested: Decimal,
    rates: TaxRates
) -> Decimal:
    """Tax on a dividend split into its vested and unvested parts."""
    if portfolio.tax_policy == TaxPolicy.TAX_FREE:
        return ZERO
    rule = DIVIDEND_TAX_RULES[portfolio.div_policy]
    return rule(gross_vested, gross_unvested, rates)


def process_dividends(
    holding: Holding,
    events: Iterable[DividendEvent],
    portfolio: Portfolio,
    rates: ExchangeRateTable,
    warnings: Optional[DataQualityLog] = None
) -> List[DividendRecord]:
    """
    Book the events matching this holding's instrument.

    Returns:
        The records added to ``holding.dividends``
    """
    added = []
    price_key = holding.key.price_key

    for event in sorted((e for e in events if e.price_key == price_key), key=lambda e: e.date):
        vested, unvested = holding.quantity_breakdown_at(event.date)
        quantity = vested + unvested
        if quantity <= 0:
            continue

        day_rates = rates.rates_on(event.date)
        gross_native = quantity * event.amount
        gross = convert_currency(gross_native, holding.stock_currency, holding.portfolio_currency, day_rates, warnings)

        fee_rates = get_fee_rates_for_date(portfolio, event.date)
        fee = gross * fee_rates.div_comm_rate

        gross_vested = gross * vested / quantity
        tax = dividend_tax(portfolio, gross_vested, gross - gross_vested, get_tax_rates_for_date(portfolio, event.date))

        record = DividendRecord(
            key=holding.key,
            date=event.date,
            quantity=quantity,
            quantity_vested=vested,
            amount_per_share=event.amount,
            currency=holding.stock_currency,
            gross=gross,
            fee=fee,
            tax=tax,
            net=gross - fee - tax,
            source=event.source,
        )
        holding.dividends.append(record)
        added.append(record)

    if added:
        logger.debug(f"{holding.key}: booked {len(added)} dividends")
    return added


def sync_dividends(
    recorded: Sequence[DividendEvent],
    incoming: Sequence[DividendEvent]
) -> List[DividendEvent]:
    """
    Return the incoming events that are not yet recorded.

    Identity is (instrument, date, amount); repeating a sync with the same
    feed returns nothing, and duplicates inside the feed are collapsed.
    """
    seen = {event.identity for event in recorded}
    fresh = []

    for event in incoming:
        if event.identity in seen:
            continue
        seen.add(event.identity)
        fresh.append(event)

    logger.debug(f"Dividend sync: {len(fresh)} new of {len(incoming)} incoming")
    return fresh
