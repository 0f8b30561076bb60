"""
Holding Snapshot and Portfolio Summary

Second phase of an engine run. The ledger phase produces holdings from the
event log; this phase attaches live prices and reads totals off them:

    holdings = build_ledger(...)
    holdings = hydrate_prices(holdings, price_map, rates)
    snapshot = calculate_snapshot(holdings[key], portfolio, cpi, as_of)

Hydration returns new Holding objects and can be repeated whenever prices
refresh; transactions are never replayed.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Mapping, NamedTuple, Optional, Union

from lib.fx_rates import ExchangeRateTable, convert_currency
from lib.parsers.enhanced_transaction import HoldingKey
from lib.portfolio_config import Portfolio
from lib.validators import DataQualityLog
from modules.tax.calculators import get_calculator
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import get_tax_rates_for_date
from modules.tax.tax_events import PendingSale
from modules.viewer.holding import Holding
from utils.logging_config import setup_logger

logger = setup_logger(__name__)

ZERO = Decimal(0)


class PriceQuote(NamedTuple):
    """A live price with an explicit currency (e.g. agorot for TASE)."""

    price: Decimal
    currency: str


PriceValue = Union[PriceQuote, Decimal, float, int, None]


def _quote_in_stock_currency(value: PriceValue, holding: Holding, rates: Mapping[str, Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, PriceQuote):
        price = Decimal(str(value.price))
        if price <= 0:
            return None
        return convert_currency(price, value.currency, holding.stock_currency, rates)
    price = Decimal(str(value))
    # A zero quote is a feed gap, not a worthless position
    return price if price > 0 else None


def hydrate_prices(
    holdings: Mapping[HoldingKey, Holding],
    price_map: Mapping[str, PriceValue],
    rates: ExchangeRateTable,
    warnings: Optional[DataQualityLog] = None
) -> Dict[HoldingKey, Holding]:
    """
    Attach live prices ("EXCHANGE:TICKER" -> price) to holdings.

    Holdings without a usable quote get ``current_price = None`` so their
    unrealized gain reads as unknown.
    """
    warnings = warnings if warnings is not None else DataQualityLog()
    current = rates.current
    hydrated = {}

    for key, holding in holdings.items():
        price = _quote_in_stock_currency(price_map.get(key.price_key), holding, current)
        price_pc = None

        if price is None:
            if holding.qty_total > 0:
                warnings.warn(
                    DataQualityLog.MISSING_PRICE,
                    f"No live price for {key.price_key}; unrealized gain unknown",
                    holding=str(key),
                )
        else:
            price_pc = convert_currency(price, holding.stock_currency, holding.portfolio_currency, current, warnings)

        hydrated[key] = dataclasses.replace(holding, current_price=price, current_price_pc=price_pc)

    return hydrated


@dataclass(frozen=True)
class HoldingSnapshot:
    """Point-in-time totals of one holding, in portfolio currency."""

    key: HoldingKey
    currency: str
    qty_total: Decimal
    qty_vested: Decimal
    cost_basis: Decimal
    cost_basis_with_fees: Decimal
    market_value: Optional[Decimal]
    unrealized_gain: Optional[Decimal]
    unrealized_tax: Optional[Decimal]
    realized_gain_net: Decimal
    realized_tax: Decimal
    realized_income_tax: Decimal
    realized_fees: Decimal
    dividends_total: Decimal
    dividend_fees: Decimal
    recurring_fees_total: Decimal
    fees_total: Decimal

    @property
    def total_gain(self) -> Optional[Decimal]:
        """Unrealized + realized + dividends - recurring fees; None without a price."""
        if self.unrealized_gain is None:
            return None
        return self.unrealized_gain + self.realized_gain_net + self.dividends_total - self.recurring_fees_total


def estimate_unrealized_tax(
    holding: Holding,
    portfolio: Portfolio,
    as_of: date,
    cpi: Optional[CPIIndex] = None
) -> Optional[Decimal]:
    """Tax that would be due if every open lot were sold at the live price."""
    if holding.current_price_pc is None or holding.current_price is None:
        return None

    calculator = get_calculator(portfolio.tax_policy)
    rates = get_tax_rates_for_date(portfolio, as_of)
    sale_rate = holding.current_price_pc / holding.current_price
    # Estimates never pollute the run's quality log
    scratch = DataQualityLog()

    total = ZERO
    for lot in holding.active_lots:
        gain_native = lot.quantity * (holding.current_price - lot.buy_price_native)
        sale = PendingSale(
            quantity=lot.quantity,
            buy_date=lot.buy_date,
            sell_date=as_of,
            proceeds=lot.quantity * holding.current_price_pc,
            cost_basis=lot.cost_basis,
            buy_fee=lot.fee_remaining,
            sell_fee=ZERO,
            stock_currency=holding.stock_currency,
            portfolio_currency=holding.portfolio_currency,
            gain_native_at_sale=gain_native * sale_rate - lot.fee_remaining,
        )
        assessment = calculator.assess(sale, rates, cpi, scratch)
        total += assessment.tax + assessment.income_tax

    return total


def calculate_snapshot(
    holding: Holding,
    portfolio: Optional[Portfolio] = None,
    cpi: Optional[CPIIndex] = None,
    as_of: Optional[date] = None
) -> HoldingSnapshot:
    """
    Read a holding's totals. Pure: calling it twice gives the same result.

    The unrealized tax estimate needs ``portfolio`` and ``as_of``.
    """
    unrealized_tax = None
    if portfolio is not None and as_of is not None:
        unrealized_tax = estimate_unrealized_tax(holding, portfolio, as_of, cpi)

    return HoldingSnapshot(
        key=holding.key,
        currency=holding.portfolio_currency,
        qty_total=holding.qty_total,
        qty_vested=holding.qty_vested(as_of) if as_of is not None else holding.qty_total,
        cost_basis=holding.cost_basis,
        cost_basis_with_fees=holding.cost_basis_with_fees,
        market_value=holding.market_value,
        unrealized_gain=holding.unrealized_gain,
        unrealized_tax=unrealized_tax,
        realized_gain_net=holding.realized_gain_net,
        realized_tax=holding.realized_tax,
        realized_income_tax=holding.realized_income_tax,
        realized_fees=holding.realized_fees,
        dividends_total=holding.dividends_total,
        dividend_fees=holding.dividend_fees,
        recurring_fees_total=holding.recurring_fees_total,
        fees_total=holding.fees_total,
    )


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across holdings, in one display currency."""

    currency: str
    market_value: Decimal
    cost_basis: Decimal
    unrealized_gain: Decimal
    realized_gain_net: Decimal
    realized_tax: Decimal
    dividends_total: Decimal
    fees_total: Decimal
    holdings_count: int
    unpriced_holdings: int


def summarize_portfolio(
    holdings: Iterable[Holding],
    display_currency: str,
    rates: ExchangeRateTable
) -> PortfolioSummary:
    """
    Sum holdings into ``display_currency`` at current rates.

    Holdings with an unknown price count towards ``unpriced_holdings`` and
    are left out of market value and unrealized gain only.
    """
    current = rates.current
    totals = dict.fromkeys(
        ("market_value", "cost_basis", "unrealized_gain", "realized_gain_net",
         "realized_tax", "dividends_total", "fees_total"),
        ZERO,
    )
    count = 0
    unpriced = 0

    def add(field_name: str, amount: Decimal, source_currency: str):
        totals[field_name] += convert_currency(amount, source_currency, display_currency, current, rates.warnings)

    for holding in holdings:
        count += 1
        ccy = holding.portfolio_currency

        add("cost_basis", holding.cost_basis_with_fees, ccy)
        add("realized_gain_net", holding.realized_gain_net, ccy)
        add("realized_tax", holding.realized_tax + holding.realized_income_tax, ccy)
        add("dividends_total", holding.dividends_total, ccy)
        add("fees_total", holding.fees_total, ccy)

        if holding.qty_total > 0 and holding.market_value is None:
            unpriced += 1
        elif holding.market_value is not None:
            add("market_value", holding.market_value, ccy)
            add("unrealized_gain", holding.unrealized_gain, ccy)

    logger.debug(f"Summarized {count} holdings into {display_currency} ({unpriced} unpriced)")

    return PortfolioSummary(
        currency=display_currency,
        holdings_count=count,
        unpriced_holdings=unpriced,
        **totals,
    )
