"""
Unit Tests for Price Hydration, Holding Snapshots and Portfolio Summary

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import date
from decimal import Decimal

import pytest

from lib.parsers.enhanced_transaction import CPIPoint, HoldingKey
from lib.portfolio_config import Portfolio, TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.engine import build_ledger
from modules.tax.inflation import CPIIndex
from modules.viewer.snapshot import (
    PriceQuote,
    calculate_snapshot,
    hydrate_prices,
    summarize_portfolio,
)

KEY = HoldingKey("p1", "AAPL", "NASDAQ")


@pytest.fixture
def holdings(usd_portfolio, rates, make_txn):
    return build_ledger([usd_portfolio], [
        make_txn(quantity="10", price="100", commission="10"),
        make_txn("SELL", quantity="4", price="120", on=date(2024, 2, 1)),
    ], rates)


class TestHydratePrices:

    def test_unrealized_gain(self, holdings, rates):
        hydrated = hydrate_prices(holdings, {"NASDAQ:AAPL": 150}, rates)
        holding = hydrated[KEY]

        assert holding.market_value == Decimal(900)
        # 6 units at 100 plus the 6 still carrying a 1.00 buy fee
        assert holding.cost_basis_with_fees == Decimal(606)
        assert holding.unrealized_gain == Decimal(294)

    def test_original_holdings_untouched(self, holdings, rates):
        hydrate_prices(holdings, {"NASDAQ:AAPL": 150}, rates)
        assert holdings[KEY].current_price is None

    @pytest.mark.parametrize("quote", [None, 0, PriceQuote(Decimal(0), "USD")])
    def test_missing_price_is_unknown_not_a_loss(self, holdings, rates, quote):
        warnings = DataQualityLog()
        price_map = {} if quote is None else {"NASDAQ:AAPL": quote}
        holding = hydrate_prices(holdings, price_map, rates, warnings)[KEY]

        assert holding.market_value is None
        assert holding.unrealized_gain is None
        assert len(warnings.by_category(DataQualityLog.MISSING_PRICE)) == 1

    def test_quote_in_other_currency(self, rates, make_txn):
        portfolio = Portfolio(id="p1", currency="ILS")
        holdings = build_ledger([portfolio], [
            make_txn(quantity="10", price="1000", currency="ILA", exchange="TASE"),
        ], rates)
        key = HoldingKey("p1", "AAPL", "TASE")

        holding = hydrate_prices(holdings, {"TASE:AAPL": PriceQuote(Decimal(12), "ILS")}, rates)[key]

        assert holding.current_price == Decimal(1200)
        assert holding.current_price_pc == Decimal(12)
        assert holding.market_value == Decimal(120)

    def test_rehydration_is_idempotent(self, holdings, rates):
        once = hydrate_prices(holdings, {"NASDAQ:AAPL": 150}, rates)
        twice = hydrate_prices(once, {"NASDAQ:AAPL": 150}, rates)

        assert calculate_snapshot(once[KEY]) == calculate_snapshot(twice[KEY])

    def test_price_refresh_does_not_replay(self, holdings, rates):
        first = hydrate_prices(holdings, {"NASDAQ:AAPL": 150}, rates)
        second = hydrate_prices(first, {"NASDAQ:AAPL": 160}, rates)

        assert second[KEY].realized_gain_net == first[KEY].realized_gain_net
        assert second[KEY].market_value == Decimal(960)


class TestSnapshot:

    def test_totals(self, holdings, rates, usd_portfolio):
        holding = hydrate_prices(holdings, {"NASDAQ:AAPL": 150}, rates)[KEY]
        snapshot = calculate_snapshot(holding, usd_portfolio, as_of=date(2024, 3, 1))

        assert snapshot.qty_total == Decimal(6)
        assert snapshot.realized_gain_net == Decimal(76)
        assert snapshot.fees_total == Decimal(10)
        # (150 - 100) * 6 - 6 fee = 294 -> 73.5 at 25%
        assert snapshot.unrealized_tax == Decimal("73.5")
        assert snapshot.total_gain == Decimal(370)

    def test_unpriced_snapshot(self, holdings, usd_portfolio):
        snapshot = calculate_snapshot(holdings[KEY], usd_portfolio, as_of=date(2024, 3, 1))

        assert snapshot.market_value is None
        assert snapshot.unrealized_tax is None
        assert snapshot.total_gain is None

    def test_unrealized_tax_with_inflation(self, rates, make_txn):
        portfolio = Portfolio(id="p1", currency="ILS", cgt="0.25", tax_policy=TaxPolicy.REAL_GAIN)
        holdings = build_ledger([portfolio], [
            make_txn(quantity="10", price="1", currency="ILS", exchange="TASE", on=date(2023, 1, 1)),
        ], rates)
        key = HoldingKey("p1", "AAPL", "TASE")
        cpi = CPIIndex([CPIPoint(date="2023-01-01", price="100"), CPIPoint(date="2024-01-01", price="110")])

        holding = hydrate_prices(holdings, {"TASE:AAPL": 2}, rates)[key]
        snapshot = calculate_snapshot(holding, portfolio, cpi, as_of=date(2024, 1, 1))

        assert snapshot.unrealized_tax == Decimal("2.25")


class TestPortfolioSummary:

    def test_display_currency_conversion(self, holdings, rates):
        hydrated = hydrate_prices(holdings, {"NASDAQ:AAPL": 150}, rates)
        summary = summarize_portfolio(hydrated.values(), "ILS", rates)

        assert summary.market_value == Decimal("3150.0")
        assert summary.holdings_count == 1
        assert summary.unpriced_holdings == 0

    def test_unpriced_counted(self, holdings, rates):
        summary = summarize_portfolio(holdings.values(), "USD", rates)

        assert summary.unpriced_holdings == 1
        assert summary.market_value == Decimal(0)
        assert summary.cost_basis == Decimal(606)
