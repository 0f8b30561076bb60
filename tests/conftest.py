"""
Shared fixtures for the engine test suite.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from datetime import date

import pytest

from lib.fx_rates import resolve_exchange_rates
from lib.parsers.enhanced_transaction import DividendEvent, Transaction
from lib.portfolio_config import Portfolio


@pytest.fixture
def rates():
    """Complete current rates: 1 USD = 3.5 ILS = 1/1.1 EUR = 0.8 GBP."""
    return resolve_exchange_rates({
        "current": {"USDILS": "3.5", "EURUSD": "1.1", "GBPUSD": "1.25"},
    })


@pytest.fixture
def usd_portfolio():
    return Portfolio(id="p1", name="Brokerage", currency="USD", cgt="0.25")


@pytest.fixture
def make_txn():
    """Factory for transactions with sensible defaults."""
    def _make(type_="BUY", quantity="10", price="100", on=date(2024, 1, 1), **kwargs):
        data = dict(
            date=on,
            portfolio_id="p1",
            ticker="AAPL",
            exchange="NASDAQ",
            type=type_,
            quantity=quantity,
            price=price,
            currency="USD",
            commission="0",
        )
        data.update(kwargs)
        return Transaction(**data)
    return _make


@pytest.fixture
def make_dividend():
    def _make(on, amount="1", ticker="AAPL", exchange="NASDAQ", **kwargs):
        return DividendEvent(ticker=ticker, exchange=exchange, date=on, amount=amount, **kwargs)
    return _make
