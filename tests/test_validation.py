"""
Unit Tests for Input Models, Validation, Configuration and Logging

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from lib.config import EngineSettings
from lib.currency import base_currency, normalize_currency
from lib.errors import MissingFieldError
from lib.parsers.enhanced_transaction import (
    DividendEvent,
    TransactionType,
    TransactionTypeError,
)
from lib.validators import DataQualityLog, DataValidator, ValidationIssue
from utils.logging_config import PerformanceLogger, StructuredFormatter, setup_logger


class TestTransactionModel:

    @pytest.mark.parametrize("raw,expected", [
        ("buy", TransactionType.BUY),
        ("S", TransactionType.SELL),
        ("Buy Transfer", TransactionType.BUY_TRANSFER),
        ("sell_transfer", TransactionType.SELL_TRANSFER),
        ("transfer-out", TransactionType.SELL_TRANSFER),
    ])
    def test_type_normalization(self, raw, expected):
        assert TransactionType.normalize(raw) == expected

    def test_unknown_type(self):
        with pytest.raises(TransactionTypeError):
            TransactionType.normalize("SPLIT")

    def test_parsing(self, make_txn):
        txn = make_txn(quantity="1,000", price=" 12.5 ", on=datetime(2024, 3, 1, 14, 30), ticker=" aapl ")

        assert txn.quantity == Decimal(1000)
        assert txn.price == Decimal("12.5")
        assert txn.date == date(2024, 3, 1)
        assert txn.ticker == "AAPL"
        assert txn.holding_key.price_key == "NASDAQ:AAPL"
        assert str(txn.holding_key) == "p1/NASDAQ:AAPL"

    def test_quantity_must_be_positive(self, make_txn):
        with pytest.raises(ValidationError):
            make_txn(quantity="0")

    def test_signed_quantity(self, make_txn):
        assert make_txn("SELL", quantity="3").signed_quantity == Decimal(-3)
        assert make_txn("BUY_TRANSFER", quantity="3").signed_quantity == Decimal(3)

    def test_frozen(self, make_txn):
        txn = make_txn()
        with pytest.raises(ValidationError):
            txn.price = Decimal(1)

    def test_dividend_identity(self):
        event = DividendEvent(ticker="aapl", exchange="nasdaq", date="2024-03-01", amount="0.2400")
        assert event.identity == ("NASDAQ:AAPL", "2024-03-01", "0.24")


class TestCurrency:

    def test_aliases(self):
        assert normalize_currency(" nis ") == "ILS"
        assert normalize_currency("eur") == "EUR"
        assert base_currency("ILA") == "ILS"

    def test_blank(self):
        with pytest.raises(ValueError):
            normalize_currency("  ")


class TestDataValidator:

    def test_missing_exchange(self, make_txn):
        with pytest.raises(MissingFieldError, match="exchange"):
            DataValidator().validate_all([make_txn(exchange="  ")])

    def test_out_of_order_is_informational(self, make_txn):
        log = DataValidator().validate_all([
            make_txn(on=date(2024, 2, 1)),
            make_txn(on=date(2024, 1, 1), quantity="1"),
        ])

        issues = log.by_category(DataQualityLog.DATE_ORDER)
        assert len(issues) == 1
        assert issues[0].severity == ValidationIssue.SEVERITY_INFO
        assert log.warnings == []

    def test_summary(self):
        log = DataQualityLog()
        log.warn(DataQualityLog.MISSING_RATE, "no EUR", currency="EUR")
        log.warn(DataQualityLog.MISSING_RATE, "no GBP", currency="GBP")
        log.info(DataQualityLog.DATE_ORDER, "unsorted")

        assert log.summary() == {DataQualityLog.MISSING_RATE: 2, DataQualityLog.DATE_ORDER: 1}
        assert len(log) == 3
        assert [i.context.get("currency") for i in log][:2] == ["EUR", "GBP"]


class TestEngineSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("PORTFOLIO_REFERENCE_CURRENCY", raising=False)
        monkeypatch.delenv("PORTFOLIO_SLOW_OPERATION_MS", raising=False)

        settings = EngineSettings.from_env()
        assert settings.log_level == "INFO"
        assert settings.reference_currency == "USD"
        assert settings.slow_operation_ms == 1000.0

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("PORTFOLIO_REFERENCE_CURRENCY", "ils")
        monkeypatch.setenv("PORTFOLIO_SLOW_OPERATION_MS", "250")

        settings = EngineSettings.from_env()
        assert settings.log_level == "DEBUG"
        assert settings.reference_currency == "ILS"
        assert settings.slow_operation_ms == 250.0


class TestLogging:

    def test_structured_context(self):
        record = logging.LogRecord("engine", logging.WARNING, __file__, 10, "Missing rate", None, None)
        record.context = {"period": "ago1w", "currency": "EUR"}

        line = StructuredFormatter().format(record)

        assert "[WARNING ]" in line
        assert line.endswith("Missing rate currency=EUR period=ago1w")

    def test_setup_logger_is_idempotent(self):
        first = setup_logger("tests.idempotent")
        second = setup_logger("tests.idempotent")

        assert first is second
        assert len(second.handlers) == 1
        assert not second.propagate

    def test_performance_logger_reraises(self):
        timer = PerformanceLogger(logging.getLogger("tests.timer"), "explode")

        with pytest.raises(RuntimeError):
            with timer:
                raise RuntimeError("boom")
        assert timer.duration_ms is not None
