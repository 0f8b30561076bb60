"""
Data Quality Validation

Two kinds of findings come out of an engine run:

- Integrity problems (missing ticker/exchange/portfolio) are raised as
  ``LedgerIntegrityError`` before any ledger state is built.
- Quality problems (missing exchange rates, missing CPI points, missing
  prices) are collected in a ``DataQualityLog`` that travels alongside the
  result, so the run can finish with degraded values.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from lib.errors import MissingFieldError
from lib.parsers.enhanced_transaction import Transaction
from utils.logging_config import setup_logger

logger = setup_logger(__name__)


class ValidationIssue:
    """Represents a data quality issue."""

    SEVERITY_ERROR = "ERROR"
    SEVERITY_WARNING = "WARNING"
    SEVERITY_INFO = "INFO"

    def __init__(
        self,
        severity: str,
        category: str,
        message: str,
        context: Optional[Dict[str, Any]] = None
    ):
        self.severity = severity
        self.category = category
        self.message = message
        self.context = dict(context or {})

    def __repr__(self) -> str:
        return f"ValidationIssue({self.severity}, {self.category!r}, {self.message!r})"


class DataQualityLog:
    """
    Collector for recoverable data-quality findings.

    Every recorded issue is also logged, so a caller that ignores the
    collection still sees the problem in the logs.
    """

    # Categories used across the engine
    MISSING_RATE = "MissingRate"
    MISSING_CPI = "MissingCPI"
    MISSING_PRICE = "MissingPrice"
    DUPLICATE = "Duplicate"
    DATE_ORDER = "DateOrder"

    def __init__(self):
        self.issues: List[ValidationIssue] = []

    def warn(self, category: str, message: str, **context) -> ValidationIssue:
        issue = ValidationIssue(ValidationIssue.SEVERITY_WARNING, category, message, context)
        self.issues.append(issue)
        logger.warning(f"[{category}] {message}", extra={"context": context})
        return issue

    def info(self, category: str, message: str, **context) -> ValidationIssue:
        issue = ValidationIssue(ValidationIssue.SEVERITY_INFO, category, message, context)
        self.issues.append(issue)
        logger.info(f"[{category}] {message}", extra={"context": context})
        return issue

    def extend(self, issues: Iterable[ValidationIssue]):
        """Adopt issues recorded elsewhere; they were logged there already."""
        self.issues.extend(issues)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationIssue.SEVERITY_WARNING]

    def by_category(self, category: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.category == category]

    def summary(self) -> Dict[str, int]:
        return dict(Counter(i.category for i in self.issues))

    def __len__(self) -> int:
        return len(self.issues)

    def __iter__(self) -> Iterator[ValidationIssue]:
        return iter(self.issues)


class DataValidator:
    """Pre-flight checks over a raw transaction list."""

    REQUIRED_FIELDS = ("portfolio_id", "ticker", "exchange")

    def __init__(self, log: Optional[DataQualityLog] = None):
        self.log = log if log is not None else DataQualityLog()

    def validate_all(self, transactions: Sequence[Transaction]) -> DataQualityLog:
        """
        Run all checks.

        Raises:
            MissingFieldError: On the first transaction lacking a holding field
        """
        self.check_required_fields(transactions)
        self.check_duplicates(transactions)
        self.check_date_order(transactions)
        return self.log

    def check_required_fields(self, transactions: Sequence[Transaction]):
        for index, txn in enumerate(transactions):
            for field_name in self.REQUIRED_FIELDS:
                value = getattr(txn, field_name)
                if value is None or not str(value).strip():
                    raise MissingFieldError(field_name, f"transaction #{index} on {txn.date}")

    def check_duplicates(self, transactions: Sequence[Transaction]):
        """Flag identical rows; they are still replayed as given."""
        seen = set()

        for txn in transactions:
            fingerprint = (
                txn.portfolio_id,
                txn.date,
                txn.type,
                txn.ticker,
                txn.exchange,
                txn.quantity,
                txn.price,
                txn.numeric_id,
            )

            if fingerprint in seen:
                self.log.warn(
                    DataQualityLog.DUPLICATE,
                    "Potential duplicate transaction (same date, type, ticker, quantity, price)",
                    ticker=txn.ticker,
                    date=txn.date,
                )
            else:
                seen.add(fingerprint)

    def check_date_order(self, transactions: Sequence[Transaction]):
        """Input out of date order is fine (the ledger sorts), but worth a note."""
        for previous, current in zip(transactions, transactions[1:]):
            if current.date < previous.date:
                self.log.info(
                    DataQualityLog.DATE_ORDER,
                    "Transactions are not in date order; replay will sort them",
                    first_out_of_order=current.date,
                )
                return
