"""
Engine Error Taxonomy

Integrity errors abort an engine run. Data-quality problems are not
exceptions; they are recorded in a ``DataQualityLog`` (see lib.validators).

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal
from typing import Optional


class PortfolioEngineError(Exception):
    """Base class for all engine failures."""


class LedgerIntegrityError(PortfolioEngineError, ValueError):
    """Input cannot be replayed into a consistent ledger."""


class MissingFieldError(LedgerIntegrityError):
    """A transaction lacks a field required to place it in a holding."""

    def __init__(self, field_name: str, reference: Optional[str] = None):
        self.field_name = field_name
        self.reference = reference
        where = f" ({reference})" if reference else ""
        super().__init__(f"Transaction is missing required field '{field_name}'{where}")


class NegativePositionError(LedgerIntegrityError):
    """A SELL asks for more units than the holding has in active lots."""

    def __init__(self, holding: str, requested: Decimal, available: Decimal, on_date=None):
        self.holding = holding
        self.requested = requested
        self.available = available
        self.on_date = on_date
        when = f" on {on_date}" if on_date else ""
        super().__init__(
            f"Sell of {requested} units of {holding}{when} exceeds "
            f"available quantity {available}"
        )


class CalculatorNotFoundError(PortfolioEngineError, ValueError):
    """No tax calculator is registered for the requested policy."""
