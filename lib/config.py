"""
Engine Configuration

Static constants shared by the ledger, rate resolver and performance engine,
plus environment-driven runtime settings.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import os
from decimal import Decimal
from typing import Tuple

from pydantic import BaseModel, Field


# All exchange rates are quoted against this currency
REFERENCE_CURRENCY = "USD"

# Always present in a resolved rate table (0 when unresolvable)
MANDATORY_CURRENCIES: Tuple[str, ...] = ("ILS", "EUR", "GBP")

# Named rate periods, most recent first
STANDARD_PERIODS: Tuple[str, ...] = (
    "current",
    "ago1d",
    "ago1w",
    "ago1m",
    "ago3m",
    "ytd",
    "ago1y",
    "ago3y",
    "ago5y",
)

# Only "current" may borrow from another period
PERIOD_FALLBACKS = {"current": "ago1d"}

# Agorot per shekel
ILA_PER_ILS = Decimal(100)

# Quantities below this are treated as zero (fractional share dust)
QUANTITY_EPSILON = Decimal("1e-9")

# Portfolio values below this are treated as an empty portfolio in TWR
VALUE_EPSILON = 1e-6


class EngineSettings(BaseModel):
    """Runtime settings read from the environment."""

    log_level: str = "INFO"
    reference_currency: str = REFERENCE_CURRENCY
    slow_operation_ms: float = Field(default=1000.0, gt=0)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            reference_currency=os.getenv("PORTFOLIO_REFERENCE_CURRENCY", REFERENCE_CURRENCY).upper(),
            slow_operation_ms=float(os.getenv("PORTFOLIO_SLOW_OPERATION_MS", "1000")),
        )
