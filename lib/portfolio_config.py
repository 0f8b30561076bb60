"""
Portfolio Configuration Model

A portfolio carries base fee and tax rates plus two effective-dated override
histories. An override entry may set any subset of its fields; unset fields
fall back to the portfolio base (see modules.tax.schedule).

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lib.currency import normalize_currency
from lib.parsers.enhanced_transaction import _parse_date, _parse_decimal


class TaxPolicy(str, Enum):
    """Capital gains regime of a portfolio."""

    NOMINAL_GAIN = "NOMINAL_GAIN"
    REAL_GAIN = "REAL_GAIN"
    TAX_FREE = "TAX_FREE"
    RSU_ACCOUNT = "RSU_ACCOUNT"


class DividendPolicy(str, Enum):
    """How dividend income is taxed and booked."""

    CASH_TAXED = "cash_taxed"
    ACCUMULATE_TAX_FREE = "accumulate_tax_free"
    HYBRID_RSU = "hybrid_rsu"


class MgmtType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class MgmtFreq(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def months(self) -> int:
        """Months between two accruals."""
        return {"monthly": 1, "quarterly": 3, "yearly": 12}[self.value]

    @property
    def periods_per_year(self) -> int:
        return 12 // self.months


RATE_FIELDS = ('cgt', 'inc_tax', 'comm_rate', 'comm_min', 'comm_max', 'div_comm_rate', 'mgmt_val')


class FeeHistoryEntry(BaseModel):
    """Fee schedule override effective from ``start_date``."""

    model_config = ConfigDict(frozen=True)

    start_date: dt.date
    mgmt_val: Optional[Decimal] = Field(default=None, ge=0)
    mgmt_type: Optional[MgmtType] = None
    mgmt_freq: Optional[MgmtFreq] = None
    div_comm_rate: Optional[Decimal] = Field(default=None, ge=0)
    comm_rate: Optional[Decimal] = Field(default=None, ge=0)
    comm_min: Optional[Decimal] = Field(default=None, ge=0)
    comm_max: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator('start_date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _parse_date(v)

    @field_validator('mgmt_val', 'div_comm_rate', 'comm_rate', 'comm_min', 'comm_max', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _parse_decimal(v)


class TaxHistoryEntry(BaseModel):
    """Tax rate override effective from ``start_date``."""

    model_config = ConfigDict(frozen=True)

    start_date: dt.date
    cgt: Optional[Decimal] = Field(default=None, ge=0, le=1)
    inc_tax: Optional[Decimal] = Field(default=None, ge=0, le=1)

    @field_validator('start_date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _parse_date(v)

    @field_validator('cgt', 'inc_tax', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _parse_decimal(v)


class Portfolio(BaseModel):
    """Account-level configuration, immutable for an engine run."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    currency: str = "USD"

    cgt: Decimal = Field(default=Decimal("0.25"), ge=0, le=1)
    inc_tax: Decimal = Field(default=Decimal(0), ge=0, le=1)

    comm_rate: Decimal = Field(default=Decimal(0), ge=0)
    comm_min: Decimal = Field(default=Decimal(0), ge=0)
    comm_max: Decimal = Field(default=Decimal(0), ge=0)
    div_comm_rate: Decimal = Field(default=Decimal(0), ge=0)

    mgmt_val: Decimal = Field(default=Decimal(0), ge=0)
    mgmt_type: MgmtType = MgmtType.PERCENTAGE
    mgmt_freq: MgmtFreq = MgmtFreq.YEARLY

    tax_policy: TaxPolicy = TaxPolicy.NOMINAL_GAIN
    div_policy: DividendPolicy = DividendPolicy.CASH_TAXED

    fee_history: List[FeeHistoryEntry] = Field(default_factory=list)
    tax_history: List[TaxHistoryEntry] = Field(default_factory=list)

    @field_validator(*RATE_FIELDS, mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _parse_decimal(v)

    @field_validator('currency', mode='before')
    @classmethod
    def parse_currency(cls, v):
        return normalize_currency(v)

    @property
    def has_management_fee(self) -> bool:
        """True when the base or any override charges a management fee."""
        if self.mgmt_val > 0:
            return True
        return any(entry.mgmt_val for entry in self.fee_history)
