"""
Transaction and Dividend Event Models

Immutable inputs to the ledger engine:
- Transactions (BUY/SELL and their transfer variants) per portfolio
- Dividend events per instrument (shared by every portfolio holding it)
- CPI index points for inflation-indexed tax

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lib.currency import normalize_currency


class TransactionTypeError(ValueError):
    """Raised when transaction type cannot be normalized."""
    pass


class TransactionType(str, Enum):
    """Ledger transaction types."""

    BUY = "BUY"
    SELL = "SELL"

    # Position moves between accounts: lots are created/consumed but the
    # disposal side realizes no taxable gain
    BUY_TRANSFER = "BUY_TRANSFER"
    SELL_TRANSFER = "SELL_TRANSFER"

    @classmethod
    def normalize(cls, value: str) -> 'TransactionType':
        """Normalize transaction type from various formats.

        Raises:
            TransactionTypeError: If the transaction type cannot be mapped.
        """
        if isinstance(value, cls):
            return value

        type_map = {
            "BUY": cls.BUY,
            "B": cls.BUY,
            "PURCHASE": cls.BUY,
            "SELL": cls.SELL,
            "S": cls.SELL,
            "SALE": cls.SELL,
            "BUYTRANSFER": cls.BUY_TRANSFER,
            "TRANSFERIN": cls.BUY_TRANSFER,
            "SELLTRANSFER": cls.SELL_TRANSFER,
            "TRANSFEROUT": cls.SELL_TRANSFER,
        }

        clean_value = str(value).strip().upper().replace(" ", "").replace("-", "").replace("_", "")
        result = type_map.get(clean_value)

        if result is None:
            raise TransactionTypeError(f"Unknown transaction type: '{value}'")

        return result

    @property
    def is_acquisition(self) -> bool:
        return self in (TransactionType.BUY, TransactionType.BUY_TRANSFER)

    @property
    def is_disposal(self) -> bool:
        return self in (TransactionType.SELL, TransactionType.SELL_TRANSFER)


class HoldingKey(NamedTuple):
    """Identity of a holding: one instrument inside one portfolio."""

    portfolio_id: str
    ticker: str
    exchange: str

    @property
    def price_key(self) -> str:
        return make_price_key(self.exchange, self.ticker)

    def __str__(self) -> str:
        return f"{self.portfolio_id}/{self.price_key}"


def make_price_key(exchange: str, ticker: str) -> str:
    """Live price map key, e.g. "NASDAQ:AAPL"."""
    return f"{exchange.strip().upper()}:{ticker.strip().upper()}"


def _parse_decimal(v):
    """Parse decimals from numbers or strings with thousands separators."""
    if v is None or v == "":
        return v
    if isinstance(v, str):
        v = v.replace(',', '').strip()
    return Decimal(str(v))


def _parse_date(v):
    """Accept dates, datetimes (time of day dropped) and ISO strings."""
    if isinstance(v, dt.datetime):
        return v.date()
    if isinstance(v, str):
        return dt.date.fromisoformat(v.strip()[:10])
    return v


class Transaction(BaseModel):
    """A single ledger event for one holding."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    portfolio_id: Optional[str] = None
    ticker: Optional[str] = None
    exchange: Optional[str] = None
    type: TransactionType

    quantity: Decimal = Field(gt=0)
    price: Decimal = Field(default=Decimal(0), ge=0)
    currency: str = "USD"

    # Commission in transaction currency; None means "use the portfolio schedule"
    commission: Optional[Decimal] = Field(default=None, ge=0)

    created_at: Optional[dt.datetime] = None
    vest_date: Optional[dt.date] = None
    source: Optional[str] = None
    numeric_id: Optional[int] = None

    @field_validator('type', mode='before')
    @classmethod
    def parse_type(cls, v):
        return TransactionType.normalize(v)

    @field_validator('quantity', 'price', 'commission', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _parse_decimal(v)

    @field_validator('date', 'vest_date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _parse_date(v)

    @field_validator('currency', mode='before')
    @classmethod
    def parse_currency(cls, v):
        return normalize_currency(v)

    @field_validator('ticker', 'exchange', mode='before')
    @classmethod
    def strip_identifier(cls, v):
        if v is None:
            return v
        v = str(v).strip().upper()
        return v or None

    @property
    def holding_key(self) -> HoldingKey:
        return HoldingKey(self.portfolio_id, self.ticker, self.exchange)

    @property
    def signed_quantity(self) -> Decimal:
        return self.quantity if self.type.is_acquisition else -self.quantity

    @property
    def effective_date(self) -> dt.date:
        """Date the position counts towards value: vest date for grants."""
        if self.vest_date is not None and self.type.is_acquisition:
            return self.vest_date
        return self.date

    @property
    def gross_value(self) -> Decimal:
        return self.quantity * self.price


class DividendEvent(BaseModel):
    """Per-share cash distribution of one instrument."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    exchange: str
    date: dt.date
    amount: Decimal = Field(ge=0)
    source: Optional[str] = None

    @field_validator('amount', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _parse_decimal(v)

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _parse_date(v)

    @field_validator('ticker', 'exchange', mode='before')
    @classmethod
    def strip_identifier(cls, v):
        return str(v).strip().upper()

    @property
    def price_key(self) -> str:
        return make_price_key(self.exchange, self.ticker)

    @property
    def identity(self) -> Tuple[str, str, str]:
        """Idempotency key used when syncing dividends from a feed."""
        return (self.price_key, self.date.isoformat(), str(self.amount.normalize()))


class CPIPoint(BaseModel):
    """One observation of the consumer price index."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    price: Decimal = Field(gt=0)

    @field_validator('price', mode='before')
    @classmethod
    def parse_decimal(cls, v):
        return _parse_decimal(v)

    @field_validator('date', mode='before')
    @classmethod
    def parse_date(cls, v):
        return _parse_date(v)
