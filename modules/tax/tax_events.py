"""
Lot and Event Data Models

Core data structures of the ledger:
- Lot: an open acquisition (mutated as sells consume it)
- RealizedLot: one sell-against-lot match (immutable)
- PendingSale / TaxAssessment: the tax calculator's input and output
- DividendRecord / FeeCharge: income and recurring-fee records of a holding

All money amounts are Decimal in portfolio currency unless the field name
says otherwise (``*_native`` is the stock currency of the holding).

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from lib.config import QUANTITY_EPSILON
from lib.currency import is_same_family
from lib.parsers.enhanced_transaction import HoldingKey
from lib.portfolio_config import MgmtFreq, MgmtType


@dataclass
class Lot:
    """
    A quantity acquired in one BUY, tracked independently for cost basis.

    Key Invariant: the buy fee per unit (original_fee / original_quantity) is
    fixed for the lot's lifetime, so every partial consumption allocates the
    same fee per unit sold.
    """

    lot_id: str
    key: HoldingKey
    buy_date: date
    quantity: Decimal
    original_quantity: Decimal
    buy_price_native: Decimal
    buy_price: Decimal
    currency: str
    original_fee: Decimal = field(default_factory=lambda: Decimal(0))
    fee_remaining: Decimal = field(default_factory=lambda: Decimal(0))
    cpi_at_buy: Optional[Decimal] = None
    vest_date: Optional[date] = None
    is_transfer: bool = False

    @property
    def cost_basis(self) -> Decimal:
        """Remaining cost in portfolio currency, excluding fees."""
        return self.quantity * self.buy_price

    @property
    def cost_basis_native(self) -> Decimal:
        return self.quantity * self.buy_price_native

    @property
    def fee_per_unit(self) -> Decimal:
        if self.original_quantity == 0:
            return Decimal(0)
        return self.original_fee / self.original_quantity

    def is_vested(self, on: date) -> bool:
        return self.vest_date is None or self.vest_date <= on

    def is_exhausted(self) -> bool:
        """Check if lot is fully consumed (with dust tolerance)."""
        return self.quantity <= QUANTITY_EPSILON

    def consume(self, quantity: Decimal) -> Tuple[Decimal, Decimal]:
        """
        Take ``quantity`` units out of the lot.

        Returns:
            (cost basis, allocated buy fee) of the consumed units
        """
        if quantity > self.quantity:
            raise ValueError(f"Cannot consume {quantity} from lot {self.lot_id} holding {self.quantity}")

        cost = quantity * self.buy_price

        if quantity == self.quantity:
            # Last slice takes whatever fee is left so the totals close exactly
            fee = self.fee_remaining
        else:
            fee = quantity * self.fee_per_unit

        self.quantity -= quantity
        self.fee_remaining -= fee
        return cost, fee


@dataclass(frozen=True)
class RealizedLot:
    """One match of a SELL against (part of) a lot."""

    lot_id: str
    key: HoldingKey
    quantity: Decimal
    buy_date: date
    sell_date: date
    buy_price: Decimal
    sell_price: Decimal
    proceeds: Decimal
    cost_basis: Decimal
    buy_fee: Decimal
    sell_fee: Decimal
    taxable_gain: Decimal = field(default_factory=lambda: Decimal(0))
    tax: Decimal = field(default_factory=lambda: Decimal(0))
    income_tax: Decimal = field(default_factory=lambda: Decimal(0))
    real_gain_applied: bool = False
    is_transfer: bool = False

    @property
    def gain_gross(self) -> Decimal:
        """Nominal gain before fees; transfers realize nothing."""
        if self.is_transfer:
            return Decimal(0)
        return self.proceeds - self.cost_basis

    @property
    def realized_gain_net(self) -> Decimal:
        if self.is_transfer:
            return Decimal(0)
        return self.proceeds - self.cost_basis - self.buy_fee - self.sell_fee

    @property
    def fees(self) -> Decimal:
        return self.buy_fee + self.sell_fee

    @property
    def holding_period_days(self) -> int:
        return (self.sell_date - self.buy_date).days


@dataclass(frozen=True)
class PendingSale:
    """
    A realized slice before tax: everything a tax calculator needs.

    ``gain_native_at_sale`` is the gain measured in the stock's own currency,
    converted to portfolio currency at the sale-date rate, net of fees.
    """

    quantity: Decimal
    buy_date: date
    sell_date: date
    proceeds: Decimal
    cost_basis: Decimal
    buy_fee: Decimal
    sell_fee: Decimal
    stock_currency: str
    portfolio_currency: str
    gain_native_at_sale: Optional[Decimal] = None

    @property
    def nominal_gain(self) -> Decimal:
        return self.proceeds - self.cost_basis - self.buy_fee - self.sell_fee

    @property
    def is_domestic(self) -> bool:
        return is_same_family(self.stock_currency, self.portfolio_currency)


@dataclass(frozen=True)
class TaxAssessment:
    taxable_gain: Decimal
    tax: Decimal
    income_tax: Decimal = field(default_factory=lambda: Decimal(0))
    real_gain_applied: bool = False


@dataclass(frozen=True)
class DividendRecord:
    """Cash dividend booked against one holding."""

    key: HoldingKey
    date: date
    quantity: Decimal
    amount_per_share: Decimal
    currency: str
    gross: Decimal
    fee: Decimal
    tax: Decimal
    net: Decimal
    quantity_vested: Optional[Decimal] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class FeeCharge:
    """Recurring management fee accrual; never changes share quantity."""

    key: HoldingKey
    date: date
    amount: Decimal
    quantity: Decimal
    price: Decimal
    mgmt_type: MgmtType
    mgmt_freq: MgmtFreq
    rate: Decimal
