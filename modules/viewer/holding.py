"""
Holding Aggregate

One instrument inside one portfolio: its open lots, realized slices,
dividends and recurring fee charges, plus the totals derived from them.

Totals are computed on access, so re-hydrating prices never requires
replaying transactions.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from lib.parsers.enhanced_transaction import HoldingKey, Transaction
from lib.portfolio_config import TaxPolicy
from modules.tax.tax_events import DividendRecord, FeeCharge, Lot, RealizedLot

ZERO = Decimal(0)


@dataclass
class Holding:
    """Ledger state of one (portfolio, ticker, exchange)."""

    key: HoldingKey
    portfolio_currency: str
    stock_currency: str
    tax_policy: TaxPolicy = TaxPolicy.NOMINAL_GAIN
    active_lots: List[Lot] = field(default_factory=list)
    realized_lots: List[RealizedLot] = field(default_factory=list)
    dividends: List[DividendRecord] = field(default_factory=list)
    fee_charges: List[FeeCharge] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)

    # Hydrated after the ledger is built; None means "no price known"
    current_price: Optional[Decimal] = None
    current_price_pc: Optional[Decimal] = None

    @property
    def portfolio_id(self) -> str:
        return self.key.portfolio_id

    @property
    def ticker(self) -> str:
        return self.key.ticker

    @property
    def exchange(self) -> str:
        return self.key.exchange

    @property
    def first_transaction_date(self) -> Optional[date]:
        if not self.transactions:
            return None
        return min(t.date for t in self.transactions)

    # Quantities

    @property
    def qty_total(self) -> Decimal:
        return sum((lot.quantity for lot in self.active_lots), start=ZERO)

    def qty_vested(self, on: date) -> Decimal:
        return sum((lot.quantity for lot in self.active_lots if lot.is_vested(on)), start=ZERO)

    @property
    def qty_realized(self) -> Decimal:
        return sum((r.quantity for r in self.realized_lots), start=ZERO)

    def quantity_breakdown_at(self, on: date) -> Tuple[Decimal, Decimal]:
        """
        (vested, unvested) units held at the end of ``on``.

        Transactions dated ``on`` are included. Disposals come out of the
        vested units first.
        """
        vested = ZERO
        unvested = ZERO

        for txn in sorted(self.transactions, key=lambda t: t.date):
            if txn.date > on:
                break
            if txn.type.is_acquisition:
                if txn.vest_date is None or txn.vest_date <= on:
                    vested += txn.quantity
                else:
                    unvested += txn.quantity
            else:
                vested -= txn.quantity
                if vested < 0:
                    # Sold more than vested: the remainder came from unvested units
                    unvested += vested
                    vested = ZERO

        return max(vested, ZERO), max(unvested, ZERO)

    def quantity_at(self, on: date) -> Decimal:
        vested, unvested = self.quantity_breakdown_at(on)
        return vested + unvested

    # Cost

    @property
    def cost_basis(self) -> Decimal:
        return sum((lot.cost_basis for lot in self.active_lots), start=ZERO)

    @property
    def active_fees(self) -> Decimal:
        """Buy fees still attached to open lots."""
        return sum((lot.fee_remaining for lot in self.active_lots), start=ZERO)

    @property
    def cost_basis_with_fees(self) -> Decimal:
        return self.cost_basis + self.active_fees

    # Income

    @property
    def dividends_gross(self) -> Decimal:
        return sum((d.gross for d in self.dividends), start=ZERO)

    @property
    def dividends_total(self) -> Decimal:
        """Net dividend income."""
        return sum((d.net for d in self.dividends), start=ZERO)

    @property
    def dividend_fees(self) -> Decimal:
        return sum((d.fee for d in self.dividends), start=ZERO)

    @property
    def dividend_tax(self) -> Decimal:
        return sum((d.tax for d in self.dividends), start=ZERO)

    # Realized

    @property
    def realized_gain_gross(self) -> Decimal:
        return sum((r.gain_gross for r in self.realized_lots), start=ZERO)

    @property
    def realized_gain_net(self) -> Decimal:
        return sum((r.realized_gain_net for r in self.realized_lots), start=ZERO)

    @property
    def realized_tax(self) -> Decimal:
        return sum((r.tax for r in self.realized_lots if not r.is_transfer), start=ZERO)

    @property
    def realized_income_tax(self) -> Decimal:
        return sum((r.income_tax for r in self.realized_lots if not r.is_transfer), start=ZERO)

    @property
    def realized_fees(self) -> Decimal:
        return sum((r.buy_fee + r.sell_fee for r in self.realized_lots), start=ZERO)

    # Fees

    @property
    def recurring_fees_total(self) -> Decimal:
        return sum((c.amount for c in self.fee_charges), start=ZERO)

    @property
    def fees_total(self) -> Decimal:
        return self.active_fees + self.realized_fees + self.recurring_fees_total

    # Valuation (requires hydrated prices)

    @property
    def market_value(self) -> Optional[Decimal]:
        if self.current_price_pc is None:
            return None
        return self.current_price_pc * self.qty_total

    @property
    def unrealized_gain(self) -> Optional[Decimal]:
        """None while the price is unknown; never a loss of the whole position."""
        value = self.market_value
        if value is None:
            return None
        return value - self.cost_basis_with_fees
