"""
Lot Ledger - FIFO Cost Basis Engine

Replays each holding's transactions in date order and tracks:
1. Lots (one per BUY) with their remaining quantity and unallocated fee
2. Realized slices (one per SELL-against-lot match) with allocated fees
3. Tax per slice, via the calculator registered for the portfolio's policy

Money is converted to portfolio currency at the transaction date, using the
dated snapshots of the exchange rate table.

Invariant (per holding, at every step):
    sum(active qty) == sum(acquired qty) - sum(disposed qty)
    sum(active qty) + sum(realized qty) == sum(acquired qty)
A SELL larger than the open position raises NegativePositionError and no
holdings are returned.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from lib.config import QUANTITY_EPSILON
from lib.errors import LedgerIntegrityError, NegativePositionError
from lib.fx_rates import ExchangeRateTable, convert_currency
from lib.parsers.enhanced_transaction import (
    DividendEvent,
    HoldingKey,
    Transaction,
    TransactionType,
)
from lib.portfolio_config import Portfolio
from lib.validators import DataQualityLog, DataValidator
from modules.tax.calculators import TaxCalculator, get_calculator
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import calculate_commission, get_tax_rates_for_date
from modules.tax.tax_events import Lot, PendingSale, RealizedLot, TaxAssessment
from modules.viewer.dividends import process_dividends
from modules.viewer.holding import Holding
from utils.logging_config import get_perf_logger, setup_logger

logger = setup_logger(__name__)

ZERO = Decimal(0)


class LotMatchingStrategy(ABC):
    """Decides which open lots a sell consumes, and how much of each."""

    @abstractmethod
    def match_sell(self, quantity: Decimal, open_lots: Sequence[Lot]) -> List[Tuple[Lot, Decimal]]:
        pass

    @abstractmethod
    def get_method_name(self) -> str:
        pass


class FIFOStrategy(LotMatchingStrategy):
    """First-In, First-Out lot matching."""

    def match_sell(self, quantity: Decimal, open_lots: Sequence[Lot]) -> List[Tuple[Lot, Decimal]]:
        # Stable sort: lots bought on the same day keep their replay order
        sorted_lots = sorted(open_lots, key=lambda lot: lot.buy_date)

        remaining_to_sell = quantity
        matches = []

        for lot in sorted_lots:
            if remaining_to_sell <= 0:
                break

            qty_from_lot = min(lot.quantity, remaining_to_sell)
            if qty_from_lot <= 0:
                continue

            matches.append((lot, qty_from_lot))
            remaining_to_sell -= qty_from_lot

        return matches

    def get_method_name(self) -> str:
        return "FIFO"


class LotLedger:
    """
    Builds holdings from a transaction log.

    Each holding is replayed independently; nothing is shared between
    holdings apart from the read-only inputs.
    """

    def __init__(
        self,
        portfolios: Union[Mapping[str, Portfolio], Iterable[Portfolio]],
        rates: ExchangeRateTable,
        cpi: Optional[CPIIndex] = None,
        warnings: Optional[DataQualityLog] = None,
        strategy: Optional[LotMatchingStrategy] = None
    ):
        if isinstance(portfolios, Mapping):
            self.portfolios: Dict[str, Portfolio] = dict(portfolios)
        else:
            self.portfolios = {p.id: p for p in portfolios}

        self.rates = rates
        self.cpi = cpi if cpi is not None else CPIIndex()
        self.warnings = warnings if warnings is not None else DataQualityLog()
        self.strategy = strategy or FIFOStrategy()
        self._calculators: Dict[str, TaxCalculator] = {}

    def process(
        self,
        transactions: Sequence[Transaction],
        dividends: Sequence[DividendEvent] = ()
    ) -> Dict[HoldingKey, Holding]:
        """
        Replay all transactions, then book dividends against the result.

        Raises:
            LedgerIntegrityError: Missing fields, unknown portfolio, or a
                sell exceeding the open position
        """
        DataValidator(self.warnings).validate_all(transactions)

        groups: "OrderedDict[HoldingKey, List[Transaction]]" = OrderedDict()
        for txn in transactions:
            groups.setdefault(txn.holding_key, []).append(txn)

        logger.debug(
            f"Replaying {len(transactions)} transactions across {len(groups)} holdings "
            f"with {self.strategy.get_method_name()}"
        )

        holdings: Dict[HoldingKey, Holding] = {}
        for key, txns in groups.items():
            portfolio = self._portfolio(key.portfolio_id)
            # sorted() is stable: same-day transactions keep input order
            holdings[key] = self._replay(key, portfolio, sorted(txns, key=lambda t: t.date))

        for key, holding in holdings.items():
            process_dividends(holding, dividends, self.portfolios[key.portfolio_id], self.rates, self.warnings)

        return holdings

    def _portfolio(self, portfolio_id: str) -> Portfolio:
        try:
            return self.portfolios[portfolio_id]
        except KeyError:
            raise LedgerIntegrityError(f"Transaction references unknown portfolio '{portfolio_id}'") from None

    def _calculator(self, portfolio: Portfolio) -> TaxCalculator:
        policy = portfolio.tax_policy.value
        if policy not in self._calculators:
            self._calculators[policy] = get_calculator(portfolio.tax_policy)
        return self._calculators[policy]

    def _replay(self, key: HoldingKey, portfolio: Portfolio, transactions: List[Transaction]) -> Holding:
        holding = Holding(
            key=key,
            portfolio_currency=portfolio.currency,
            stock_currency=transactions[0].currency,
            tax_policy=portfolio.tax_policy,
            transactions=list(transactions),
        )

        for sequence, txn in enumerate(transactions, start=1):
            if txn.type.is_acquisition:
                self.handle_buy(holding, portfolio, txn, sequence)
            else:
                self.handle_sell(holding, portfolio, txn)

        logger.debug(
            f"{key}: {len(holding.active_lots)} open lots, "
            f"{len(holding.realized_lots)} realized slices"
        )
        return holding

    def _commission_pc(self, portfolio: Portfolio, txn: Transaction, value_pc: Decimal, rates) -> Decimal:
        """Recorded commission, or the schedule's default for plain trades."""
        if txn.commission is not None:
            return convert_currency(txn.commission, txn.currency, portfolio.currency, rates, self.warnings)
        if txn.type in (TransactionType.BUY, TransactionType.SELL):
            return calculate_commission(portfolio, txn.date, value_pc)
        return ZERO

    def handle_buy(self, holding: Holding, portfolio: Portfolio, txn: Transaction, sequence: int):
        rates = self.rates.rates_on(txn.date)

        price_pc = convert_currency(txn.price, txn.currency, portfolio.currency, rates, self.warnings)
        price_native = convert_currency(txn.price, txn.currency, holding.stock_currency, rates, self.warnings)
        fee_pc = self._commission_pc(portfolio, txn, txn.quantity * price_pc, rates)

        lot_id = f"lot_{txn.numeric_id}" if txn.numeric_id is not None else f"{holding.key.price_key}#{sequence}"

        holding.active_lots.append(Lot(
            lot_id=lot_id,
            key=holding.key,
            buy_date=txn.date,
            quantity=txn.quantity,
            original_quantity=txn.quantity,
            buy_price_native=price_native,
            buy_price=price_pc,
            currency=holding.stock_currency,
            original_fee=fee_pc,
            fee_remaining=fee_pc,
            cpi_at_buy=self.cpi.value_on(txn.date),
            vest_date=txn.vest_date,
            is_transfer=txn.type == TransactionType.BUY_TRANSFER,
        ))

    def handle_sell(self, holding: Holding, portfolio: Portfolio, txn: Transaction):
        available = holding.qty_total
        quantity = txn.quantity

        if quantity > available + QUANTITY_EPSILON:
            raise NegativePositionError(str(holding.key), quantity, available, txn.date)
        quantity = min(quantity, available)

        rates = self.rates.rates_on(txn.date)
        sell_price_pc = convert_currency(txn.price, txn.currency, portfolio.currency, rates, self.warnings)
        sell_price_native = convert_currency(txn.price, txn.currency, holding.stock_currency, rates, self.warnings)
        commission_pc = self._commission_pc(portfolio, txn, quantity * sell_price_pc, rates)

        # Stock currency -> portfolio currency on the sale date
        sale_rate = convert_currency(Decimal(1), holding.stock_currency, portfolio.currency, rates)

        tax_rates = get_tax_rates_for_date(portfolio, txn.date)
        is_transfer = txn.type == TransactionType.SELL_TRANSFER

        for lot, qty_from_lot in self.strategy.match_sell(quantity, holding.active_lots):
            buy_price_native = lot.buy_price_native
            cost, buy_fee = lot.consume(qty_from_lot)
            sell_fee = commission_pc * qty_from_lot / quantity
            proceeds = qty_from_lot * sell_price_pc

            gain_native = qty_from_lot * (sell_price_native - buy_price_native)
            pending = PendingSale(
                quantity=qty_from_lot,
                buy_date=lot.buy_date,
                sell_date=txn.date,
                proceeds=proceeds,
                cost_basis=cost,
                buy_fee=buy_fee,
                sell_fee=sell_fee,
                stock_currency=holding.stock_currency,
                portfolio_currency=portfolio.currency,
                gain_native_at_sale=gain_native * sale_rate - buy_fee - sell_fee if sale_rate else None,
            )

            if is_transfer:
                assessment = TaxAssessment(taxable_gain=ZERO, tax=ZERO)
            else:
                assessment = self._calculator(portfolio).assess(pending, tax_rates, self.cpi, self.warnings)

            holding.realized_lots.append(RealizedLot(
                lot_id=lot.lot_id,
                key=holding.key,
                quantity=qty_from_lot,
                buy_date=lot.buy_date,
                sell_date=txn.date,
                buy_price=lot.buy_price,
                sell_price=sell_price_pc,
                proceeds=proceeds,
                cost_basis=cost,
                buy_fee=buy_fee,
                sell_fee=sell_fee,
                taxable_gain=assessment.taxable_gain,
                tax=assessment.tax,
                income_tax=assessment.income_tax,
                real_gain_applied=assessment.real_gain_applied,
                is_transfer=is_transfer,
            ))

        # Clean up exhausted lots
        holding.active_lots = [lot for lot in holding.active_lots if not lot.is_exhausted()]


def build_ledger(
    portfolios: Union[Mapping[str, Portfolio], Iterable[Portfolio]],
    transactions: Sequence[Transaction],
    rates: ExchangeRateTable,
    dividends: Sequence[DividendEvent] = (),
    cpi: Optional[CPIIndex] = None,
    warnings: Optional[DataQualityLog] = None
) -> Dict[HoldingKey, Holding]:
    """Functional entry point: ``LotLedger(...).process(...)`` with timing."""
    ledger = LotLedger(portfolios, rates, cpi=cpi, warnings=warnings)
    with get_perf_logger(logger, f"build_ledger({len(transactions)} transactions)"):
        return ledger.process(transactions, dividends)
