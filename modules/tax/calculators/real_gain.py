"""
Real Gain Calculator (inflation-indexed capital gains)

Implements indexed capital gains taxation:
- Domestic instruments: cost basis is indexed by CPI(sell) / CPI(buy)
- Foreign instruments: the real gain is the gain in the stock's own
  currency, converted at the sale-date rate (currency moves are not taxed)
- The taxable gain is whichever of nominal and real is closer to zero:
    both gains      -> the smaller gain
    gain vs. loss   -> 0 (exempt)
    both losses     -> the nominal loss

When a CPI point is missing on either side the sale falls back to nominal
taxation and a data-quality warning is recorded.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal
from typing import Optional, Tuple

from lib.portfolio_config import TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.calculators.base import TaxCalculator, register_calculator
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import TaxRates
from modules.tax.tax_events import PendingSale, TaxAssessment
from utils.logging_config import setup_logger

logger = setup_logger(__name__)


def closer_to_zero(nominal: Decimal, real: Decimal) -> Decimal:
    """Combine nominal and real gain into the taxable gain."""
    if (nominal > 0 and real < 0) or (nominal < 0 and real > 0):
        return Decimal(0)
    if nominal >= 0 and real >= 0:
        return min(nominal, real)
    return nominal


@register_calculator(TaxPolicy.REAL_GAIN)
class RealGainCalculator(TaxCalculator):
    """Capital gains tax on the inflation-adjusted gain."""

    def get_policy(self) -> TaxPolicy:
        return TaxPolicy.REAL_GAIN

    def real_gain(
        self,
        sale: PendingSale,
        cpi: Optional[CPIIndex],
        warnings: Optional[DataQualityLog] = None
    ) -> Tuple[Decimal, bool]:
        """
        Returns:
            (real gain, whether an adjustment was actually applied)
        """
        nominal = sale.nominal_gain

        if not sale.is_domestic:
            if sale.gain_native_at_sale is None:
                return nominal, False
            return sale.gain_native_at_sale, True

        factor = cpi.inflation_factor(sale.buy_date, sale.sell_date) if cpi else None
        if factor is None:
            message = (
                f"No CPI point for {sale.buy_date} or {sale.sell_date}; "
                f"taxing the nominal gain instead"
            )
            if warnings is not None:
                warnings.warn(
                    DataQualityLog.MISSING_CPI,
                    message,
                    buy_date=sale.buy_date,
                    sell_date=sale.sell_date,
                )
            else:
                logger.warning(message)
            return nominal, False

        inflation_adjustment = sale.cost_basis * (factor - 1)
        return nominal - inflation_adjustment, True

    def assess(
        self,
        sale: PendingSale,
        rates: TaxRates,
        cpi: Optional[CPIIndex] = None,
        warnings: Optional[DataQualityLog] = None
    ) -> TaxAssessment:
        real, applied = self.real_gain(sale, cpi, warnings)
        taxable = closer_to_zero(sale.nominal_gain, real)

        return TaxAssessment(
            taxable_gain=taxable,
            tax=self.capital_gains_tax(taxable, rates.cgt),
            real_gain_applied=applied,
        )
