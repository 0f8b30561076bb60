"""
Nominal Gain Calculator

Taxes the plain currency gain of a sale: proceeds minus cost minus fees.
Losses produce no tax and no credit.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from typing import Optional

from lib.portfolio_config import TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.calculators.base import TaxCalculator, register_calculator
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import TaxRates
from modules.tax.tax_events import PendingSale, TaxAssessment


@register_calculator(TaxPolicy.NOMINAL_GAIN)
class NominalGainCalculator(TaxCalculator):
    """Capital gains tax on the nominal gain at the sell-date cgt rate."""

    def get_policy(self) -> TaxPolicy:
        return TaxPolicy.NOMINAL_GAIN

    def assess(
        self,
        sale: PendingSale,
        rates: TaxRates,
        cpi: Optional[CPIIndex] = None,
        warnings: Optional[DataQualityLog] = None
    ) -> TaxAssessment:
        taxable = sale.nominal_gain
        return TaxAssessment(
            taxable_gain=taxable,
            tax=self.capital_gains_tax(taxable, rates.cgt),
        )
