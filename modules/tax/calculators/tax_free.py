"""
Tax-Free Calculator

Sheltered accounts (pension, savings plans): gains are never taxed.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal
from typing import Optional

from lib.portfolio_config import TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.calculators.base import TaxCalculator, register_calculator
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import TaxRates
from modules.tax.tax_events import PendingSale, TaxAssessment


@register_calculator(TaxPolicy.TAX_FREE)
class TaxFreeCalculator(TaxCalculator):

    def get_policy(self) -> TaxPolicy:
        return TaxPolicy.TAX_FREE

    def assess(
        self,
        sale: PendingSale,
        rates: TaxRates,
        cpi: Optional[CPIIndex] = None,
        warnings: Optional[DataQualityLog] = None
    ) -> TaxAssessment:
        return TaxAssessment(taxable_gain=Decimal(0), tax=Decimal(0))
