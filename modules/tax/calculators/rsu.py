"""
RSU Account Calculator

Employee equity accounts: capital gains are taxed like REAL_GAIN, and the
grant value (the lot's cost basis) is taxed as income when the shares are
sold, at the income tax rate in force on the sell date.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from decimal import Decimal
from typing import Optional

from lib.portfolio_config import TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.calculators.base import register_calculator
from modules.tax.calculators.real_gain import RealGainCalculator
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import TaxRates
from modules.tax.tax_events import PendingSale, TaxAssessment


@register_calculator(TaxPolicy.RSU_ACCOUNT)
class RSUAccountCalculator(RealGainCalculator):

    def get_policy(self) -> TaxPolicy:
        return TaxPolicy.RSU_ACCOUNT

    def assess(
        self,
        sale: PendingSale,
        rates: TaxRates,
        cpi: Optional[CPIIndex] = None,
        warnings: Optional[DataQualityLog] = None
    ) -> TaxAssessment:
        capital = super().assess(sale, rates, cpi, warnings)

        income_tax = Decimal(0)
        if rates.inc_tax > 0:
            income_tax = sale.cost_basis * rates.inc_tax

        return TaxAssessment(
            taxable_gain=capital.taxable_gain,
            tax=capital.tax,
            income_tax=income_tax,
            real_gain_applied=capital.real_gain_applied,
        )
