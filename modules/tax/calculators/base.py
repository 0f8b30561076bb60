"""
Abstract Base Class for Tax Calculators

Defines the interface every tax-policy calculator implements. A calculator
takes one pending sale (nominal gain already known) plus the rates in force
on the sell date and returns the taxable gain and tax owed.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Type, Union

from lib.errors import CalculatorNotFoundError
from lib.portfolio_config import TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import TaxRates
from modules.tax.tax_events import PendingSale, RealizedLot, TaxAssessment


class TaxCalculator(ABC):
    """
    Abstract base class for tax-policy calculators.

    Losses are taxed at zero; they do not offset other gains.
    """

    @abstractmethod
    def assess(
        self,
        sale: PendingSale,
        rates: TaxRates,
        cpi: Optional[CPIIndex] = None,
        warnings: Optional[DataQualityLog] = None
    ) -> TaxAssessment:
        """
        Compute the taxable gain and tax of one realized slice.

        Args:
            sale: The slice with proceeds, cost and fees in portfolio currency
            rates: cgt / inc_tax resolved at the sell date
            cpi: Inflation index (REAL_GAIN based policies only)
            warnings: Collector for degraded computations

        Returns:
            TaxAssessment
        """
        pass

    @abstractmethod
    def get_policy(self) -> TaxPolicy:
        pass

    def get_policy_name(self) -> str:
        return self.get_policy().value.replace("_", " ").title()

    @staticmethod
    def capital_gains_tax(taxable_gain: Decimal, cgt: Decimal) -> Decimal:
        return max(taxable_gain, Decimal(0)) * cgt

    def filter_by_year(self, realized: Iterable[RealizedLot], tax_year: int) -> List[RealizedLot]:
        """Realized slices whose sell date falls in ``tax_year``."""
        return [lot for lot in realized if lot.sell_date.year == tax_year]

    def calculate_total_tax(self, realized: Iterable[RealizedLot]) -> Decimal:
        return sum((lot.tax + lot.income_tax for lot in realized), start=Decimal(0))


# Registry of available calculators
_CALCULATOR_REGISTRY: Dict[TaxPolicy, Type[TaxCalculator]] = {}


def register_calculator(policy: TaxPolicy):
    """
    Decorator to register a tax calculator class.

    Usage:
        @register_calculator(TaxPolicy.NOMINAL_GAIN)
        class NominalGainCalculator(TaxCalculator):
            ...
    """
    def decorator(cls: Type[TaxCalculator]):
        _CALCULATOR_REGISTRY[TaxPolicy(policy)] = cls
        return cls
    return decorator


def get_calculator(policy: Union[TaxPolicy, str]) -> TaxCalculator:
    """
    Factory method to get a tax calculator instance.

    Raises:
        CalculatorNotFoundError: If no calculator handles the policy
    """
    try:
        key = TaxPolicy(str(policy.value if isinstance(policy, TaxPolicy) else policy).upper())
    except ValueError:
        key = None

    if key not in _CALCULATOR_REGISTRY:
        available = ", ".join(p.value for p in list_available_policies())
        raise CalculatorNotFoundError(
            f"Tax calculator for '{policy}' not found. "
            f"Available: {available}"
        )

    return _CALCULATOR_REGISTRY[key]()


def list_available_policies() -> List[TaxPolicy]:
    return sorted(_CALCULATOR_REGISTRY.keys(), key=lambda p: p.value)
