"""
Tax Calculator System

One calculator per portfolio tax policy, looked up through a registry.
Importing this package registers all of them.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from .base import TaxCalculator, get_calculator, list_available_policies, register_calculator
from .nominal import NominalGainCalculator
from .real_gain import RealGainCalculator, closer_to_zero
from .rsu import RSUAccountCalculator
from .tax_free import TaxFreeCalculator

__all__ = [
    "TaxCalculator",
    "NominalGainCalculator",
    "RealGainCalculator",
    "RSUAccountCalculator",
    "TaxFreeCalculator",
    "closer_to_zero",
    "get_calculator",
    "list_available_policies",
    "register_calculator",
]
