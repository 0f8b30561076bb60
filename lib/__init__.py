"""
Shared Library

Input models, configuration, currency handling, exchange rates and
data-quality validation used by every engine module.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['config', 'currency', 'errors', 'fx_rates', 'parsers', 'portfolio_config', 'validators']
