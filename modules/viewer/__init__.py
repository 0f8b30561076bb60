"""
Viewer Module

Holding-level aggregation on top of the lot ledger: dividend income,
recurring management fees, price hydration and snapshots.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['holding', 'dividends', 'recurring_fees', 'snapshot', 'portfolio']
