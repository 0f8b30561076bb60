"""
Modules Package

Business logic of the ledger engine.

Modules:
- tax: FIFO lot ledger, fee/tax schedules, tax-policy calculators
- viewer: Holding aggregates, dividends, management fees, snapshots
- quant: Performance series, trailing returns and risk metrics (read-only)

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['tax', 'viewer', 'quant']
