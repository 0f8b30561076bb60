"""
Tax Module

Deterministic cost-basis and tax engine.

Features:
- Chronological FIFO replay per holding
- Constant per-unit buy fee allocation
- Effective-dated fee and tax schedules
- Pluggable calculators per tax policy (nominal, CPI-indexed real gain,
  tax free, RSU)

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['engine', 'calculators', 'schedule', 'inflation', 'tax_events']
