"""
Quant Module - Performance Analysis (Read-Only)

Time-weighted return series, trailing-window returns and risk metrics.
Nothing in here mutates ledger state.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['performance', 'metrics', 'analytics']
