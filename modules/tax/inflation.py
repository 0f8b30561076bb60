"""
CPI Index Lookup

Consumer price index points are published monthly; a trade date maps to
the latest point published on or before it.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from bisect import bisect_right
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from lib.parsers.enhanced_transaction import CPIPoint


class CPIIndex:
    """Sorted CPI series with nearest-earlier lookup."""

    def __init__(self, points: Optional[Iterable[CPIPoint]] = None):
        ordered = sorted(points or [], key=lambda p: p.date)
        self._dates = [p.date for p in ordered]
        self._values = [p.price for p in ordered]

    def __len__(self) -> int:
        return len(self._dates)

    def __bool__(self) -> bool:
        return bool(self._dates)

    def value_on(self, on: date) -> Optional[Decimal]:
        """CPI in force on ``on``; None when the series starts later."""
        if isinstance(on, datetime):
            on = on.date()
        position = bisect_right(self._dates, on)
        if position == 0:
            return None
        return self._values[position - 1]

    def inflation_factor(self, start: date, end: date) -> Optional[Decimal]:
        """CPI(end) / CPI(start), or None when either point is unavailable."""
        cpi_start = self.value_on(start)
        cpi_end = self.value_on(end)
        if cpi_start is None or cpi_end is None:
            return None
        return cpi_end / cpi_start
