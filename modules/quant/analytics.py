"""
Quant Analytics - Performance Report

Read-only summary of a valuation series: trailing returns plus risk
metrics, in one record for presentation layers.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from modules.quant.metrics import (
    calculate_max_drawdown,
    calculate_sharpe_ratio,
    calculate_volatility,
    money_weighted_return,
)
from modules.quant.performance import PerformanceSeries, PeriodReturns, calculate_period_returns


@dataclass(frozen=True)
class PerformanceReport:
    currency: str
    returns: PeriodReturns
    volatility: Optional[float]
    sharpe_ratio: Optional[float]
    max_drawdown: Optional[float]
    money_weighted_return: Optional[float]
    holdings_value: float
    cost_basis: float
    gains_value: float

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "currency": self.currency,
            "volatility": self.volatility,
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
            "money_weighted_return": self.money_weighted_return,
            "holdings_value": self.holdings_value,
            "cost_basis": self.cost_basis,
            "gains_value": self.gains_value,
        }
        data.update(self.returns.as_dict())
        return data


def analyze_performance(series: PerformanceSeries, risk_free_rate: float = 0.02) -> PerformanceReport:
    """Build a report; an empty series yields zero returns and no metrics."""
    points = series.points
    twr = [p.twr for p in points]
    latest = points[-1] if points else None

    return PerformanceReport(
        currency=series.currency,
        returns=calculate_period_returns(points),
        volatility=calculate_volatility(twr),
        sharpe_ratio=calculate_sharpe_ratio(twr, risk_free_rate),
        max_drawdown=calculate_max_drawdown(twr),
        money_weighted_return=money_weighted_return(points),
        holdings_value=latest.holdings_value if latest else 0.0,
        cost_basis=latest.cost_basis if latest else 0.0,
        gains_value=latest.gains_value if latest else 0.0,
    )
