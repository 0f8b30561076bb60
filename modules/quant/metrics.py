"""
Risk and Return Metrics over a Valuation Series

All metrics read the TWR index rather than raw portfolio values, so deposits
and withdrawals never show up as returns. The money-weighted return (XIRR)
is the exception: it is defined on the cash flows themselves.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import date
from typing import List, Optional, Sequence

import numpy as np
from scipy.optimize import brentq, newton

from modules.quant.performance import ValuationPoint
from utils.logging_config import setup_logger

logger = setup_logger(__name__)

TRADING_DAYS = 252


def index_returns(twr: Sequence[float]) -> np.ndarray:
    """Period returns implied by consecutive TWR index values."""
    values = np.asarray(twr, dtype=float)
    if len(values) < 2:
        return np.array([])
    with np.errstate(divide='ignore', invalid='ignore'):
        returns = values[1:] / values[:-1] - 1.0
    return returns[np.isfinite(returns)]


def calculate_volatility(twr: Sequence[float], annualize: bool = True) -> Optional[float]:
    returns = index_returns(twr)
    if len(returns) < 2:
        return None
    std_dev = float(np.std(returns))
    return std_dev * float(np.sqrt(TRADING_DAYS)) if annualize else std_dev


def calculate_sharpe_ratio(twr: Sequence[float], risk_free_rate: float = 0.02) -> Optional[float]:
    """Annualized Sharpe ratio; risk_free_rate is an annual decimal rate."""
    returns = index_returns(twr)
    if len(returns) < 2:
        return None

    std_dev = float(np.std(returns))
    if std_dev == 0:
        return 0.0

    daily_rf = (1 + risk_free_rate) ** (1 / TRADING_DAYS) - 1
    return float((np.mean(returns) - daily_rf) / std_dev * np.sqrt(TRADING_DAYS))


def calculate_max_drawdown(twr: Sequence[float]) -> Optional[float]:
    """Deepest peak-to-trough fall of the index, as a negative decimal."""
    values = np.asarray(twr, dtype=float)
    if len(values) < 2:
        return None

    peaks = np.maximum.accumulate(values)
    with np.errstate(divide='ignore', invalid='ignore'):
        drawdowns = (values - peaks) / peaks
    drawdowns = drawdowns[np.isfinite(drawdowns)]

    return float(drawdowns.min()) if len(drawdowns) else 0.0


def xirr(dates: List[date], amounts: List[float], guess: float = 0.1) -> Optional[float]:
    """
    Annualized money-weighted return of dated cash flows.

    Sign convention: money put in is negative, money taken out (and the
    final valuation) positive.

    Raises:
        ValueError: If dates and amounts differ in length
    """
    if len(dates) != len(amounts):
        raise ValueError(f"Dates and amounts must have same length: {len(dates)} != {len(amounts)}")

    if len(dates) < 2 or not (any(a < 0 for a in amounts) and any(a > 0 for a in amounts)):
        logger.debug("XIRR needs at least one inflow and one outflow")
        return None

    flows = np.asarray(amounts, dtype=float)
    years = np.array([(d - dates[0]).days / 365.0 for d in dates])

    def npv(rate: float) -> float:
        return float(np.sum(flows / (1.0 + rate) ** years))

    def npv_derivative(rate: float) -> float:
        return float(np.sum(-years * flows / (1.0 + rate) ** (years + 1)))

    try:
        result = newton(func=npv, x0=guess, fprime=npv_derivative, maxiter=100, tol=1e-8)
    except (RuntimeError, OverflowError):
        result = None

    if result is None or not np.isfinite(result) or result <= -0.999:
        # Newton can wander off for lumpy flows; fall back to bracketing
        try:
            result = brentq(npv, -0.999, 100.0, maxiter=500)
        except ValueError:
            logger.warning("XIRR did not converge")
            return None

    return float(result)


def money_weighted_return(points: Sequence[ValuationPoint]) -> Optional[float]:
    """XIRR of a valuation series: daily net flows plus the final value."""
    if len(points) < 2:
        return None

    dates = []
    amounts = []
    for point in points:
        external = point.income - point.net_flow
        if external:
            dates.append(point.date)
            amounts.append(external)

    dates.append(points[-1].date)
    amounts.append(points[-1].holdings_value)
    return xirr(dates, amounts)
