"""
Performance Engine - Time-Weighted Return Series

Builds a valuation series for a set of transactions and extracts trailing
window returns from it.

Per point (all amounts in the base currency):
- holdings_value: mark-to-market of all open positions
- cost_basis: net invested capital (buys - sell proceeds - income)
- gains_value: holdings_value - cost_basis
- twr: chain-linked time-weighted return index

Cash flows are assumed to happen at the end of the day. On a day the
portfolio starts from (near) zero, the day's inflow is the denominator, so a
buy followed by a same-day move shows up in that day's TWR.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from bisect import bisect_right
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from lib.config import VALUE_EPSILON
from lib.fx_rates import ExchangeRateTable, convert_currency
from lib.parsers.enhanced_transaction import HoldingKey, Transaction, make_price_key
from lib.validators import DataQualityLog
from modules.viewer.holding import Holding
from utils.logging_config import get_perf_logger, log_dataframe_info, setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class PriceHistory:
    """Daily closes of one instrument in ``currency``."""

    currency: str
    prices: Mapping[date, float]


# (ticker, exchange) -> history, or None when the feed has nothing
PriceHistoryFetcher = Callable[[str, str], Optional[PriceHistory]]


@dataclass(frozen=True)
class ValuationPoint:
    date: date
    holdings_value: float
    cost_basis: float
    gains_value: float
    twr: float
    net_flow: float = 0.0
    income: float = 0.0


@dataclass
class PerformanceSeries:
    points: List[ValuationPoint] = field(default_factory=list)
    currency: str = "USD"

    def __len__(self) -> int:
        return len(self.points)

    def to_dataframe(self) -> pd.DataFrame:
        """Points as a DataFrame indexed by date."""
        if not self.points:
            return pd.DataFrame(columns=[f for f in ValuationPoint.__dataclass_fields__ if f != "date"])
        df = pd.DataFrame([asdict(p) for p in self.points])
        df["date"] = pd.to_datetime(df["date"])
        return df.set_index("date")


def _build_price_frame(
    histories: Mapping[str, Optional[PriceHistory]],
    trade_prices: Mapping[str, Dict[date, float]],
    base_currency: str,
    rates: Mapping[str, Decimal],
    axis: pd.DatetimeIndex,
    warnings: DataQualityLog
) -> pd.DataFrame:
    """
    Daily prices per instrument in base currency, forward-filled.

    Feed prices win; trade prices fill dates the feed does not cover, so an
    instrument without any history is marked at its last trade.
    """
    columns = {}

    for price_key, history in histories.items():
        series = pd.Series(trade_prices.get(price_key, {}), dtype=float)

        if history is not None and history.prices:
            factor = float(convert_currency(Decimal(1), history.currency, base_currency, rates, warnings))
            feed = pd.Series(
                {d: float(p) * factor for d, p in history.prices.items() if p is not None},
                dtype=float,
            )
            series = feed.combine_first(series)
        else:
            warnings.warn(
                DataQualityLog.MISSING_PRICE,
                f"No price history for {price_key}; marking at last trade price",
                instrument=price_key,
            )

        if series.empty:
            columns[price_key] = pd.Series(np.nan, index=axis)
            continue

        series.index = pd.to_datetime(series.index)
        series = series[~series.index.duplicated(keep="first")].sort_index()
        columns[price_key] = series.reindex(series.index.union(axis)).ffill().reindex(axis)

    frame = pd.DataFrame(columns, index=axis)
    log_dataframe_info(logger, frame, "price frame")
    return frame


def calculate_portfolio_performance(
    holdings: Optional[Mapping[HoldingKey, Holding]],
    transactions: Sequence[Transaction],
    base_currency: str,
    fx_rates: ExchangeRateTable,
    price_history_fetcher: PriceHistoryFetcher,
    end_date: Optional[date] = None,
    warnings: Optional[DataQualityLog] = None
) -> PerformanceSeries:
    """
    Build the valuation series.

    Args:
        holdings: Ledger output; supplies dividends and recurring fees as income
        transactions: The same log the ledger was built from
        base_currency: Currency of the series
        fx_rates: Rate table; current rates convert to the base currency
        price_history_fetcher: (ticker, exchange) -> PriceHistory or None
        end_date: Last date of the series (defaults to the last known date)
        warnings: Collector for missing price histories

    Returns:
        PerformanceSeries ordered by date
    """
    warnings = warnings if warnings is not None else DataQualityLog()
    if not transactions:
        return PerformanceSeries([], base_currency)

    rates = fx_rates.current
    holdings = holdings or {}

    def to_base(amount, currency: str) -> float:
        return float(convert_currency(amount, currency, base_currency, rates, warnings))

    instruments: Dict[str, tuple] = {}
    trade_prices: Dict[str, Dict[date, float]] = defaultdict(dict)
    qty_changes: Dict[date, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    flows: Dict[date, float] = defaultdict(float)
    income: Dict[date, float] = defaultdict(float)

    for txn in sorted(transactions, key=lambda t: t.effective_date):
        price_key = make_price_key(txn.exchange, txn.ticker)
        instruments.setdefault(price_key, (txn.ticker, txn.exchange))
        day = txn.effective_date

        unit_price = to_base(txn.price, txn.currency)
        commission = to_base(txn.commission, txn.currency) if txn.commission else 0.0
        gross = float(txn.quantity) * unit_price
        if unit_price > 0:
            trade_prices[price_key][day] = unit_price

        qty_changes[day][price_key] += float(txn.signed_quantity)
        if txn.type.is_acquisition:
            flows[day] += gross + commission
        else:
            flows[day] -= gross - commission

    for holding in holdings.values():
        for record in holding.dividends:
            income[record.date] += to_base(record.net, holding.portfolio_currency)
        for charge in holding.fee_charges:
            income[charge.date] -= to_base(charge.amount, holding.portfolio_currency)

    start = min(qty_changes)
    known_dates = set(qty_changes) | set(income)

    with get_perf_logger(logger, "calculate_portfolio_performance", threshold_ms=2000):
        # One fetch per instrument; feed dates extend the axis
        histories: Dict[str, Optional[PriceHistory]] = {}
        feed_dates = set()
        for price_key, (ticker, exchange) in instruments.items():
            history = price_history_fetcher(ticker, exchange)
            histories[price_key] = history
            if history is not None:
                feed_dates.update(d for d in history.prices if d >= start)

        last = end_date or max(known_dates | feed_dates)
        axis_dates = sorted(d for d in (known_dates | feed_dates) if start <= d <= last)
        if end_date is not None and (not axis_dates or axis_dates[-1] < end_date):
            axis_dates.append(end_date)
        axis = pd.DatetimeIndex([pd.Timestamp(d) for d in axis_dates])

        prices = _build_price_frame(histories, trade_prices, base_currency, rates, axis, warnings)

        points = _value_series(axis_dates, prices, qty_changes, flows, income)

    logger.debug(f"Performance series: {len(points)} points from {start} to {last}")
    return PerformanceSeries(points, base_currency)


def _value_series(
    axis_dates: List[date],
    prices: pd.DataFrame,
    qty_changes: Mapping[date, Mapping[str, float]],
    flows: Mapping[date, float],
    income: Mapping[date, float]
) -> List[ValuationPoint]:
    columns = list(prices.columns)
    price_rows = prices.to_numpy(dtype=float)
    quantities = np.zeros(len(columns))
    column_index = {c: i for i, c in enumerate(columns)}

    points = []
    twr = 1.0
    net_invested = 0.0
    prev_value = 0.0

    for row, day in enumerate(axis_dates):
        for price_key, delta in qty_changes.get(day, {}).items():
            quantities[column_index[price_key]] += delta

        row_prices = np.nan_to_num(price_rows[row], nan=0.0)
        value = float(np.dot(quantities, row_prices))
        flow = flows.get(day, 0.0)
        day_income = income.get(day, 0.0)

        if prev_value > VALUE_EPSILON:
            day_return = (value - flow + day_income - prev_value) / prev_value
        elif flow > VALUE_EPSILON:
            # Inception day: the inflow is the capital at risk
            day_return = (value - flow + day_income) / flow
        else:
            day_return = 0.0

        twr *= 1.0 + day_return
        net_invested += flow - day_income

        points.append(ValuationPoint(
            date=day,
            holdings_value=value,
            cost_basis=net_invested,
            gains_value=value - net_invested,
            twr=twr,
            net_flow=flow,
            income=day_income,
        ))
        prev_value = value

    return points


@dataclass(frozen=True)
class PeriodReturns:
    perf_1w: float = 0.0
    perf_1m: float = 0.0
    perf_3m: float = 0.0
    perf_ytd: float = 0.0
    perf_1y: float = 0.0
    perf_3y: float = 0.0
    perf_5y: float = 0.0
    perf_all: float = 0.0
    gain_1w: float = 0.0
    gain_1m: float = 0.0
    gain_3m: float = 0.0
    gain_ytd: float = 0.0
    gain_1y: float = 0.0
    gain_3y: float = 0.0
    gain_5y: float = 0.0
    gain_all: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


WINDOWS = ("1w", "1m", "3m", "ytd", "1y", "3y", "5y", "all")


def window_start(window: str, last: date) -> date:
    """
    Lookback target date of a trailing window ending on ``last``.

    "all" reaches back before any point, so the inception day counts
    against a virtual start of twr 1.0 and zero gains.
    """
    ts = pd.Timestamp(last)
    if window == "1w":
        return (ts - pd.Timedelta(days=7)).date()
    if window == "1m":
        return (ts - pd.DateOffset(months=1)).date()
    if window == "3m":
        return (ts - pd.DateOffset(months=3)).date()
    if window == "ytd":
        return date(last.year - 1, 12, 31)
    if window == "1y":
        return (ts - pd.DateOffset(years=1)).date()
    if window == "3y":
        return (ts - pd.DateOffset(years=3)).date()
    if window == "5y":
        return (ts - pd.DateOffset(years=5)).date()
    if window == "all":
        return date.min
    raise ValueError(f"Unknown return window '{window}'. Available: {', '.join(WINDOWS)}")


def point_at(points: Sequence[ValuationPoint], target: date) -> Optional[ValuationPoint]:
    """Latest point dated on or before ``target``; None before the series."""
    dates = [p.date for p in points]
    position = bisect_right(dates, target)
    if position == 0:
        return None
    return points[position - 1]


def calculate_period_returns(points: Sequence[ValuationPoint]) -> PeriodReturns:
    """
    Trailing TWR returns and gains for every window.

    Gains are differences of gains_value between the two points, so large
    deposits inside a window never inflate them.
    """
    if not points:
        return PeriodReturns()

    if isinstance(points[0].date, datetime):
        raise TypeError("Valuation points must carry dates, not datetimes")

    latest = points[-1]
    values = {}

    for window in WINDOWS:
        target = window_start(window, latest.date)
        start_point = point_at(points, target)

        # Before the first point nothing had happened yet
        start_twr = start_point.twr if start_point is not None else 1.0
        start_gains = start_point.gains_value if start_point is not None else 0.0

        values[f"perf_{window}"] = latest.twr / start_twr - 1 if start_twr else 0.0
        values[f"gain_{window}"] = latest.gains_value - start_gains

    return PeriodReturns(**values)
