"""
Exchange Rate Resolution

Turns raw currency-pair quotes into a table of "units of currency per 1 USD"
for each named period (current, ago1d, ..., ago5y) and for dated snapshots.

Resolution per period:
1. Build an undirected graph of the observed pairs (each pair plus its inverse)
2. For every currency take the direct USD edge if one exists
3. Otherwise take the first two-hop chain USD -> X -> currency
4. "current" borrows unresolved currencies from "ago1d"
5. Mandatory currencies that are still unresolved become 0 with a warning

Callers must read a 0 rate as "unavailable"; ``convert_currency`` does so
and returns 0 with a warning instead of dividing by zero.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from bisect import bisect_right
from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Mapping, Optional, Tuple, Union

from lib.config import MANDATORY_CURRENCIES, PERIOD_FALLBACKS, REFERENCE_CURRENCY
from lib.currency import base_currency, from_major_units, normalize_currency, to_major_units
from lib.validators import DataQualityLog
from utils.logging_config import setup_logger

logger = setup_logger(__name__)

Number = Union[Decimal, float, int, str]
RateMap = Dict[str, Decimal]


def _to_decimal(value: Number) -> Optional[Decimal]:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite() or result <= 0:
        return None
    return result


def parse_pair(pair: str) -> Tuple[str, str]:
    """
    Split a quote key into (base, quote).

    "USDILS" -> ("USD", "ILS"); a bare code "ILS" means a rate against USD.
    """
    key = pair.strip().upper().replace("/", "")
    if len(key) == 3:
        return REFERENCE_CURRENCY, normalize_currency(key)
    if len(key) == 6:
        return normalize_currency(key[:3]), normalize_currency(key[3:])
    raise ValueError(f"Unrecognized currency pair '{pair}'")


def _build_graph(pairs: Mapping[str, Number]) -> Dict[str, "OrderedDict[str, Decimal]"]:
    graph: Dict[str, "OrderedDict[str, Decimal]"] = {}

    for pair, raw_rate in pairs.items():
        rate = _to_decimal(raw_rate)
        if rate is None:
            logger.debug(f"Skipping non-positive quote {pair}={raw_rate}")
            continue
        base, quote = parse_pair(pair)
        graph.setdefault(base, OrderedDict())[quote] = rate
        graph.setdefault(quote, OrderedDict())[base] = Decimal(1) / rate

    return graph


def _resolve_period(pairs: Mapping[str, Number]) -> RateMap:
    """Resolve every currency reachable within two hops of USD."""
    graph = _build_graph(pairs)
    usd_edges = graph.get(REFERENCE_CURRENCY, OrderedDict())

    resolved: RateMap = {REFERENCE_CURRENCY: Decimal(1)}

    for currency in graph:
        if currency == REFERENCE_CURRENCY:
            continue

        if currency in usd_edges:
            resolved[currency] = usd_edges[currency]
            continue

        for intermediate, usd_to_mid in usd_edges.items():
            mid_to_target = graph.get(intermediate, {}).get(currency)
            if mid_to_target is not None:
                resolved[currency] = usd_to_mid * mid_to_target
                break

    return resolved


def _parse_period_key(key: str) -> Union[str, date]:
    try:
        return datetime.strptime(key, "%Y-%m-%d").date()
    except ValueError:
        return key


class ExchangeRateTable:
    """
    Resolved rates per named period and per dated snapshot.

    Rates are units of currency per 1 USD (``rates["ILS"] == 3.7`` means
    1 USD buys 3.7 ILS).
    """

    def __init__(
        self,
        periods: Mapping[str, RateMap],
        dated: Optional[Mapping[date, RateMap]] = None,
        warnings: Optional[DataQualityLog] = None
    ):
        self.periods: Dict[str, RateMap] = {k: dict(v) for k, v in periods.items()}
        self.dated: Dict[date, RateMap] = dict(sorted((dated or {}).items()))
        self._dated_keys: List[date] = list(self.dated)
        self.warnings = warnings if warnings is not None else DataQualityLog()

    @property
    def current(self) -> RateMap:
        return self.rates_for("current")

    def rates_for(self, period: str) -> RateMap:
        """
        Raises:
            KeyError: If the period was never supplied
        """
        if period not in self.periods:
            raise KeyError(f"Unknown rate period '{period}'. Available: {', '.join(self.periods)}")
        return self.periods[period]

    def rates_on(self, on: date) -> RateMap:
        """
        Rates for a calendar date: the exact snapshot, else the latest
        snapshot before it (weekends, holidays), else the current rates.
        """
        if isinstance(on, datetime):
            on = on.date()

        position = bisect_right(self._dated_keys, on)
        if position:
            return self.dated[self._dated_keys[position - 1]]

        return self.periods.get("current", {REFERENCE_CURRENCY: Decimal(1)})

    def convert(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        period: str = "current",
        on: Optional[date] = None
    ) -> Decimal:
        rates = self.rates_on(on) if on is not None else self.rates_for(period)
        return convert_currency(amount, from_currency, to_currency, rates, self.warnings)


def resolve_exchange_rates(
    raw_pairs: Mapping[str, Mapping[str, Number]],
    warnings: Optional[DataQualityLog] = None
) -> ExchangeRateTable:
    """
    Resolve raw pair quotes into an ``ExchangeRateTable``.

    Args:
        raw_pairs: period name or ISO date -> {pair code -> rate}
        warnings: Collector for missing-rate findings

    Returns:
        Table with every named period and dated snapshot resolved
    """
    warnings = warnings if warnings is not None else DataQualityLog()

    named: Dict[str, RateMap] = {}
    dated: Dict[date, RateMap] = {}

    for key, pairs in raw_pairs.items():
        parsed = _parse_period_key(key)
        resolved = _resolve_period(pairs or {})
        if isinstance(parsed, date):
            dated[parsed] = resolved
        else:
            named[parsed] = resolved

    named.setdefault("current", {REFERENCE_CURRENCY: Decimal(1)})

    for period, fallback in PERIOD_FALLBACKS.items():
        source = named.get(fallback)
        if not source:
            continue
        target = named.setdefault(period, {REFERENCE_CURRENCY: Decimal(1)})
        for currency, rate in source.items():
            if currency not in target:
                logger.debug(f"{period} rate for {currency} taken from {fallback}")
                target[currency] = rate

    for period, rates in named.items():
        _fill_mandatory(rates, period, warnings)
    for snapshot_date, rates in dated.items():
        _fill_mandatory(rates, snapshot_date.isoformat(), warnings)

    logger.debug(f"Resolved rates for {len(named)} periods and {len(dated)} dated snapshots")
    return ExchangeRateTable(named, dated, warnings)


def _fill_mandatory(rates: RateMap, label: str, warnings: DataQualityLog):
    for currency in MANDATORY_CURRENCIES:
        if currency not in rates:
            rates[currency] = Decimal(0)
            warnings.warn(
                DataQualityLog.MISSING_RATE,
                f"No {currency} rate could be resolved for {label}; defaulting to 0",
                currency=currency,
                period=label,
            )


def convert_currency(
    amount: Number,
    from_currency: str,
    to_currency: str,
    rates: Mapping[str, Decimal],
    warnings: Optional[DataQualityLog] = None
) -> Decimal:
    """
    Convert an amount between currencies through USD.

    ILA and ILS convert into each other without a rate. A missing or zero
    rate yields 0 and a warning.
    """
    value = Decimal(str(amount))
    source = normalize_currency(from_currency)
    target = normalize_currency(to_currency)

    if source == target:
        return value

    # Agorot <-> shekel is a fixed factor
    major = to_major_units(value, source)
    source_base = base_currency(source)
    target_base = base_currency(target)

    if source_base == target_base:
        return from_major_units(major, target)

    source_rate = rates.get(source_base)
    target_rate = rates.get(target_base)

    if not source_rate or not target_rate:
        missing = source_base if not source_rate else target_base
        if warnings is not None:
            warnings.warn(
                DataQualityLog.MISSING_RATE,
                f"Missing exchange rate for {missing}; {source}->{target} conversion yields 0",
                currency=missing,
            )
        else:
            logger.warning(f"Missing exchange rate for {missing}; {source}->{target} conversion yields 0")
        return Decimal(0)

    in_usd = major / source_rate
    return from_major_units(in_usd * target_rate, target)
