"""
Portfolio Engine

Runs a full engine pass over several portfolios: ledger build, dividends
and management fees, price hydration, snapshots and the performance series.

Each build gets its own DataQualityLog seeded with the rate-resolution
findings, so results built from the same engine never share findings.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from lib.config import EngineSettings
from lib.fx_rates import ExchangeRateTable, resolve_exchange_rates
from lib.parsers.enhanced_transaction import CPIPoint, DividendEvent, HoldingKey, Transaction
from lib.portfolio_config import Portfolio
from lib.validators import DataQualityLog, ValidationIssue
from modules.quant.performance import (
    PerformanceSeries,
    PriceHistoryFetcher,
    calculate_portfolio_performance,
)
from modules.tax.engine import build_ledger
from modules.tax.inflation import CPIIndex
from modules.viewer.holding import Holding
from modules.viewer.recurring_fees import PriceLookup, generate_recurring_fees
from modules.viewer.snapshot import (
    HoldingSnapshot,
    PortfolioSummary,
    PriceValue,
    calculate_snapshot,
    hydrate_prices,
    summarize_portfolio,
)
from utils.logging_config import get_perf_logger, setup_logger

logger = setup_logger(__name__)


@dataclass
class LedgerResult:
    """Holdings of one engine run plus the data-quality findings behind them."""

    holdings: Dict[HoldingKey, Holding]
    warnings: DataQualityLog = field(default_factory=DataQualityLog)

    def for_portfolio(self, portfolio_id: str) -> List[Holding]:
        return [h for key, h in self.holdings.items() if key.portfolio_id == portfolio_id]


class PortfolioEngine:
    """
    Runs the engine phases in their required order.

    1. build()   - replay transactions, book dividends and management fees
    2. hydrate() - attach live prices (repeatable)
    3. snapshot()/summary()/performance() - read results
    """

    def __init__(
        self,
        portfolios: Iterable[Portfolio],
        rates: Union[ExchangeRateTable, Mapping[str, Mapping[str, float]]],
        cpi: Optional[Iterable[CPIPoint]] = None,
        settings: Optional[EngineSettings] = None
    ):
        self.portfolios: Dict[str, Portfolio] = {p.id: p for p in portfolios}
        self.settings = settings or EngineSettings.from_env()
        if isinstance(rates, ExchangeRateTable):
            self.rates = rates
        else:
            self.rates = resolve_exchange_rates(rates, DataQualityLog())
        # Copied once; summary conversions keep appending to the table log
        self.rate_findings: List[ValidationIssue] = list(self.rates.warnings)

        self.cpi = CPIIndex(cpi)

    def build(
        self,
        transactions: Sequence[Transaction],
        dividends: Sequence[DividendEvent] = (),
        price_lookup: Optional[PriceLookup] = None,
        as_of: Optional[date] = None
    ) -> LedgerResult:
        """
        Build holdings. Management fees accrue only when both a historical
        price lookup and an ``as_of`` date are given.
        """
        warnings = DataQualityLog()
        warnings.extend(self.rate_findings)

        with get_perf_logger(logger, "PortfolioEngine.build", threshold_ms=self.settings.slow_operation_ms):
            holdings = build_ledger(
                self.portfolios,
                transactions,
                self.rates,
                dividends=dividends,
                cpi=self.cpi,
                warnings=warnings,
            )

            if price_lookup is not None and as_of is not None:
                for key, holding in holdings.items():
                    generate_recurring_fees(
                        holding,
                        self.portfolios[key.portfolio_id],
                        price_lookup,
                        as_of,
                        rates=self.rates,
                        warnings=warnings,
                    )

        logger.info(
            f"Built {len(holdings)} holdings from {len(transactions)} transactions "
            f"({len(warnings)} data-quality findings)"
        )
        return LedgerResult(holdings, warnings)

    def hydrate(self, result: LedgerResult, price_map: Mapping[str, PriceValue]) -> LedgerResult:
        return LedgerResult(hydrate_prices(result.holdings, price_map, self.rates, result.warnings), result.warnings)

    def snapshot(self, holding: Holding, as_of: Optional[date] = None) -> HoldingSnapshot:
        return calculate_snapshot(holding, self.portfolios[holding.portfolio_id], self.cpi, as_of)

    def summary(self, result: LedgerResult, display_currency: str, portfolio_id: Optional[str] = None) -> PortfolioSummary:
        holdings = result.for_portfolio(portfolio_id) if portfolio_id else result.holdings.values()
        return summarize_portfolio(holdings, display_currency, self.rates)

    def performance(
        self,
        result: LedgerResult,
        transactions: Sequence[Transaction],
        base_currency: Optional[str],
        price_history_fetcher: PriceHistoryFetcher,
        end_date: Optional[date] = None,
        portfolio_id: Optional[str] = None
    ) -> PerformanceSeries:
        """Valuation series in ``base_currency`` (the configured reference currency when empty)."""
        base_currency = base_currency or self.settings.reference_currency
        if portfolio_id is not None:
            transactions = [t for t in transactions if t.portfolio_id == portfolio_id]
            holdings = {k: h for k, h in result.holdings.items() if k.portfolio_id == portfolio_id}
        else:
            holdings = result.holdings

        return calculate_portfolio_performance(
            holdings,
            transactions,
            base_currency,
            self.rates,
            price_history_fetcher,
            end_date=end_date,
            warnings=result.warnings,
        )
