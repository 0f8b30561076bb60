"""
Unit Tests for Fee and Tax Schedule Resolution

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from lib.portfolio_config import FeeHistoryEntry, MgmtFreq, Portfolio, TaxHistoryEntry
from modules.tax.schedule import calculate_commission, get_fee_rates_for_date, get_tax_rates_for_date


@pytest.fixture
def portfolio():
    return Portfolio(
        id="p1",
        currency="ILS",
        cgt="0.25",
        inc_tax="0.47",
        comm_rate="0.001",
        comm_min="5",
        div_comm_rate="0.1",
        mgmt_val="0.007",
        fee_history=[
            FeeHistoryEntry(start_date="2024-06-01", comm_rate="0.002"),
            FeeHistoryEntry(start_date="2024-01-01", div_comm_rate="0.05", mgmt_freq="monthly"),
        ],
        tax_history=[TaxHistoryEntry(start_date=date(2025, 1, 1), cgt="0.28")],
    )


class TestFeeSchedule:

    def test_before_history_uses_base(self, portfolio):
        rates = get_fee_rates_for_date(portfolio, date(2023, 12, 31))
        assert rates.comm_rate == Decimal("0.001")
        assert rates.div_comm_rate == Decimal("0.1")
        assert rates.mgmt_freq == MgmtFreq.YEARLY

    def test_entry_applies_from_start_date(self, portfolio):
        rates = get_fee_rates_for_date(portfolio, date(2024, 1, 1))
        assert rates.div_comm_rate == Decimal("0.05")
        assert rates.mgmt_freq == MgmtFreq.MONTHLY

    def test_unset_fields_fall_back_to_base_not_older_entry(self, portfolio):
        rates = get_fee_rates_for_date(portfolio, date(2024, 7, 1))
        assert rates.comm_rate == Decimal("0.002")
        # The 2024-01-01 entry is superseded as a whole
        assert rates.div_comm_rate == Decimal("0.1")
        assert rates.mgmt_freq == MgmtFreq.YEARLY
        assert rates.comm_min == Decimal("5")

    def test_time_of_day_ignored(self, portfolio):
        rates = get_fee_rates_for_date(portfolio, datetime(2024, 6, 1, 15, 30))
        assert rates.comm_rate == Decimal("0.002")


class TestTaxSchedule:

    def test_override(self, portfolio):
        assert get_tax_rates_for_date(portfolio, date(2024, 12, 31)).cgt == Decimal("0.25")
        rates = get_tax_rates_for_date(portfolio, date(2025, 1, 1))
        assert rates.cgt == Decimal("0.28")
        assert rates.inc_tax == Decimal("0.47")


class TestCommission:

    @pytest.fixture
    def capped(self):
        return Portfolio(id="p2", comm_rate="0.001", comm_min="5", comm_max="20")

    @pytest.mark.parametrize("value,expected", [
        (Decimal(1000), Decimal(5)),
        (Decimal(10000), Decimal(10)),
        (Decimal(100000), Decimal(20)),
    ])
    def test_minimum_rate_and_cap(self, capped, value, expected):
        assert calculate_commission(capped, date(2024, 1, 1), value) == expected

    def test_zero_maximum_means_no_cap(self, portfolio):
        assert calculate_commission(portfolio, date(2023, 1, 1), Decimal(100000)) == Decimal(100)
