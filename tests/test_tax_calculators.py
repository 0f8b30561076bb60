"""
Unit Tests for Tax Calculator System

Tests the calculator registry and every tax-policy implementation.

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from lib.errors import CalculatorNotFoundError
from lib.parsers.enhanced_transaction import CPIPoint, HoldingKey
from lib.portfolio_config import TaxPolicy
from lib.validators import DataQualityLog
from modules.tax.calculators import (
    NominalGainCalculator,
    RealGainCalculator,
    RSUAccountCalculator,
    TaxFreeCalculator,
    closer_to_zero,
    get_calculator,
    list_available_policies,
)
from modules.tax.inflation import CPIIndex
from modules.tax.schedule import TaxRates
from modules.tax.tax_events import PendingSale, RealizedLot

RATES = TaxRates(cgt=Decimal("0.25"), inc_tax=Decimal("0.5"))


def make_sale(proceeds, cost, buy_fee="0", sell_fee="0", stock_currency="ILS",
              portfolio_currency="ILS", gain_native_at_sale=None):
    return PendingSale(
        quantity=Decimal(10),
        buy_date=date(2023, 1, 15),
        sell_date=date(2024, 1, 15),
        proceeds=Decimal(proceeds),
        cost_basis=Decimal(cost),
        buy_fee=Decimal(buy_fee),
        sell_fee=Decimal(sell_fee),
        stock_currency=stock_currency,
        portfolio_currency=portfolio_currency,
        gain_native_at_sale=Decimal(gain_native_at_sale) if gain_native_at_sale is not None else None,
    )


def cpi_index(start, end):
    return CPIIndex([
        CPIPoint(date=date(2023, 1, 1), price=start),
        CPIPoint(date=date(2024, 1, 1), price=end),
    ])


class TestTaxCalculatorFactory:
    """Test the calculator factory and registration system."""

    @pytest.mark.parametrize("policy,cls", [
        (TaxPolicy.NOMINAL_GAIN, NominalGainCalculator),
        (TaxPolicy.REAL_GAIN, RealGainCalculator),
        (TaxPolicy.TAX_FREE, TaxFreeCalculator),
        (TaxPolicy.RSU_ACCOUNT, RSUAccountCalculator),
    ])
    def test_get_calculator(self, policy, cls):
        calc = get_calculator(policy)
        assert type(calc) is cls
        assert calc.get_policy() == policy

    def test_case_insensitive_lookup(self):
        assert type(get_calculator("real_gain")) is type(get_calculator("REAL_GAIN"))

    def test_invalid_policy_raises_error(self):
        with pytest.raises(CalculatorNotFoundError, match="not found"):
            get_calculator("WEALTH_TAX")

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            get_calculator("XX")

    def test_list_available_policies(self):
        assert set(list_available_policies()) == set(TaxPolicy)

    def test_policy_name(self):
        assert get_calculator(TaxPolicy.REAL_GAIN).get_policy_name() == "Real Gain"


class TestNominalGainCalculator:

    @pytest.fixture
    def calculator(self):
        return NominalGainCalculator()

    def test_gain_net_of_fees(self, calculator):
        result = calculator.assess(make_sale("750", "500", buy_fee="5", sell_fee="5"), RATES)
        assert result.taxable_gain == Decimal(240)
        assert result.tax == Decimal(60)

    def test_loss_taxed_at_zero(self, calculator):
        result = calculator.assess(make_sale("400", "500"), RATES)
        assert result.taxable_gain == Decimal(-100)
        assert result.tax == Decimal(0)


class TestRealGainCalculator:

    @pytest.fixture
    def calculator(self):
        return RealGainCalculator()

    def test_domestic_inflation_adjustment(self, calculator):
        # Nominal 10, inflation 10% on a cost of 10 -> real gain 9
        result = calculator.assess(make_sale("20", "10"), RATES, cpi_index("100", "110"))

        assert result.taxable_gain == Decimal(9)
        assert result.tax == Decimal("2.25")
        assert result.real_gain_applied

    def test_agorot_priced_stock_counts_as_domestic(self, calculator):
        sale = make_sale("20", "10", stock_currency="ILA")
        assert sale.is_domestic
        assert calculator.assess(sale, RATES, cpi_index("100", "110")).taxable_gain == Decimal(9)

    def test_deflation_never_raises_taxable_gain(self, calculator):
        result = calculator.assess(make_sale("20", "10"), RATES, cpi_index("100", "90"))
        assert result.taxable_gain == Decimal(10)

    def test_inflation_turns_small_gain_exempt(self, calculator):
        # Nominal +0.5, real -0.5
        result = calculator.assess(make_sale("10.5", "10"), RATES, cpi_index("100", "110"))
        assert result.taxable_gain == Decimal(0)
        assert result.tax == Decimal(0)

    def test_both_losses_keep_nominal_loss(self, calculator):
        result = calculator.assess(make_sale("5", "10"), RATES, cpi_index("100", "110"))
        assert result.taxable_gain == Decimal(-5)
        assert result.tax == Decimal(0)

    def test_missing_cpi_falls_back_to_nominal(self, calculator):
        warnings = DataQualityLog()
        result = calculator.assess(make_sale("20", "10"), RATES, CPIIndex(), warnings)

        assert result.taxable_gain == Decimal(10)
        assert not result.real_gain_applied
        assert len(warnings.by_category(DataQualityLog.MISSING_CPI)) == 1

    def test_foreign_currency_gain_is_not_taxed(self, calculator):
        # USD stock flat in dollars, shekel weakened: nominal ILS gain only
        sale = make_sale("400", "300", stock_currency="USD", gain_native_at_sale="0")
        result = calculator.assess(sale, RATES)

        assert result.taxable_gain == Decimal(0)
        assert result.real_gain_applied

    def test_foreign_takes_smaller_gain(self, calculator):
        sale = make_sale("400", "300", stock_currency="USD", gain_native_at_sale="40")
        assert calculator.assess(sale, RATES).taxable_gain == Decimal(40)


class TestCloserToZero:

    @pytest.mark.parametrize("nominal,real,expected", [
        ("10", "9", "9"),
        ("9", "10", "9"),
        ("10", "-1", "0"),
        ("-1", "10", "0"),
        ("-5", "-6", "-5"),
        ("0", "5", "0"),
    ])
    def test_rule(self, nominal, real, expected):
        assert closer_to_zero(Decimal(nominal), Decimal(real)) == Decimal(expected)

    @given(
        cost=st.decimals(min_value=Decimal("1"), max_value=Decimal("100000"), places=2),
        proceeds=st.decimals(min_value=Decimal("0"), max_value=Decimal("200000"), places=2),
        inflation=st.decimals(min_value=Decimal("0"), max_value=Decimal("2"), places=4),
    )
    @settings(max_examples=200)
    def test_real_gain_never_exceeds_nominal_under_inflation(self, cost, proceeds, inflation):
        calculator = RealGainCalculator()
        sale = make_sale(proceeds, cost)
        cpi = cpi_index(Decimal(100), Decimal(100) * (1 + inflation))

        nominal = NominalGainCalculator().assess(sale, RATES)
        real = calculator.assess(sale, RATES, cpi)

        assert real.tax <= nominal.tax
        assert abs(real.taxable_gain) <= abs(nominal.taxable_gain)


class TestRSUAccountCalculator:

    def test_income_tax_on_grant_value(self):
        result = RSUAccountCalculator().assess(make_sale("20", "10"), RATES, cpi_index("100", "110"))

        assert result.taxable_gain == Decimal(9)
        assert result.tax == Decimal("2.25")
        assert result.income_tax == Decimal(5)

    def test_no_income_tax_rate(self):
        rates = TaxRates(cgt=Decimal("0.25"), inc_tax=Decimal(0))
        assert RSUAccountCalculator().assess(make_sale("20", "10"), rates).income_tax == Decimal(0)


class TestTaxFreeCalculator:

    def test_always_zero(self):
        result = TaxFreeCalculator().assess(make_sale("1000", "10"), RATES)
        assert result.tax == Decimal(0)
        assert result.taxable_gain == Decimal(0)


class TestYearHelpers:

    def _realized(self, sell_date, tax):
        return RealizedLot(
            lot_id="l1",
            key=HoldingKey("p1", "AAPL", "NASDAQ"),
            quantity=Decimal(1),
            buy_date=date(2022, 1, 1),
            sell_date=sell_date,
            buy_price=Decimal(1),
            sell_price=Decimal(2),
            proceeds=Decimal(2),
            cost_basis=Decimal(1),
            buy_fee=Decimal(0),
            sell_fee=Decimal(0),
            tax=Decimal(tax),
            income_tax=Decimal("0.5"),
        )

    def test_filter_and_total(self):
        calc = NominalGainCalculator()
        realized = [self._realized(date(2023, 5, 1), "1"), self._realized(date(2024, 2, 1), "2")]

        in_2024 = calc.filter_by_year(realized, 2024)
        assert len(in_2024) == 1
        assert calc.calculate_total_tax(in_2024) == Decimal("2.5")
