"""
Test suite for compounding engine

Tests segment-and-compound interest calculation, capital gains tax and the
effective annual rate. All calculations must be mathematically precise.
"""

import pytest
from decimal import Decimal
from datetime import date, timedelta

from deposit_interest.engine import InterestEngine, CalculationResult, compute
from deposit_interest.exceptions import EmptyHistory, InvalidRange
from deposit_interest.history import RateChangeEvent, RateHistoryStore


def daily_compound(principal: Decimal, rate: Decimal, days: int) -> Decimal:
    return principal * (Decimal('1') + rate / Decimal('100') / Decimal('365')) ** days


class TestFlatRate:
    """Test compounding under a single constant rate"""

    def setup_method(self):
        """Set up test fixtures"""
        self.history = RateHistoryStore.build([(date(2020, 1, 1), Decimal('6.00'))])
        self.engine = InterestEngine(tax_rate=Decimal('0.22'))
        self.result = self.engine.calculate(
            Decimal('1000000'), date(2023, 1, 1), date(2024, 1, 1), self.history
        )

    def test_single_period(self):
        """Test that a flat rate yields exactly one period"""
        assert len(self.result.periods) == 1
        period = self.result.periods[0]
        assert period.day_count == 365
        assert period.annual_rate == Decimal('6.00')

    def test_gross_interest(self):
        """Test 6% daily compounding for 365 days on 1,000,000"""
        expected = daily_compound(Decimal('1000000'), Decimal('6.00'), 365) - Decimal('1000000')

        assert self.result.gross_interest == expected
        assert Decimal('61830') < self.result.gross_interest < Decimal('61833')

    def test_tax_net_and_total(self):
        """Test 22% tax and resulting net and total amounts"""
        assert Decimal('13602') < self.result.tax < Decimal('13604')
        assert Decimal('48227') < self.result.net_interest < Decimal('48229')
        assert Decimal('1048227') < self.result.total_amount < Decimal('1048229')

    def test_effective_annual_rate(self):
        """Test simple annualization of the after-tax return"""
        expected = self.result.net_interest / Decimal('1000000') * Decimal('100')
        assert self.result.total_days == 365
        assert self.result.effective_annual_rate == expected
        assert Decimal('4.82') < self.result.effective_annual_rate < Decimal('4.83')

    def test_result_records_inputs(self):
        """Test that the result carries its inputs"""
        assert self.result.principal == Decimal('1000000')
        assert self.result.start_date == date(2023, 1, 1)
        assert self.result.end_date == date(2024, 1, 1)
        assert self.result.tax_rate == Decimal('0.22')


class TestRateChange:
    """Test a rate change in the middle of the range"""

    def setup_method(self):
        """Set up test fixtures"""
        self.midpoint = date(2024, 1, 1)
        self.start = self.midpoint - timedelta(days=50)
        self.end = self.midpoint + timedelta(days=50)
        self.history = RateHistoryStore.build([
            (date(2023, 6, 2), Decimal('8.25')),
            (self.midpoint, Decimal('7.50')),
        ])
        self.result = compute(Decimal('500000'), self.start, self.end, self.history)

    def test_two_periods_of_fifty_days(self):
        """Test that the range splits at the rate change"""
        assert self.result.total_days == 100
        assert [p.day_count for p in self.result.periods] == [50, 50]
        assert self.result.periods[0].end_date == self.midpoint
        assert self.result.periods[1].start_date == self.midpoint

    def test_distinct_rates(self):
        """Test that each period uses its own rate"""
        assert self.result.periods[0].annual_rate == Decimal('8.25')
        assert self.result.periods[1].annual_rate == Decimal('7.50')

    def test_balances_chain(self):
        """Test that period 2 starts from period 1's ending balance"""
        first, second = self.result.periods

        assert first.start_balance == Decimal('500000')
        assert second.start_balance == first.end_balance
        assert first.end_balance == daily_compound(Decimal('500000'), Decimal('8.25'), 50)
        assert second.end_balance == daily_compound(first.end_balance, Decimal('7.50'), 50)

    def test_differs_from_flat_rate(self):
        """Test that the rate change affects the result"""
        flat = compute(
            Decimal('500000'), self.start, self.end,
            RateHistoryStore.build([(date(2023, 6, 2), Decimal('8.25'))])
        )
        assert self.result.gross_interest < flat.gross_interest


class TestSegmentCoverage:
    """Test that periods exactly cover the requested range"""

    def setup_method(self):
        """Set up test fixtures"""
        self.history = RateHistoryStore.build([
            (date(2023, 6, 2), Decimal('8.25')),
            (date(2024, 1, 1), Decimal('7.50')),
            (date(2024, 6, 1), Decimal('7.00')),
            (date(2025, 1, 1), Decimal('6.90')),
        ])

    @pytest.mark.parametrize("start,end", [
        (date(2023, 1, 1), date(2026, 1, 1)),
        (date(2024, 1, 1), date(2025, 1, 1)),
        (date(2024, 2, 29), date(2024, 3, 1)),
        (date(2023, 12, 31), date(2024, 1, 2)),
        (date(2024, 6, 1), date(2024, 6, 2)),
    ])
    def test_contiguous_and_complete(self, start, end):
        """Test no gaps, no overlaps and day counts summing to total days"""
        result = compute(Decimal('250000'), start, end, self.history)

        assert result.periods[0].start_date == start
        assert result.periods[-1].end_date == end
        for previous, following in zip(result.periods, result.periods[1:]):
            assert previous.end_date == following.start_date
        assert sum(p.day_count for p in result.periods) == result.total_days
        assert all(p.day_count >= 1 for p in result.periods)

    def test_event_on_start_date_is_not_a_boundary(self):
        """Test that an event at start only sets the first rate"""
        result = compute(Decimal('100000'), date(2024, 1, 1), date(2024, 3, 1), self.history)

        assert len(result.periods) == 1
        assert result.periods[0].annual_rate == Decimal('7.50')

    def test_event_on_end_date_is_not_a_boundary(self):
        """Test that an event at end does not create an empty period"""
        result = compute(Decimal('100000'), date(2024, 3, 1), date(2024, 6, 1), self.history)

        assert len(result.periods) == 1
        assert result.periods[0].annual_rate == Decimal('7.50')

    def test_start_before_history_uses_earliest_rate(self):
        """Test that a range starting before all history uses the first rate"""
        result = compute(Decimal('100000'), date(2023, 1, 1), date(2023, 7, 1), self.history)

        # The first event still splits the range even though the rate is unchanged
        assert [p.annual_rate for p in result.periods] == [Decimal('8.25'), Decimal('8.25')]
        assert [p.day_count for p in result.periods] == [152, 29]

    def test_periods_attribute_source(self):
        """Test that each period names the bank whose rate applied"""
        history = RateHistoryStore.build([
            RateChangeEvent(date(2024, 1, 1), Decimal('7.50'), "arion"),
            RateChangeEvent(date(2024, 2, 1), Decimal('7.80'), "audur"),
        ])
        result = compute(Decimal('100000'), date(2024, 1, 1), date(2024, 3, 1), history)

        assert [p.source for p in result.periods] == ["arion", "audur"]


class TestBalanceProperties:
    """Test monotonic balances and tax identities"""

    def setup_method(self):
        """Set up test fixtures"""
        self.history = RateHistoryStore.build([
            (date(2023, 6, 2), Decimal('8.25')),
            (date(2024, 1, 1), Decimal('0')),
            (date(2024, 6, 1), Decimal('7.00')),
        ])
        self.result = compute(Decimal('350000'), date(2023, 7, 1), date(2024, 9, 1), self.history)

    def test_monotonic_balances(self):
        """Test that no period loses money under non-negative rates"""
        for period in self.result.periods:
            assert period.end_balance >= period.start_balance

    def test_zero_rate_period_earns_nothing(self):
        """Test that a 0% period leaves the balance unchanged"""
        zero = [p for p in self.result.periods if p.annual_rate == Decimal('0')]
        assert len(zero) == 1
        assert zero[0].period_interest == Decimal('0')

    def test_final_balance_is_principal_plus_gross(self):
        """Test that gross interest equals growth of the balance"""
        difference = self.result.final_balance - (self.result.principal + self.result.gross_interest)
        assert abs(difference) < Decimal('1e-15')

    def test_tax_identity(self):
        """Test net = gross * (1 - tax rate) and total = principal + net"""
        result = self.result
        assert result.net_interest == result.gross_interest - result.tax
        assert abs(result.net_interest - result.gross_interest * (Decimal('1') - result.tax_rate)) < Decimal('1e-15')
        assert result.total_amount == result.principal + result.net_interest

    def test_idempotent(self):
        """Test that identical inputs give identical results"""
        again = compute(Decimal('350000'), date(2023, 7, 1), date(2024, 9, 1), self.history)
        assert again == self.result


class TestIncompleteInputs:
    """Test the no-result sentinel and input errors"""

    def setup_method(self):
        """Set up test fixtures"""
        self.history = RateHistoryStore.build([(date(2024, 1, 1), Decimal('7.50'))])
        self.engine = InterestEngine()

    def test_same_start_and_end_returns_none(self):
        """Test that a zero-day span yields no result, not a zero result"""
        result = self.engine.calculate(Decimal('100000'), date(2024, 3, 1), date(2024, 3, 1), self.history)
        assert result is None

    def test_end_before_start_returns_none(self):
        """Test that a reversed range yields no result"""
        assert self.engine.calculate(Decimal('100000'), date(2024, 3, 2), date(2024, 3, 1), self.history) is None

    def test_strict_mode_raises_invalid_range(self):
        """Test that strict mode signals an invalid range"""
        with pytest.raises(InvalidRange):
            self.engine.calculate(
                Decimal('100000'), date(2024, 3, 1), date(2024, 3, 1), self.history, strict=True
            )

    def test_missing_inputs_return_none(self):
        """Test that unfilled inputs withhold a result"""
        assert self.engine.calculate(None, date(2024, 1, 1), date(2024, 2, 1), self.history) is None
        assert self.engine.calculate(Decimal('1000'), None, date(2024, 2, 1), self.history) is None
        assert self.engine.calculate(Decimal('1000'), date(2024, 1, 1), None, self.history) is None

    def test_zero_principal_returns_none(self):
        """Test that a zero deposit withholds a result"""
        assert self.engine.calculate(Decimal('0'), date(2024, 1, 1), date(2024, 2, 1), self.history) is None

    def test_negative_principal_raises(self):
        """Test that a negative deposit is rejected"""
        with pytest.raises(ValueError, match="must be positive"):
            self.engine.calculate(Decimal('-1'), date(2024, 1, 1), date(2024, 2, 1), self.history)

    def test_empty_history_raises(self):
        """Test that an empty history is a contract violation"""
        with pytest.raises(EmptyHistory):
            self.engine.calculate(Decimal('1000'), date(2024, 1, 1), date(2024, 2, 1), RateHistoryStore())

    def test_string_inputs(self):
        """Test that form-style string inputs are accepted"""
        result = self.engine.calculate("100000", "2024-01-01", "2024-02-01", self.history)

        assert isinstance(result, CalculationResult)
        assert result.total_days == 31


class TestTaxRateConfiguration:
    """Test tax rate handling"""

    def test_default_tax_rate(self):
        """Test the default 22% capital gains tax"""
        assert InterestEngine().tax_rate == Decimal('0.22')

    def test_custom_tax_rate(self):
        """Test that a zero tax rate leaves net equal to gross"""
        history = RateHistoryStore.build([(date(2024, 1, 1), Decimal('7.50'))])
        result = compute(Decimal('100000'), date(2024, 1, 1), date(2024, 7, 1), history, tax_rate=Decimal('0'))

        assert result.tax == Decimal('0')
        assert result.net_interest == result.gross_interest

    def test_invalid_tax_rate(self):
        """Test that a tax rate outside 0-1 is rejected"""
        with pytest.raises(ValueError, match="between 0 and 1"):
            InterestEngine(tax_rate=Decimal('22'))
