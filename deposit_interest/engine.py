"""
Compounding Engine Module

Compounds a deposit daily under a piecewise-constant rate history. The date
range is split into maximal segments of constant rate; each segment compounds
daily at rate / 100 / 365 and its ending balance seeds the next segment.
Capital gains tax is then applied to the gross interest.

The 365-day year is a policy choice: leap years are not adjusted for.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from .config import get_config
from .currency import Number, to_decimal
from .exceptions import EmptyHistory, InvalidRange
from .history import DateLike, RateHistoryStore, to_date
from .logging_config import get_logger

logger = get_logger("deposit_interest.engine")

DAYS_PER_YEAR = Decimal('365')


@dataclass(frozen=True)
class CompoundingPeriod:
    """A sub-interval of the deposit term with a single rate"""
    start_date: date
    end_date: date  # Exclusive
    day_count: int
    annual_rate: Decimal
    start_balance: Decimal
    end_balance: Decimal
    source: str = ""

    @property
    def period_interest(self) -> Decimal:
        return self.end_balance - self.start_balance


@dataclass(frozen=True)
class CalculationResult:
    """Outcome of compounding a deposit over a date range"""
    principal: Decimal
    start_date: date
    end_date: date
    total_days: int
    gross_interest: Decimal
    tax_rate: Decimal
    tax: Decimal
    net_interest: Decimal
    total_amount: Decimal
    effective_annual_rate: Decimal  # Percent, after tax
    periods: Tuple[CompoundingPeriod, ...]

    @property
    def final_balance(self) -> Decimal:
        """Balance after the last period, before tax"""
        if not self.periods:
            return self.principal
        return self.periods[-1].end_balance


class InterestEngine:
    """
    Calculates compounded deposit interest against a rate history

    The engine holds only the tax policy; every calculation is a pure
    function of its inputs and the history snapshot it is given.
    """

    def __init__(self, tax_rate: Optional[Number] = None):
        self.tax_rate = get_config().tax_rate_decimal if tax_rate is None else to_decimal(tax_rate)

        if self.tax_rate < Decimal('0') or self.tax_rate > Decimal('1'):
            raise ValueError("Tax rate must be between 0 and 1 (0-100%)")

    def calculate(
        self,
        principal: Optional[Number],
        start_date: Optional[DateLike],
        end_date: Optional[DateLike],
        history: RateHistoryStore,
        strict: bool = False
    ) -> Optional[CalculationResult]:
        """
        Compound a deposit from start_date (inclusive) to end_date (exclusive)

        Args:
            principal: Deposit amount in whole currency units
            start_date: First day interest accrues
            end_date: Day the deposit is returned
            history: Rate history snapshot to price each segment with
            strict: Raise InvalidRange instead of returning None for an empty span

        Returns:
            CalculationResult, or None when inputs are incomplete or the
            span is not positive

        Raises:
            ValueError: If principal is negative
            InvalidRange: If strict and end_date is not after start_date
            EmptyHistory: If history has no events
        """
        if principal is None or start_date is None or end_date is None:
            return None

        principal = to_decimal(principal)
        if principal < Decimal('0'):
            raise ValueError(f"Principal must be positive, got {principal}")
        if principal == Decimal('0'):
            return None

        start, end = to_date(start_date), to_date(end_date)
        total_days = (end - start).days
        if total_days <= 0:
            if strict:
                raise InvalidRange(f"End date {end} must be after start date {start}")
            return None

        if history.is_empty:
            raise EmptyHistory("Cannot price interest against an empty rate history")

        periods = self._compound_segments(principal, start, end, history)

        gross_interest = sum((p.period_interest for p in periods), Decimal('0'))
        tax = gross_interest * self.tax_rate
        net_interest = gross_interest - tax
        total_amount = principal + net_interest

        # Simple annualization of the after-tax return, not a compound rate
        effective_annual_rate = (
            (net_interest / principal) * (DAYS_PER_YEAR / Decimal(total_days)) * Decimal('100')
        )

        logger.debug(
            f"Compounded {principal} over {total_days} days in {len(periods)} period(s): "
            f"gross {gross_interest}, net {net_interest}"
        )

        return CalculationResult(
            principal=principal,
            start_date=start,
            end_date=end,
            total_days=total_days,
            gross_interest=gross_interest,
            tax_rate=self.tax_rate,
            tax=tax,
            net_interest=net_interest,
            total_amount=total_amount,
            effective_annual_rate=effective_annual_rate,
            periods=tuple(periods)
        )

    def _compound_segments(
        self,
        principal: Decimal,
        start: date,
        end: date,
        history: RateHistoryStore
    ) -> List[CompoundingPeriod]:
        """Walk the range segment by segment, chaining balances"""
        boundaries = history.boundaries_between(start, end)

        periods: List[CompoundingPeriod] = []
        current_date = start
        balance = principal

        while current_date < end:
            event = history.event_as_of(current_date)
            annual_rate = event.annual_rate

            segment_end = end
            for boundary in boundaries:
                if current_date < boundary < end:
                    segment_end = boundary
                    break

            day_count = (segment_end - current_date).days
            if day_count > 0:
                daily_rate = annual_rate / Decimal('100') / DAYS_PER_YEAR
                new_balance = balance * (Decimal('1') + daily_rate) ** day_count

                periods.append(CompoundingPeriod(
                    start_date=current_date,
                    end_date=segment_end,
                    day_count=day_count,
                    annual_rate=annual_rate,
                    start_balance=balance,
                    end_balance=new_balance,
                    source=event.source
                ))
                balance = new_balance

            current_date = segment_end

        return periods


def compute(
    principal: Optional[Number],
    start_date: Optional[DateLike],
    end_date: Optional[DateLike],
    history: RateHistoryStore,
    tax_rate: Optional[Number] = None,
    strict: bool = False
) -> Optional[CalculationResult]:
    """Convenience wrapper around InterestEngine.calculate()"""
    return InterestEngine(tax_rate).calculate(principal, start_date, end_date, history, strict=strict)
