"""
Pydantic schemas for API requests and responses

Dates are serialized as ISO-8601 calendar dates and all amounts and rates as
decimal strings, never as binary floats.
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from .config import get_config
from .currency import quantize_to
from .engine import CalculationResult, CompoundingPeriod
from .history import RateChangeEvent


class CalculateRequest(BaseModel):
    principal: Optional[str] = Field(None, description="Deposit amount as decimal string")
    start_date: Optional[str] = Field(None, description="ISO date the deposit was paid")
    end_date: Optional[str] = Field(None, description="ISO date the deposit is returned")


class RefreshRatesRequest(BaseModel):
    feed: str = Field(..., description="Raw feed text: CSV, or a JSON list for the providers format")
    format: str = Field("central_bank", description="Feed format (central_bank, simple)")


class RateChangeEventModel(BaseModel):
    effective_date: str
    annual_rate: str
    source: str = ""

    @classmethod
    def from_event(cls, event: RateChangeEvent) -> 'RateChangeEventModel':
        return cls(
            effective_date=event.effective_date.isoformat(),
            annual_rate=str(event.annual_rate),
            source=event.source
        )


class CompoundingPeriodModel(BaseModel):
    start_date: str
    end_date: str
    day_count: int
    annual_rate: str
    start_balance: str
    end_balance: str
    period_interest: str
    source: str = ""

    @classmethod
    def from_period(cls, period: CompoundingPeriod, amount_places: int) -> 'CompoundingPeriodModel':
        return cls(
            start_date=period.start_date.isoformat(),
            end_date=period.end_date.isoformat(),
            day_count=period.day_count,
            annual_rate=str(period.annual_rate),
            start_balance=str(quantize_to(period.start_balance, amount_places)),
            end_balance=str(quantize_to(period.end_balance, amount_places)),
            period_interest=str(quantize_to(period.period_interest, amount_places)),
            source=period.source
        )


class CalculationResultModel(BaseModel):
    principal: str
    start_date: str
    end_date: str
    total_days: int
    gross_interest: str
    tax_rate: str
    tax: str
    net_interest: str
    total_amount: str
    effective_annual_rate: str
    periods: List[CompoundingPeriodModel]

    @classmethod
    def from_result(
        cls,
        result: CalculationResult,
        amount_places: Optional[int] = None,
        rate_places: Optional[int] = None
    ) -> 'CalculationResultModel':
        config = get_config()
        if amount_places is None:
            amount_places = config.amount_precision
        if rate_places is None:
            rate_places = config.rate_precision

        def amount(value):
            return str(quantize_to(value, amount_places))

        return cls(
            principal=amount(result.principal),
            start_date=result.start_date.isoformat(),
            end_date=result.end_date.isoformat(),
            total_days=result.total_days,
            gross_interest=amount(result.gross_interest),
            tax_rate=str(result.tax_rate),
            tax=amount(result.tax),
            net_interest=amount(result.net_interest),
            total_amount=amount(result.total_amount),
            effective_annual_rate=str(quantize_to(result.effective_annual_rate, rate_places)),
            periods=[CompoundingPeriodModel.from_period(p, amount_places) for p in result.periods]
        )


class CalculateResponse(BaseModel):
    ready: bool
    result: Optional[CalculationResultModel] = None
    advisory: Optional[str] = None


class RatesResponse(BaseModel):
    events: List[RateChangeEventModel]
    current: Optional[RateChangeEventModel] = None
    using_fallback: bool
    advisory: Optional[str] = None
