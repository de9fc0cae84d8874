"""
Rate History Module

Holds the chronological set of deposit rate changes and answers
"which rate applied on date D". Stores are immutable: refreshing the
history means building a new store, so an in-flight calculation never sees
a half-updated history.
"""

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .currency import Number, to_decimal
from .exceptions import MalformedFeed
from .logging_config import get_logger

logger = get_logger("deposit_interest.history")

DateLike = Union[date, datetime, str]


def to_date(value: DateLike) -> date:
    """Normalize a date, datetime or ISO-8601 string to a calendar date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            if text[10] not in "T ":
                raise ValueError(f"Invalid ISO date: {value!r}")
            return datetime.fromisoformat(text).date()
        return date.fromisoformat(text)
    raise ValueError(f"Cannot convert {type(value).__name__} to date")


@dataclass(frozen=True)
class RateChangeEvent:
    """A deposit rate that takes effect on a given date"""
    effective_date: date
    annual_rate: Decimal  # Percent per year, e.g. Decimal('6.90')
    source: str = ""  # Bank or feed that quoted the rate

    def __post_init__(self):
        object.__setattr__(self, 'effective_date', to_date(self.effective_date))
        object.__setattr__(self, 'annual_rate', to_decimal(self.annual_rate))

        if self.annual_rate < Decimal('0'):
            raise ValueError(f"Annual rate must be non-negative, got {self.annual_rate}")


def _collapse(events: Iterable[RateChangeEvent]) -> List[RateChangeEvent]:
    """
    Deduplicate and sort events, keeping only actual rate changes

    The last record for a given date wins. A run of consecutive identical
    rates collapses to its first date.
    """
    by_date = {}
    for event in events:
        by_date[event.effective_date] = event

    collapsed: List[RateChangeEvent] = []
    for effective_date in sorted(by_date):
        event = by_date[effective_date]
        if collapsed and collapsed[-1].annual_rate == event.annual_rate:
            continue
        collapsed.append(event)
    return collapsed


class RateHistoryStore:
    """
    Immutable, date-sorted deposit rate history

    Use RateHistoryStore.build() to construct from raw records. Direct
    construction skips feed validation and permits an empty history.
    """

    def __init__(
        self,
        events: Iterable[RateChangeEvent] = (),
        fallback_rate: Number = Decimal('6.90')
    ):
        self._events: Tuple[RateChangeEvent, ...] = tuple(_collapse(events))
        self._dates: Tuple[date, ...] = tuple(e.effective_date for e in self._events)
        self.fallback_rate = to_decimal(fallback_rate)

    @classmethod
    def build(
        cls,
        records: Iterable[Union[RateChangeEvent, Tuple[DateLike, Number]]],
        fallback_rate: Number = Decimal('6.90')
    ) -> 'RateHistoryStore':
        """
        Build a history from raw (date, rate) records

        Args:
            records: RateChangeEvents or (date, rate) pairs, in any order
            fallback_rate: Rate returned by rate_as_of() when history is empty

        Returns:
            New store containing only the dates where the rate changes

        Raises:
            MalformedFeed: If no records were supplied
        """
        events = []
        for record in records:
            if isinstance(record, RateChangeEvent):
                events.append(record)
            else:
                effective_date, annual_rate = record
                events.append(RateChangeEvent(to_date(effective_date), to_decimal(annual_rate)))

        if not events:
            raise MalformedFeed("Rate feed contained no usable records")

        store = cls(events, fallback_rate=fallback_rate)
        logger.debug(
            f"Built rate history with {len(store)} change(s) from {len(events)} record(s)"
        )
        return store

    @property
    def events(self) -> Tuple[RateChangeEvent, ...]:
        return self._events

    @property
    def is_empty(self) -> bool:
        return not self._events

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[RateChangeEvent]:
        return iter(self._events)

    def __repr__(self) -> str:
        return f"RateHistoryStore(events={len(self._events)})"

    def event_as_of(self, on: DateLike) -> Optional[RateChangeEvent]:
        """
        Get the latest event whose effective date is not after the given date

        Dates before the whole history resolve to the earliest event.
        Returns None only for an empty history.
        """
        if not self._events:
            return None

        index = bisect_right(self._dates, to_date(on)) - 1
        if index < 0:
            return self._events[0]
        return self._events[index]

    def rate_as_of(self, on: DateLike) -> Decimal:
        """Get the annual rate (percent) in effect on the given date"""
        event = self.event_as_of(on)
        if event is None:
            return self.fallback_rate
        return event.annual_rate

    def latest(self) -> Optional[RateChangeEvent]:
        """Get the most recent rate change"""
        return self._events[-1] if self._events else None

    def boundaries_between(self, start: DateLike, end: DateLike) -> List[date]:
        """Get rate change dates strictly inside (start, end), ascending"""
        start, end = to_date(start), to_date(end)
        lo = bisect_right(self._dates, start)
        hi = bisect_left(self._dates, end)
        return list(self._dates[lo:hi])

    def with_current_rate(self, on: DateLike, rate: Number, source: str = "") -> 'RateHistoryStore':
        """
        Return a new store with a quoted rate merged in

        An existing entry on the same date is replaced. If the rate matches the
        rate already in effect, the new store is equivalent to this one.
        """
        event = RateChangeEvent(to_date(on), to_decimal(rate), source)
        return RateHistoryStore(self._events + (event,), fallback_rate=self.fallback_rate)
