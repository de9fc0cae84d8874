"""
Rate Feed Module

Adapters that turn raw rate feeds into rate change events, and the RateBook
that owns the current rate history. Each adapter is a swappable strategy so
new feed formats never touch the compounding engine.

The RateBook is the only place feed failures are caught: a feed that yields
no usable rows is replaced with a hard-coded fallback history and an
advisory is raised for the user.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import csv
import io
import threading
import json

from .config import get_config
from .currency import Number, decimal_from_string, to_decimal
from .exceptions import MalformedFeed
from .history import RateChangeEvent, RateHistoryStore, to_date
from .logging_config import get_logger, log_action

logger = get_logger("deposit_interest.feeds")

FALLBACK_ADVISORY = "Failed to load current interest rates. Using fallback data; rates may be stale."

# Highest available savings rate (Auður) as last verified by hand
FALLBACK_HISTORY = (
    RateChangeEvent(date(2023, 6, 2), Decimal('8.25'), "audur"),
    RateChangeEvent(date(2024, 1, 1), Decimal('7.50'), "audur"),
    RateChangeEvent(date(2024, 6, 1), Decimal('7.00'), "audur"),
    RateChangeEvent(date(2025, 1, 1), Decimal('6.90'), "audur"),
)


class FeedAdapter(ABC):
    """Strategy that converts a raw feed into rate change events"""

    name = "feed"

    @abstractmethod
    def parse(self, raw: Any) -> List[RateChangeEvent]:
        """
        Parse a raw feed

        Raises:
            MalformedFeed: If no usable rows were found
        """
        pass

    def _require_rows(self, events: List[RateChangeEvent], skipped: int) -> List[RateChangeEvent]:
        if skipped:
            logger.warning(f"Skipped {skipped} unparseable row(s) in {self.name} feed")
        if not events:
            raise MalformedFeed(f"No usable rows in {self.name} feed")
        return events


class CentralBankKeyRateAdapter(FeedAdapter):
    """
    Central bank CSV feed: date,overnight_rate,current_account_rate,key_interest_rate

    Dates are DD.MM.YYYY. The deposit rate is the key rate less a fixed
    margin, floored at zero. A margin of zero consumes the key rate as-is.
    """

    name = "central_bank"
    date_format = "%d.%m.%Y"

    def __init__(self, margin: Optional[Number] = None, source: str = "central_bank"):
        self.margin = get_config().key_rate_margin_decimal if margin is None else to_decimal(margin)
        self.source = source

        if self.margin < Decimal('0'):
            raise ValueError("Margin must be non-negative")

    def deposit_rate(self, key_rate: Decimal) -> Decimal:
        """Derive the deposit rate from a key interest rate"""
        return max(Decimal('0'), key_rate - self.margin)

    def parse(self, raw: str) -> List[RateChangeEvent]:
        events = []
        skipped = 0
        rows = list(csv.reader(io.StringIO(raw or "")))

        # Header row is always discarded
        for row in rows[1:]:
            if not row or not any(cell.strip() for cell in row):
                continue
            try:
                effective_date = datetime.strptime(row[0].strip(), self.date_format).date()
                key_rate = decimal_from_string(row[3])
                events.append(RateChangeEvent(effective_date, self.deposit_rate(key_rate), self.source))
            except (IndexError, ValueError):
                skipped += 1

        return self._require_rows(events, skipped)


class SimpleRateCsvAdapter(FeedAdapter):
    """
    Plain rate CSV: YYYY-MM-DD,rate[,source]

    A leading header row is skipped if its first cell is not a date.
    """

    name = "simple"

    def parse(self, raw: str) -> List[RateChangeEvent]:
        events = []
        skipped = 0

        for index, row in enumerate(csv.reader(io.StringIO(raw or ""))):
            if not row or not any(cell.strip() for cell in row):
                continue
            try:
                effective_date = to_date(row[0])
                rate = decimal_from_string(row[1])
                source = row[2].strip() if len(row) > 2 else ""
                events.append(RateChangeEvent(effective_date, rate, source))
            except (IndexError, ValueError):
                if index == 0:
                    continue  # header
                skipped += 1

        return self._require_rows(events, skipped)


class HighestProviderRateAdapter(FeedAdapter):
    """
    Multi-bank history: [{"date": "YYYY-MM-DD", "rates": {"bank": rate, ...}}, ...]

    Each entry resolves to the highest quoted rate, attributed to the bank
    quoting it. Deposits must be kept at the best available savings rate.
    """

    name = "providers"

    def parse(self, raw: Union[str, Iterable[Mapping[str, Any]]]) -> List[RateChangeEvent]:
        if isinstance(raw, str):
            # Feeds posted over HTTP arrive as JSON text
            try:
                raw = json.loads(raw) if raw.strip() else []
            except ValueError as e:
                raise MalformedFeed(f"Invalid JSON in {self.name} feed: {e}")

        if raw is None:
            raw = []
        if isinstance(raw, Mapping) or not isinstance(raw, Iterable):
            raise MalformedFeed(f"{self.name} feed must be a list of entries, got {type(raw).__name__}")

        events = []
        skipped = 0

        for entry in raw:
            try:
                effective_date = to_date(entry["date"])
                rates: Dict[str, Decimal] = {
                    bank: to_decimal(rate) for bank, rate in entry["rates"].items()
                }
                if not rates:
                    raise ValueError("Entry has no rates")
                # Ties go to the first bank listed
                best_bank = max(rates, key=lambda bank: rates[bank])
                events.append(RateChangeEvent(effective_date, rates[best_bank], best_bank))
            except (KeyError, TypeError, AttributeError, ValueError):
                skipped += 1

        return self._require_rows(events, skipped)


FEED_ADAPTERS = {
    CentralBankKeyRateAdapter.name: CentralBankKeyRateAdapter,
    SimpleRateCsvAdapter.name: SimpleRateCsvAdapter,
    HighestProviderRateAdapter.name: HighestProviderRateAdapter,
}


def get_adapter(name: str) -> FeedAdapter:
    """Create a feed adapter by format name"""
    adapter_cls = FEED_ADAPTERS.get(name)
    if adapter_cls is None:
        raise ValueError(f"Unknown feed format: {name}")
    return adapter_cls()


class RateBook:
    """
    Owner of the current rate history

    Stores are immutable and swapped whole on refresh, so snapshot() always
    returns a consistent history even while another thread refreshes.
    """

    def __init__(
        self,
        adapter: Optional[FeedAdapter] = None,
        fallback_events: Iterable[RateChangeEvent] = FALLBACK_HISTORY,
        fallback_rate: Optional[Number] = None
    ):
        self.adapter = adapter or CentralBankKeyRateAdapter()
        self.fallback_rate = (
            get_config().fallback_rate_decimal if fallback_rate is None else to_decimal(fallback_rate)
        )
        self._fallback_events = tuple(fallback_events)
        self._lock = threading.Lock()
        self._store = self._fallback_store()
        self._advisory: Optional[str] = None
        self._loaded_at: Optional[datetime] = None

    def _fallback_store(self) -> RateHistoryStore:
        return RateHistoryStore(self._fallback_events, fallback_rate=self.fallback_rate)

    @property
    def advisory(self) -> Optional[str]:
        """User-visible warning when fallback rates are in use"""
        return self._advisory

    @property
    def loaded_at(self) -> Optional[datetime]:
        return self._loaded_at

    @property
    def using_fallback(self) -> bool:
        return self._loaded_at is None

    def snapshot(self) -> RateHistoryStore:
        """Get the current history for one calculation"""
        with self._lock:
            return self._store

    def refresh(self, raw: Any, adapter: Optional[FeedAdapter] = None) -> RateHistoryStore:
        """
        Rebuild the history wholesale from a raw feed

        On MalformedFeed the fallback history is installed and the advisory
        is set; the error is not propagated.

        Returns:
            The store now in effect
        """
        adapter = adapter or self.adapter

        try:
            events = adapter.parse(raw)
            store = RateHistoryStore.build(events, fallback_rate=self.fallback_rate)
            advisory = None
            loaded_at = datetime.now()
        except MalformedFeed as e:
            log_action(
                logger, "warning", f"Rate feed rejected, using fallback history: {e}",
                action="rates.refresh", resource=adapter.name
            )
            store = self._fallback_store()
            advisory = FALLBACK_ADVISORY
            loaded_at = None
        else:
            log_action(
                logger, "info", f"Loaded {len(store)} rate change(s)",
                action="rates.refresh", resource=adapter.name,
                extra={"latest": str(store.latest().effective_date)}
            )

        with self._lock:
            self._store = store
            self._advisory = advisory
            self._loaded_at = loaded_at
        return store

    def refresh_from_file(self, path: Union[str, Path], adapter: Optional[FeedAdapter] = None) -> RateHistoryStore:
        """Rebuild the history from a feed file on disk, falling back if unreadable"""
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Cannot read rate feed {path}: {e}")
            raw = ""
        return self.refresh(raw, adapter=adapter)

    def record_current_rate(self, rate: Number, on: Optional[date] = None, source: str = "") -> RateHistoryStore:
        """Merge today's quoted rate into the history if it differs from the last entry"""
        on = on or date.today()
        with self._lock:
            self._store = self._store.with_current_rate(on, rate, source)
            return self._store
