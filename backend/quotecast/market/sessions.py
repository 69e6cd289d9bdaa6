"""Trading calendar and the historical windows used to look up closes."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

EXCHANGE_TZ = ZoneInfo("America/New_York")
REGULAR_CLOSE = time(16, 0)
EARLY_CLOSE = time(13, 0)

# Width of the bar lookup window ending at a close
BAR_WINDOW = timedelta(minutes=1)

# Full-day NYSE closures
NYSE_HOLIDAYS: frozenset[date] = frozenset(
    {
        date(2025, 1, 1),
        date(2025, 1, 9),
        date(2025, 1, 20),
        date(2025, 2, 17),
        date(2025, 4, 18),
        date(2025, 5, 26),
        date(2025, 6, 19),
        date(2025, 7, 4),
        date(2025, 9, 1),
        date(2025, 11, 27),
        date(2025, 12, 25),
        date(2026, 1, 1),
        date(2026, 1, 19),
        date(2026, 2, 16),
        date(2026, 4, 3),
        date(2026, 5, 25),
        date(2026, 6, 19),
        date(2026, 7, 3),
        date(2026, 9, 7),
        date(2026, 11, 26),
        date(2026, 12, 25),
    }
)

# NYSE 1:00 PM early closes
NYSE_EARLY_CLOSES: Mapping[date, time] = {
    date(2025, 7, 3): EARLY_CLOSE,
    date(2025, 11, 28): EARLY_CLOSE,
    date(2025, 12, 24): EARLY_CLOSE,
    date(2026, 11, 27): EARLY_CLOSE,
    date(2026, 12, 24): EARLY_CLOSE,
}


@dataclass(frozen=True)
class TradingCalendar:
    """Exchange trading days and session close times.

    Weekends are never trading days. Holidays and early closes are explicit
    inputs rather than inferred, so the close anchor is testable around them.
    """

    holidays: frozenset[date] = NYSE_HOLIDAYS
    early_closes: Mapping[date, time] = field(default_factory=lambda: dict(NYSE_EARLY_CLOSES))

    def with_holidays(self, extra: Iterable[date]) -> TradingCalendar:
        return TradingCalendar(
            holidays=self.holidays | frozenset(extra),
            early_closes=self.early_closes,
        )

    def is_trading_day(self, day: date) -> bool:
        return day.weekday() < 5 and day not in self.holidays

    def session_close(self, day: date) -> time:
        return self.early_closes.get(day, REGULAR_CLOSE)

    def previous_trading_day(self, day: date) -> date:
        """Nearest trading day strictly before ``day``."""
        candidate = day - timedelta(days=1)
        while not self.is_trading_day(candidate):
            candidate -= timedelta(days=1)
        return candidate


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def last_stock_session_close(now: datetime | None = None, calendar: TradingCalendar | None = None) -> datetime:
    """Exchange-local datetime of the most recently completed session close.

    Today's close if today is a trading day and the session has ended,
    otherwise the close of the nearest prior trading day (so a weekend or
    holiday rolls back to the last session before it).
    """
    calendar = calendar or TradingCalendar()
    local_now = (now or _utc_now()).astimezone(EXCHANGE_TZ)
    today = local_now.date()

    if calendar.is_trading_day(today):
        close = datetime.combine(today, calendar.session_close(today), tzinfo=EXCHANGE_TZ)
        if local_now >= close:
            return close

    anchor = calendar.previous_trading_day(today)
    return datetime.combine(anchor, calendar.session_close(anchor), tzinfo=EXCHANGE_TZ)


def stock_close_window(
    now: datetime | None = None,
    calendar: TradingCalendar | None = None,
) -> tuple[datetime, datetime]:
    """UTC window [close - 1 min, close) holding the closing one-minute bar."""
    close = last_stock_session_close(now, calendar).astimezone(timezone.utc)
    return close - BAR_WINDOW, close


def crypto_close_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """UTC window holding the last one-minute bar of the most recently completed UTC day."""
    current = (now or _utc_now()).astimezone(timezone.utc)
    day_boundary = current.replace(hour=0, minute=0, second=0, microsecond=0)
    return day_boundary - BAR_WINDOW, day_boundary
