"""
Timezone-aware datetime helpers.
- Store and compute in UTC in DB.
- API responses expose datetimes as ISO-8601 UTC with a Z suffix.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def iso_8601_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with Z for UTC."""
    if dt is None:
        return None
    s = ensure_utc(dt).isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s


def iter_dates(start: date, end: date):
    """Yield each calendar date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class Clock:
    """
    Source of "now" for the service layer.

    Services never call datetime.now() directly; they receive a Clock so tests
    (and the get_clock dependency) can pin time.
    """

    def now(self) -> datetime:
        return now_utc()

    def today(self) -> date:
        return self.now().date()

    @property
    def current_year(self) -> int:
        return self.today().year


system_clock = Clock()
