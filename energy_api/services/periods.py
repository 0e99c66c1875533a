"""
Calendar period generation for time-bucketed energy reports.

Splits the local calendar span selected by a granularity (a day, a month,
a year, or every year since the configured floor) into contiguous buckets,
each carrying its local bounds, the UTC query bounds and the display label
and sort key the dashboard expects.

Buckets are half-open: ``[utc_start, utc_end)``, and each bucket's
``utc_end`` equals the next bucket's ``utc_start``.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from energy_api.exceptions import InvalidInputError

# Period granularity -> (span description, label format).
# Labels follow the dashboard's axis formats: "HH:00", "Mon DD", full month
# name and four-digit year.
PERIOD_CONFIG = {
    "hour": {"span": "day", "label": "%H:00"},
    "day": {"span": "month", "label": "%b %d"},
    "month": {"span": "year", "label": "%B"},
    "year": {"span": "since_floor", "label": "%Y"},
}

# Strict YYYY-MM-DD pattern; calendar validity is checked by date parsing.
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class CalendarPeriod:
    """One report bucket.

    Attributes:
        local_start: Bucket start in the local timezone.
        local_end: Bucket end (exclusive) in the local timezone.
        utc_start: Query lower bound (inclusive), UTC.
        utc_end: Query upper bound (exclusive), UTC.
        label: Display label, e.g. ``"09:00"`` or ``"Jun 16"``.
        sort_key: Calendar ordinal of the bucket: hour 0-23, day of month
            1-31, month 0-11 or the absolute year. Consumers sort on this,
            never on the label.
    """

    local_start: datetime
    local_end: datetime
    utc_start: datetime
    utc_end: datetime
    label: str
    sort_key: int

    @property
    def representative_instant(self) -> datetime:
        """Instant identifying the bucket on a time axis (its local start)."""
        return self.local_start


def validate_granularity(period: str) -> str:
    """Return *period* if it is a supported granularity.

    Raises:
        InvalidInputError: For anything outside hour/day/month/year.
    """
    if period not in PERIOD_CONFIG:
        raise InvalidInputError(
            f"Invalid period: {period}. Must be one of: {', '.join(PERIOD_CONFIG)}"
        )
    return period


def parse_local_date(value: str | None, tz: tzinfo, now: datetime | None = None) -> date:
    """Parse a ``YYYY-MM-DD`` request date, defaulting to today in *tz*.

    Args:
        value: Date string from the request, or None/empty for today.
        tz: Local timezone defining "today".
        now: Current instant, injectable for tests.

    Returns:
        date: The requested local calendar date.

    Raises:
        InvalidInputError: If the value is not a valid calendar date.
    """
    if not value:
        current = now if now is not None else datetime.now(UTC)
        return current.astimezone(tz).date()
    if not _DATE_RE.match(value):
        raise InvalidInputError(f"Invalid date format: {value!r}. Use YYYY-MM-DD.")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid date: {value!r}. Use YYYY-MM-DD.") from exc


def _next_month(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def _calendar_units(granularity: str, local_date: date, year_floor: date) -> Iterator[tuple[date, date]]:
    """Yield ``(unit_start, next_unit_start)`` local dates covering the span."""
    if granularity == "day":
        current = local_date.replace(day=1)
        end = _next_month(current)
        while current < end:
            following = current + timedelta(days=1)
            yield current, following
            current = following
    elif granularity == "month":
        current = date(local_date.year, 1, 1)
        end = date(local_date.year + 1, 1, 1)
        while current < end:
            following = _next_month(current)
            yield current, following
            current = following
    else:
        for year in range(year_floor.year, local_date.year + 1):
            yield date(year, 1, 1), date(year + 1, 1, 1)


def _sort_key(granularity: str, local_start: datetime) -> int:
    if granularity == "hour":
        return local_start.hour
    if granularity == "day":
        return local_start.day
    if granularity == "month":
        return local_start.month - 1
    return local_start.year


def _hour_periods(local_date: date, tz: tzinfo) -> list[CalendarPeriod]:
    # Hours advance on absolute instants so days with a DST transition get
    # 23 or 25 buckets and still cover midnight to midnight exactly.
    utc_current = datetime.combine(local_date, time(), tzinfo=tz).astimezone(UTC)
    utc_end = datetime.combine(
        local_date + timedelta(days=1), time(), tzinfo=tz,
    ).astimezone(UTC)
    label_format = PERIOD_CONFIG["hour"]["label"]

    periods = []
    while utc_current < utc_end:
        utc_next = utc_current + timedelta(hours=1)
        local_start = utc_current.astimezone(tz)
        periods.append(
            CalendarPeriod(
                local_start=local_start,
                local_end=utc_next.astimezone(tz),
                utc_start=utc_current,
                utc_end=utc_next,
                label=local_start.strftime(label_format),
                sort_key=_sort_key("hour", local_start),
            )
        )
        utc_current = utc_next
    return periods


def generate_periods(
    granularity: str,
    local_date: date,
    tz: tzinfo,
    year_floor: date = date(2023, 1, 1),
) -> list[CalendarPeriod]:
    """Generate the ordered buckets of the span containing *local_date*.

    Args:
        granularity: Bucket unit (hour, day, month or year).
        local_date: Any local date inside the requested span.
        tz: Local timezone of the calendar.
        year_floor: First local day covered by the yearly view; only its
            year is used, buckets always span whole years.

    Returns:
        Buckets ordered by ``sort_key``. Empty for a yearly view whose
        requested year precedes the floor.

    Raises:
        InvalidInputError: If *granularity* is not supported.
    """
    validate_granularity(granularity)
    if granularity == "hour":
        return _hour_periods(local_date, tz)

    label_format = PERIOD_CONFIG[granularity]["label"]
    periods = []
    for unit_start, unit_end in _calendar_units(granularity, local_date, year_floor):
        local_start = datetime.combine(unit_start, time(), tzinfo=tz)
        local_end = datetime.combine(unit_end, time(), tzinfo=tz)
        periods.append(
            CalendarPeriod(
                local_start=local_start,
                local_end=local_end,
                utc_start=local_start.astimezone(UTC),
                utc_end=local_end.astimezone(UTC),
                label=local_start.strftime(label_format),
                sort_key=_sort_key(granularity, local_start),
            )
        )
    return periods
