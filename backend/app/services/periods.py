"""Budget period resolution and calendar-date helpers.

All budget boundaries are calendar dates with no time of day. When a date has
to become an instant it is anchored at 12:00 UTC, which keeps it on the same
calendar day in every timezone from UTC-11 to UTC+11.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple, Optional, Union

from ..domain import Budget, as_utc
from ..errors import ValidationFailed

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

NOON = time(12, 0, tzinfo=timezone.utc)


class DateRange(NamedTuple):
    start: date
    end: date


# ── Parsing / anchoring ───────────────────────────────────────────────────────


def parse_iso_date(value: str) -> date:
    """``YYYY-MM-DD`` → date. Anything else is a validation error."""
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ValidationFailed(f"Invalid date {value!r}; expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationFailed(f"Invalid date {value!r}: {exc}") from exc


def parse_instant(value: str, *, end_of_day: bool = False) -> datetime:
    """Parse a range bound.

    A bare ``YYYY-MM-DD`` is a UTC day boundary: 00:00:00 for a start bound,
    23:59:59.999999 for an end bound. Full ISO-8601 instants are converted to
    UTC; naive instants are taken as UTC.
    """
    if isinstance(value, str) and _ISO_DATE.match(value):
        d = parse_iso_date(value)
        t = time.max if end_of_day else time.min
        return datetime.combine(d, t, tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as exc:
        raise ValidationFailed(f"Invalid timestamp {value!r}") from exc
    return as_utc(parsed)


def anchor_noon(d: date) -> datetime:
    return datetime.combine(d, NOON)


def utc_date(instant: datetime) -> date:
    return as_utc(instant).date()


# ── Period resolution ─────────────────────────────────────────────────────────


def month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def resolve_period(period: str, start: date, end: Optional[date] = None) -> date:
    """Return the effective (inclusive) end date of a budget period.

    An explicit ``end`` is returned unchanged. Otherwise a weekly period ends
    six days after ``start`` and a monthly period ends on the last day of
    ``start``'s month, whatever day of the month ``start`` is.
    """
    if end is not None:
        return end
    if period == "weekly":
        return start + timedelta(days=6)
    if period == "monthly":
        return month_end(start)
    raise ValidationFailed(f"Unsupported period {period!r}; expected 'monthly' or 'weekly'")


def effective_range(budget: Budget) -> DateRange:
    return DateRange(budget.start_date, resolve_period(budget.period, budget.start_date, budget.end_date))


def ranges_overlap(a: DateRange, b: DateRange) -> bool:
    """Closed-interval overlap; symmetric in its arguments."""
    return a.start <= b.end and b.start <= a.end


def to_date_range(value: Union[DateRange, datetime, tuple]) -> DateRange:
    """Normalise an instant or an (instant|date, instant|date) pair to UTC calendar dates."""
    if isinstance(value, datetime):
        d = utc_date(value)
        return DateRange(d, d)
    start, end = value
    start = utc_date(start) if isinstance(start, datetime) else start
    end = utc_date(end) if isinstance(end, datetime) else end
    return DateRange(start, end)


def iter_days(start: date, end: date):
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)
