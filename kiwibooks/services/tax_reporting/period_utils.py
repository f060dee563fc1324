"""Period date utilities.

Parsing and validation of return periods, plus GST quarter boundaries.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from kiwibooks.core.exceptions import InvalidPeriodError

DateLike = Union[str, date, datetime]

# Longest period a single return may cover (leap years included)
MAX_PERIOD_DAYS = 366


def parse_period_date(value: DateLike) -> date:
    """Accept ISO date strings, dates or datetimes.

    Raises:
        ValueError: value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    raise ValueError(f"Unsupported date value: {value!r}")


def validate_period(
    period_start: DateLike,
    period_end: DateLike,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """Check a return period and return it as dates.

    Rules: both dates parse, start is before end, end is not in the future
    and the span is at most one year.

    Raises:
        InvalidPeriodError: with a message suitable for the user
    """
    try:
        start = parse_period_date(period_start)
        end = parse_period_date(period_end)
    except (TypeError, ValueError) as exc:
        raise InvalidPeriodError("Invalid period dates", period_start, period_end) from exc

    today = today or datetime.now(timezone.utc).date()

    if start >= end:
        raise InvalidPeriodError("Period start must be before period end", start, end)
    if end > today:
        raise InvalidPeriodError("Period end cannot be in the future", start, end)
    if (end - start).days > MAX_PERIOD_DAYS:
        raise InvalidPeriodError("Period cannot exceed one year", start, end)
    return start, end


def quarter_end(on: date) -> date:
    """Last day of the calendar quarter containing `on` (Mar/Jun/Sep/Dec)."""
    end_month = ((on.month - 1) // 3 + 1) * 3
    if end_month == 12:
        return date(on.year, 12, 31)
    return date(on.year, end_month + 1, 1) - timedelta(days=1)
