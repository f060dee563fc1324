"""Tests for return period validation."""
from datetime import date, datetime

import pytest

from kiwibooks.core.exceptions import InvalidPeriodError
from kiwibooks.services.tax_reporting import parse_period_date, quarter_end, validate_period

TODAY = date(2024, 6, 1)


def test_valid_quarter():
    assert validate_period("2024-01-01", "2024-03-31", today=TODAY) == (date(2024, 1, 1), date(2024, 3, 31))


def test_accepts_dates_and_datetimes():
    start, end = validate_period(date(2024, 1, 1), datetime(2024, 3, 31, 23, 59), today=TODAY)
    assert (start, end) == (date(2024, 1, 1), date(2024, 3, 31))


@pytest.mark.parametrize(
    "start,end,message",
    [
        ("not-a-date", "2024-03-31", "Invalid period dates"),
        ("2024-03-31", "2024-03-31", "Period start must be before period end"),
        ("2024-04-01", "2024-03-31", "Period start must be before period end"),
        ("2024-05-01", "2024-06-02", "Period end cannot be in the future"),
        ("2023-01-01", "2024-01-03", "Period cannot exceed one year"),
    ],
)
def test_rejected_periods(start, end, message):
    with pytest.raises(InvalidPeriodError) as exc_info:
        validate_period(start, end, today=TODAY)
    assert exc_info.value.message == message
    assert exc_info.value.code == "TAX303"


def test_leap_year_span_is_allowed():
    assert validate_period("2024-01-01", "2025-01-01", today=date(2025, 2, 1))


def test_end_today_is_allowed():
    assert validate_period("2024-05-01", "2024-06-01", today=TODAY)[1] == TODAY


def test_parse_iso_timestamp():
    assert parse_period_date("2024-03-31T12:00:00Z") == date(2024, 3, 31)


@pytest.mark.parametrize(
    "on,expected",
    [
        (date(2024, 2, 10), date(2024, 3, 31)),
        (date(2024, 5, 1), date(2024, 6, 30)),
        (date(2024, 9, 30), date(2024, 9, 30)),
        (date(2024, 11, 5), date(2024, 12, 31)),
    ],
)
def test_quarter_end(on, expected):
    assert quarter_end(on) == expected
