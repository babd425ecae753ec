from datetime import date, datetime, timezone

import pytest

from attendance_api.core.config import Settings
from attendance_api.core.dates import normalize_day, parse_month, period_bounds


@pytest.mark.parametrize("value", [
    "2024-03-01",
    "2024-03-01T00:00:00.000Z",
    "2024-03-01T23:59:59+10:00",
    "2024-03-01 08:15:00",
    datetime(2024, 3, 1, 18, 30, tzinfo=timezone.utc),
    date(2024, 3, 1),
])
def test_normalize_day(value):
    assert normalize_day(value) == date(2024, 3, 1)


@pytest.mark.parametrize("value", ["", "yesterday", "2024-02-30", 20240301])
def test_normalize_day_rejects(value):
    with pytest.raises(ValueError):
        normalize_day(value)


def test_parse_month():
    assert parse_month("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert parse_month(" 2023-12 ") == (date(2023, 12, 1), date(2023, 12, 31))


def test_period_bounds():
    today = date(2024, 3, 15)
    assert period_bounds("today", today) == (today, today)
    assert period_bounds("week", today) == (date(2024, 3, 8), today)
    assert period_bounds("month", today) == (date(2024, 3, 1), today)
    assert period_bounds("year", today) == (date(2024, 1, 1), today)
    assert period_bounds("fortnight", today) == (date(2024, 1, 1), today)


def test_blank_api_key_means_not_configured():
    assert Settings(GROQ_API_KEY="   ").GROQ_API_KEY is None
    assert Settings(GROQ_API_KEY=" abc ").GROQ_API_KEY == "abc"
