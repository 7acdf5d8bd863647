from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from schedule_app.errors import InvalidDateFormat
from schedule_app.services.clock import anchor_today, fixed_clock, format_date, parse_date, window_dates


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1/1/2099", date(2099, 1, 1)),
        ("15/3/2024", date(2024, 3, 15)),
        ("05/03/2024", date(2024, 3, 5)),
        ("29/2/2024", date(2024, 2, 29)),
    ],
)
def test_parse_date_accepts_padded_and_unpadded(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw", ["", "2024-03-15", "3/15", "31/2/2024", "29/2/2023", "a/b/cccc"])
def test_parse_date_rejects_invalid(raw):
    with pytest.raises(InvalidDateFormat):
        parse_date(raw)


def test_format_date_is_unpadded():
    assert format_date(date(2024, 3, 5)) == "5/3/2024"


def test_anchor_today_uses_anchor_timezone():
    # 18:30 UTC on the 15th is already 01:30 on the 16th in UTC+7.
    clock = fixed_clock(datetime(2024, 3, 15, 18, 30, tzinfo=timezone.utc))
    assert anchor_today(clock, ZoneInfo("Asia/Ho_Chi_Minh")) == date(2024, 3, 16)
    assert anchor_today(clock, timezone.utc) == date(2024, 3, 15)


def test_fixed_clock_requires_aware_datetime():
    with pytest.raises(ValueError):
        fixed_clock(datetime(2024, 3, 15))


def test_window_is_half_open_and_crosses_month_end():
    dates = window_dates(date(2024, 12, 25), 14)
    assert len(dates) == 14
    assert dates[0] == date(2024, 12, 25)
    assert dates[-1] == date(2025, 1, 7)
