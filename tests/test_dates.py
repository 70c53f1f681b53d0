import time
from datetime import date, datetime, timedelta, timezone

import pytest

from critline.dates import days_between, format_to_iso_date_string, parse_as_utc_date


@pytest.fixture(params=["UTC", "America/Sao_Paulo", "Asia/Tokyo", "Pacific/Kiritimati"])
def local_tz(request, monkeypatch):
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available")
    monkeypatch.setenv("TZ", request.param)
    time.tzset()
    yield request.param
    monkeypatch.undo()
    time.tzset()


def test_date_only_string_keeps_calendar_day(local_tz):
    parsed = parse_as_utc_date("2024-05-10")
    assert parsed == datetime(2024, 5, 10, tzinfo=timezone.utc)
    assert format_to_iso_date_string(parsed) == "2024-05-10"


@pytest.mark.parametrize("s", ["2024-01-01", "2024-02-29", "2023-12-31", "1999-07-04"])
def test_round_trip(local_tz, s):
    assert format_to_iso_date_string(parse_as_utc_date(s)) == s


def test_parse_of_formatted_midnight_is_identity():
    d = datetime(2025, 3, 30, tzinfo=timezone.utc)
    assert parse_as_utc_date(format_to_iso_date_string(d)) == d


def test_accepts_date_and_datetime_objects():
    assert parse_as_utc_date(date(2024, 5, 10)) == datetime(2024, 5, 10, tzinfo=timezone.utc)
    assert parse_as_utc_date(datetime(2024, 5, 10, 18, 30)) == datetime(2024, 5, 10, tzinfo=timezone.utc)
    assert format_to_iso_date_string(datetime(2024, 5, 10, 0, 0)) == "2024-05-10"


def test_timestamp_strings():
    assert parse_as_utc_date("2024-05-10T15:45:00") == datetime(2024, 5, 10, tzinfo=timezone.utc)
    assert parse_as_utc_date("2024-05-10T00:00:00Z") == datetime(2024, 5, 10, tzinfo=timezone.utc)
    # 23:00 at UTC-3 is already the next day in UTC
    assert parse_as_utc_date("2024-05-10T23:00:00-03:00") == datetime(2024, 5, 11, tzinfo=timezone.utc)


def test_aware_datetime_is_converted_to_utc_day():
    tokyo = timezone(timedelta(hours=9))
    assert parse_as_utc_date(datetime(2024, 5, 10, 3, 0, tzinfo=tokyo)) == datetime(
        2024, 5, 9, tzinfo=timezone.utc
    )


@pytest.mark.parametrize("bad", [None, "", "   ", "garbage", "2024-13-01", "2024-02-30", "10/05/2024", 42, [2024]])
def test_unparseable_input_returns_none(bad):
    assert parse_as_utc_date(bad) is None


def test_days_between():
    assert days_between("2024-01-01", "2024-01-11") == 10
    assert days_between("2024-01-11", "2024-01-01") == -10
    assert days_between("2024-01-01", None) is None
    assert days_between("nope", "2024-01-01") is None
