"""Tests for view window calculation."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from flohub_calendar.errors import InvalidRequest, InvalidWindow
from flohub_calendar.models import ViewToken
from flohub_calendar.windows import (
    compute_window,
    get_timezone,
    parse_instant,
    parse_view,
    window_from_bounds,
)

UTC = ZoneInfo("UTC")
BERLIN = ZoneInfo("Europe/Berlin")

# Wednesday
NOW = datetime(2025, 6, 11, 15, 30, tzinfo=timezone.utc)


class TestComputeWindow:
    def test_today(self):
        w = compute_window("today", NOW, UTC)
        assert w.view is ViewToken.TODAY
        assert w.start == datetime(2025, 6, 11, tzinfo=UTC)
        assert w.end == datetime(2025, 6, 11, 23, 59, 59, 999000, tzinfo=UTC)

    def test_tomorrow(self):
        w = compute_window(ViewToken.TOMORROW, NOW, UTC)
        assert w.start == datetime(2025, 6, 12, tzinfo=UTC)
        assert w.end == datetime(2025, 6, 12, 23, 59, 59, 999000, tzinfo=UTC)

    def test_week_starts_monday(self):
        w = compute_window("week", NOW, UTC)
        assert w.start == datetime(2025, 6, 9, tzinfo=UTC)
        assert w.start.weekday() == 0
        assert w.end == datetime(2025, 6, 15, 23, 59, 59, 999000, tzinfo=UTC)

    def test_week_on_sunday_belongs_to_previous_monday(self):
        sunday = datetime(2025, 6, 15, 12, tzinfo=timezone.utc)
        w = compute_window("week", sunday, UTC)
        assert w.start.date() == date(2025, 6, 9)

    def test_month(self):
        w = compute_window("month", NOW, UTC)
        assert w.start == datetime(2025, 6, 1, tzinfo=UTC)
        assert w.end == datetime(2025, 6, 30, 23, 59, 59, 999000, tzinfo=UTC)

    def test_month_february_leap_year(self):
        w = compute_window("month", datetime(2024, 2, 10, tzinfo=timezone.utc), UTC)
        assert w.end.date() == date(2024, 2, 29)

    def test_custom_range(self):
        w = compute_window("custom", NOW, UTC, ("2025-06-01", "2025-06-03"))
        assert w.view is ViewToken.CUSTOM
        assert w.start == datetime(2025, 6, 1, tzinfo=UTC)
        assert w.end == datetime(2025, 6, 3, 23, 59, 59, 999000, tzinfo=UTC)

    def test_custom_accepts_dates(self):
        w = compute_window("custom", NOW, UTC, (date(2025, 7, 1), date(2025, 7, 1)))
        assert w.start.date() == w.end.date() == date(2025, 7, 1)

    def test_custom_reversed_falls_back_to_week(self):
        w = compute_window("custom", NOW, UTC, ("2025-06-20", "2025-06-01"))
        assert w.start == datetime(2025, 6, 9, tzinfo=UTC)
        assert w.view is ViewToken.CUSTOM

    def test_custom_unparseable_falls_back_to_week(self):
        w = compute_window("custom", NOW, UTC, ("soon", "later"))
        assert w.start == datetime(2025, 6, 9, tzinfo=UTC)

    def test_custom_missing_range_falls_back_to_week(self):
        w = compute_window("custom", NOW, UTC)
        assert w.end == datetime(2025, 6, 15, 23, 59, 59, 999000, tzinfo=UTC)

    def test_day_boundaries_follow_timezone(self):
        # 23:30 UTC is already the next day in Berlin
        late = datetime(2025, 6, 11, 23, 30, tzinfo=timezone.utc)
        w = compute_window("today", late, BERLIN)
        assert w.start == datetime(2025, 6, 12, tzinfo=BERLIN)
        assert w.timezone is BERLIN

    def test_unknown_view(self):
        with pytest.raises(InvalidWindow):
            compute_window("fortnight", NOW, UTC)


class TestBounds:
    def test_window_from_bounds(self):
        w = window_from_bounds("2025-06-10T00:00:00Z", "2025-06-10T23:59:59Z", UTC)
        assert w.start == datetime(2025, 6, 10, tzinfo=timezone.utc)
        assert w.view is ViewToken.CUSTOM

    def test_naive_bounds_use_timezone(self):
        w = window_from_bounds("2025-06-10T00:00:00", "2025-06-11T00:00:00", BERLIN)
        assert w.start.tzinfo is BERLIN

    @pytest.mark.parametrize("time_min,time_max", [
        ("", "2025-06-10T00:00:00Z"),
        ("2025-06-10T00:00:00Z", None),
        ("yesterday", "2025-06-10T00:00:00Z"),
        ("2025-06-11T00:00:00Z", "2025-06-10T00:00:00Z"),
    ])
    def test_invalid_bounds(self, time_min, time_max):
        with pytest.raises(InvalidWindow):
            window_from_bounds(time_min, time_max, UTC)

    def test_parse_instant_keeps_offset(self):
        parsed = parse_instant("2025-06-10T08:00:00+02:00", UTC)
        assert parsed == datetime(2025, 6, 10, 6, tzinfo=timezone.utc)


class TestHelpers:
    def test_parse_view_case_insensitive(self):
        assert parse_view(" Week ") is ViewToken.WEEK

    def test_get_timezone_default(self):
        assert get_timezone(None, "Europe/Berlin") == BERLIN

    def test_get_timezone_unknown(self):
        with pytest.raises(InvalidRequest):
            get_timezone("Mars/Olympus_Mons")
