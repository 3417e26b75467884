"""Tests for view filtering and ordering."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from flohub_calendar.filters import effective_end, filter_events, order_events
from flohub_calendar.models import CalendarEvent, ViewToken
from flohub_calendar.windows import compute_window

UTC = ZoneInfo("UTC")


def _make_event(id: str, start, end=None, title: str = "Event") -> CalendarEvent:
    return CalendarEvent(id=id, calendar_id="primary", title=title, start=start, end=end)


def _at(day: int, hour: int, minute: int = 0, month: int = 6) -> datetime:
    return datetime(2025, month, day, hour, minute, tzinfo=timezone.utc)


class TestTodayView:
    NOW = _at(10, 15)

    def _filter(self, events, view="today"):
        window = compute_window(view, self.NOW, UTC)
        return filter_events(events, view, window, self.NOW)

    def test_scenario_drops_ended_keeps_upcoming(self):
        a = _make_event("A", _at(10, 10), _at(10, 14))
        b = _make_event("B", _at(10, 16), _at(10, 17))
        assert self._filter([a, b]) == [b]

    def test_end_exactly_now_included(self):
        event = _make_event("e", _at(10, 14), self.NOW)
        assert self._filter([event]) == [event]

    def test_end_just_before_now_excluded(self):
        event = _make_event("e", _at(10, 14), self.NOW - timedelta(microseconds=1))
        assert self._filter([event]) == []

    def test_in_progress_event_kept(self):
        event = _make_event("e", _at(10, 14), _at(10, 16))
        assert self._filter([event]) == [event]

    def test_all_day_event_today_kept_until_end_of_day(self):
        event = _make_event("e", date(2025, 6, 10))
        assert self._filter([event]) == [event]

    def test_all_day_with_exclusive_end_date(self):
        # Google encodes a one-day event on the 10th as 10th..11th
        event = _make_event("e", date(2025, 6, 10), date(2025, 6, 11))
        assert self._filter([event]) == [event]

    def test_all_day_yesterday_excluded(self):
        event = _make_event("e", date(2025, 6, 9), date(2025, 6, 10))
        assert self._filter([event]) == []

    def test_no_end_future_start_kept(self):
        event = _make_event("e", _at(10, 18))
        assert self._filter([event]) == [event]

    def test_no_end_started_earlier_today_is_in_progress(self):
        event = _make_event("e", _at(10, 9))
        assert self._filter([event]) == [event]

    def test_no_end_started_yesterday_excluded(self):
        event = _make_event("e", _at(9, 9))
        assert self._filter([event]) == []

    def test_tomorrow_uses_same_rule(self):
        ended = _make_event("ended", _at(10, 8), _at(10, 9))
        tomorrow = _make_event("tomorrow", _at(11, 9), _at(11, 10))
        assert self._filter([tomorrow, ended], view="tomorrow") == [tomorrow]


class TestWideViews:
    # Wednesday
    NOW = _at(11, 15)

    def test_scenario_week_keeps_today_drops_earlier_days(self):
        window = compute_window("week", self.NOW, UTC)
        monday = _make_event("mon", _at(9, 9), _at(9, 10))
        this_morning = _make_event("morning", _at(11, 8), _at(11, 9))
        friday = _make_event("fri", _at(13, 9), _at(13, 10))
        result = filter_events([friday, monday, this_morning], ViewToken.WEEK, window, self.NOW)
        assert window.start == _at(9, 0)
        assert result == [this_morning, friday]

    def test_monday_event_kept_when_now_is_monday(self):
        monday_now = _at(9, 12)
        window = compute_window("week", monday_now, UTC)
        monday = _make_event("mon", _at(9, 9), _at(9, 10))
        assert filter_events([monday], "week", window, monday_now) == [monday]

    def test_month_and_custom_use_start_of_today(self):
        earlier = _make_event("earlier", _at(2, 9))
        today_all_day = _make_event("allday", date(2025, 6, 11))
        later = _make_event("later", _at(20, 9))
        for view in ("month", "custom"):
            window = compute_window(view, self.NOW, UTC, ("2025-06-01", "2025-06-30"))
            assert filter_events([later, earlier, today_all_day], view, window, self.NOW) == [today_all_day, later]


class TestOrdering:
    def test_sorted_by_start_then_id(self):
        b = _make_event("b", _at(10, 9))
        a = _make_event("a", _at(10, 9))
        early = _make_event("z", _at(10, 8))
        assert order_events([b, a, early], UTC) == [early, a, b]

    def test_all_day_sorts_at_midnight(self):
        timed = _make_event("t", _at(10, 0, 30))
        all_day = _make_event("d", date(2025, 6, 10))
        assert order_events([timed, all_day], UTC) == [all_day, timed]

    def test_events_without_start_dropped(self):
        broken = _make_event("x", _at(10, 9))
        broken.start = None
        assert order_events([broken], UTC) == []


class TestEffectiveEnd:
    def test_all_day_single_day(self):
        event = _make_event("e", date(2025, 6, 10))
        assert effective_end(event, UTC) == datetime(2025, 6, 10, 23, 59, 59, 999000, tzinfo=UTC)

    def test_all_day_multi_day_exclusive_end(self):
        event = _make_event("e", date(2025, 6, 10), date(2025, 6, 13))
        assert effective_end(event, UTC).date() == date(2025, 6, 12)

    def test_timed_with_end(self):
        event = _make_event("e", _at(10, 9), _at(10, 10))
        assert effective_end(event, UTC) == _at(10, 10)
