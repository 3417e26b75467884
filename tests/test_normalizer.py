"""Tests for the event normalizer."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from flohub_calendar.models import CalendarSource, SourceKind
from flohub_calendar.normalizer import classify, normalize, parse_temporal

BERLIN = ZoneInfo("Europe/Berlin")


def _make_source(
    kind: SourceKind = SourceKind.PRIMARY,
    tags: tuple[str, ...] = (),
    id: str = "src",
    name: str = "My Calendar",
    connection: str = "primary",
) -> CalendarSource:
    return CalendarSource(id=id, kind=kind, connection=connection, tags=tags, name=name)


class TestGoogleShape:
    def test_timed_event(self):
        raw = {
            "id": "g1",
            "summary": "Standup",
            "start": {"dateTime": "2025-06-10T09:00:00+02:00"},
            "end": {"dateTime": "2025-06-10T09:15:00+02:00"},
            "description": "daily",
        }
        event = normalize(raw, _make_source())
        assert event.id == "g1"
        assert event.title == "Standup"
        assert event.start == datetime(2025, 6, 10, 7, 0, tzinfo=timezone.utc)
        assert event.end == datetime(2025, 6, 10, 7, 15, tzinfo=timezone.utc)
        assert event.description == "daily"
        assert event.calendar_id == "primary"
        assert event.calendar_name == "My Calendar"
        assert event.kind is SourceKind.PRIMARY
        assert not event.all_day

    def test_all_day_event(self):
        raw = {"id": "g2", "summary": "Holiday", "start": {"date": "2025-06-10"}, "end": {"date": "2025-06-11"}}
        event = normalize(raw, _make_source())
        assert event.all_day
        assert event.start == date(2025, 6, 10)
        assert event.end == date(2025, 6, 11)

    def test_datetime_with_separate_timezone(self):
        raw = {"id": "g3", "start": {"dateTime": "2025-06-10T09:00:00", "timeZone": "Europe/Berlin"}}
        event = normalize(raw, _make_source())
        assert event.start == datetime(2025, 6, 10, 9, 0, tzinfo=BERLIN)

    def test_missing_title_gets_default(self):
        event = normalize({"id": "g4", "start": {"date": "2025-06-10"}}, _make_source())
        assert event.title == "No Title"

    def test_extended_property_tags_merged(self):
        raw = {
            "id": "g5",
            "start": {"date": "2025-06-10"},
            "extendedProperties": {"private": {"tags": '["focus", "work"]', "source": "work"}},
        }
        event = normalize(raw, _make_source(tags=("work",)))
        assert event.tags == ["work", "focus"]

    def test_provider_calendar_name_wins(self):
        raw = {"id": "g6", "start": {"date": "2025-06-10"}, "calendarName": "Team"}
        assert normalize(raw, _make_source()).calendar_name == "Team"


class TestOtherShapes:
    def test_webhook_flat_fields(self):
        raw = {"title": "Review", "startTime": "2025-06-10T10:00:00Z", "endTime": "2025-06-10T11:00:00Z"}
        source = _make_source(SourceKind.WEBHOOK, ("work",), id="hook", connection="https://e.com/h")
        event = normalize(raw, source)
        assert event.title == "Review"
        assert event.calendar_id == "webhook_hook"
        assert event.source == "work"
        assert event.id.startswith("hook_")

    def test_synthetic_id_is_stable(self):
        raw = {"title": "Review", "startTime": "2025-06-10T10:00:00Z"}
        source = _make_source(SourceKind.WEBHOOK, id="hook")
        assert normalize(raw, source).id == normalize(dict(raw), source).id

    def test_naive_time_uses_given_timezone(self):
        raw = {"title": "Lunch", "startTime": "2025-06-10T12:00:00"}
        event = normalize(raw, _make_source(SourceKind.WEBHOOK), tz=BERLIN)
        assert event.start == datetime(2025, 6, 10, 12, tzinfo=BERLIN)

    def test_exchange_all_day_flag(self):
        raw = {
            "id": "AAMk=",
            "subject": "Offsite",
            "start": {"dateTime": "2025-06-10T00:00:00+00:00"},
            "end": {"dateTime": "2025-06-11T00:00:00+00:00"},
            "isAllDay": True,
            "bodyPreview": "Bring laptop",
            "categories": ["Travel"],
        }
        event = normalize(raw, _make_source(SourceKind.EXCHANGE, id="ex"))
        assert event.all_day
        assert event.start == date(2025, 6, 10)
        assert event.end == date(2025, 6, 11)
        assert event.title == "Offsite"
        assert event.description == "Bring laptop"
        assert event.tags == ["Travel"]
        assert event.calendar_id == "o365_ex"

    def test_ical_date_objects(self):
        raw = {"id": "u1", "summary": "Birthday", "start": date(2025, 6, 10), "end": date(2025, 6, 11)}
        event = normalize(raw, _make_source(SourceKind.ICAL, id="feed"))
        assert event.start == date(2025, 6, 10)
        assert event.calendar_id == "ical_feed"

    def test_mixed_shapes_coerced_to_start(self):
        raw = {"id": "m", "start": {"date": "2025-06-10"}, "end": {"dateTime": "2025-06-11T00:00:00Z"}}
        event = normalize(raw, _make_source())
        assert event.end == date(2025, 6, 11)

    def test_end_before_start_dropped(self):
        raw = {"id": "m", "startTime": "2025-06-10T10:00:00Z", "endTime": "2025-06-10T09:00:00Z"}
        assert normalize(raw, _make_source()).end is None


class TestSkipped:
    @pytest.mark.parametrize("raw", [
        {"id": "x", "summary": "No start"},
        {"id": "x", "start": {"dateTime": "", "timeZone": "UTC"}},
        {"id": "x", "startTime": "not a time"},
        {"id": "x", "start": {}},
    ])
    def test_unresolvable_start_returns_none(self, raw):
        assert normalize(raw, _make_source()) is None

    def test_non_mapping_returns_none(self):
        assert normalize(["not", "an", "event"], _make_source()) is None


class TestClassify:
    @pytest.mark.parametrize("kind,tags,expected", [
        (SourceKind.PRIMARY, ("work",), "work"),
        (SourceKind.PRIMARY, ("personal", "work"), "work"),
        (SourceKind.PRIMARY, ("personal",), "personal"),
        (SourceKind.PRIMARY, (), "personal"),
        (SourceKind.EXCHANGE, (), "personal"),
        (SourceKind.PRIMARY, ("family",), "personal"),
        (SourceKind.EXCHANGE, ("team",), "work"),
        (SourceKind.WEBHOOK, ("team",), "personal"),
    ])
    def test_classification(self, kind, tags, expected):
        assert classify(_make_source(kind, tags)) == expected


class TestParseTemporal:
    def test_date_only_string(self):
        assert parse_temporal("2025-06-10") == date(2025, 6, 10)

    def test_aware_datetime_kept(self):
        value = datetime(2025, 6, 10, 9, tzinfo=BERLIN)
        assert parse_temporal(value) is value

    def test_unknown_type(self):
        assert parse_temporal(12345) is None
