"""Tests for event creation and template materialization."""

from datetime import datetime, timedelta
from uuid import UUID, uuid4

import pytest

from conftest import future

from app.core.errors import (
    AmbiguousRecurrenceError,
    InvalidTemplateError,
    NotFoundError,
    PastDateError,
    ScheduleOffsetError,
)
from app.core.repository import EventStore
from app.schemas import EventCreate
from app.series.materialize import create_events, materialize_template
from app.series.resolver import MatchStrategy, resolve_series


def request(**fields) -> EventCreate:
    data = {"title": "Physics", "date": future(7), "time": "09:00"}
    data.update(fields)
    return EventCreate(**data)


class TestCreateSingle:
    def test_plain_event(self, store: EventStore):
        result = create_events(store, request())

        assert len(result.events) == 1
        assert result.template is None
        assert result.events[0].series_id is None
        assert store.active.find_by_id(result.events[0].id).title == "Physics"

    def test_end_date_from_duration(self, store: EventStore):
        result = create_events(store, request(duration_minutes=90))
        event = result.events[0]

        assert event.end_date == datetime.combine(event.date, datetime.min.time()) + timedelta(hours=10, minutes=30)
        assert event.meta == {"durationMinutes": 90}

    def test_past_date_is_rejected(self, store: EventStore):
        with pytest.raises(PastDateError):
            create_events(store, request(date=future(-1)))
        assert store.active.find_many() == []

    def test_too_soon_is_rejected(self, store: EventStore):
        now = datetime.combine(future(7), datetime.min.time()) + timedelta(hours=8, minutes=57)
        with pytest.raises(ScheduleOffsetError):
            create_events(store, request(), now=now)

    def test_date_only_event_today_is_accepted(self, store: EventStore):
        now = datetime.combine(future(0), datetime.min.time()) + timedelta(hours=23)
        result = create_events(store, request(date=future(0), time=None), now=now)
        assert result.events[0].time is None


class TestCreateRepeating:
    def test_repeat_without_intent_is_rejected(self, store: EventStore):
        with pytest.raises(AmbiguousRecurrenceError) as exc_info:
            create_events(store, request(repeat_option="weekly"))

        assert exc_info.value.code == "MUST_SPECIFY_TEMPLATE_OR_MATERIALIZE"
        assert store.active.find_many() == []
        assert store.templates.find_many() == []

    def test_materialize_count(self, store: EventStore):
        result = create_events(store, request(repeat_option="weekly", materialize_count=4))

        dates = [e.date for e in result.events]
        assert dates == [future(7) + timedelta(weeks=i) for i in range(4)]
        assert result.template.repeat_option == "weekly"

    def test_series_id_is_the_main_event_id(self, store: EventStore):
        result = create_events(store, request(repeat_option="weekly", materialize_count=3))
        main = result.events[0]

        assert main.series_id == main.id
        assert all(e.series_id == main.id for e in result.events)
        assert result.series_id == main.id

    def test_occurrences_carry_template_meta(self, store: EventStore):
        result = create_events(
            store,
            request(repeat_option="every-2-3-4", materialize_count=2, duration_minutes=50),
        )

        for event in result.events:
            assert event.meta["templateId"] == str(result.template.id)
            assert event.meta["repeatOption"] == "every-2-3-4"
            assert event.meta["durationMinutes"] == 50
            assert event.end_date - datetime.combine(event.date, datetime.min.time()) == timedelta(hours=9, minutes=50)
        assert result.events[1].date - result.events[0].date == timedelta(days=14)

    def test_duration_from_end_date(self, store: EventStore):
        end = datetime.combine(future(7), datetime.min.time()) + timedelta(hours=11)
        result = create_events(store, request(repeat_option="weekly", materialize_count=2, end_date=end))

        assert result.events[0].meta["durationMinutes"] == 120
        assert result.events[1].end_date == end + timedelta(weeks=1)

    def test_materialize_until(self, store: EventStore):
        result = create_events(
            store,
            request(repeat_option="weekly", materialize_until=future(7) + timedelta(days=20)),
        )
        assert len(result.events) == 3

    def test_by_days_and_interval(self, store: EventStore):
        start = future(7)
        weekday = (start.weekday() + 1) % 7
        result = create_events(
            store,
            request(repeat_option="weekly", by_days=[weekday], interval_weeks=2, materialize_count=3),
        )
        assert [e.date for e in result.events] == [start + timedelta(weeks=2 * i) for i in range(3)]

    def test_materialized_series_resolves_by_direct_link(self, store: EventStore):
        result = create_events(store, request(repeat_option="weekly", materialize_count=3))
        match = resolve_series(store, result.events[2].id)

        assert match.strategy is MatchStrategy.DIRECT_LINK
        assert match.active_ids == {e.id for e in result.events}

    def test_template_only(self, store: EventStore):
        modules = [{"title": "Physics", "time": "09:00"}, {"title": "Maths", "time": "11:00"}]
        result = create_events(store, request(repeat_option="weekly", template_modules=modules))

        assert result.events == []
        assert result.template.payload == modules
        assert store.active.find_many() == []

    def test_is_template_flag(self, store: EventStore):
        result = create_events(store, request(is_template=True))
        assert result.template is not None
        assert result.template.payload is None


class TestMaterializeTemplate:
    def _template(self, store: EventStore, **fields):
        data = {"title": "Timetable", "start_date": future(10), "repeat_option": "weekly"}
        data.update(fields)
        with store.transaction():
            return store.templates.create(data)

    def test_creates_one_event_per_module(self, store: EventStore):
        template = self._template(store, payload=[
            {"title": "Physics", "date": future(12).isoformat(), "time": "09:00", "durationMinutes": 60},
            {"courseId": "MATH101", "time": "11:00"},
        ])

        result = materialize_template(store, template.id)

        physics, second = result.events
        assert physics.title == "Physics"
        assert physics.date == future(12)
        assert physics.meta == {"templateId": str(template.id), "repeatOption": "weekly", "durationMinutes": 60}
        assert physics.end_date is not None
        assert second.title == "Timetable"
        assert second.course_id == "MATH101"
        assert second.date == future(10)
        assert UUID(second.meta["templateId"]) == template.id

    def test_missing_payload_is_invalid(self, store: EventStore):
        template = self._template(store)
        with pytest.raises(InvalidTemplateError) as exc_info:
            materialize_template(store, template.id)
        assert exc_info.value.code == "INVALID_TEMPLATE"

    def test_non_list_payload_is_invalid(self, store: EventStore):
        template = self._template(store, payload=["not a module"])
        with pytest.raises(InvalidTemplateError):
            materialize_template(store, template.id)

    def test_empty_payload_creates_nothing(self, store: EventStore):
        template = self._template(store, payload=[])
        assert materialize_template(store, template.id).events == []

    def test_unknown_template(self, store: EventStore):
        with pytest.raises(NotFoundError):
            materialize_template(store, uuid4())

    def test_other_users_template(self, store: EventStore):
        template = self._template(store, payload=[], user_id=2)
        with pytest.raises(NotFoundError):
            materialize_template(store, template.id, user_id=1)
