"""Create events: single, materialized series, or stored template.

``create_events`` handles every ``POST /events`` body:

    - ``isTemplate`` / ``templateModules``   store an EventTemplate only
    - ``repeatOption`` + a materialize flag   EventTemplate + one Event per
                                              generated date, one transaction
    - ``repeatOption`` alone                  rejected (ambiguous intent)
    - anything else                           one Event

Every materialized occurrence carries ``series_id`` = the id of the first
(main) occurrence, and ``meta.templateId`` pointing at the template row.
"""
import datetime as dt
import logging
from dataclasses import dataclass, field
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import (
    AmbiguousRecurrenceError,
    InvalidTemplateError,
    NotFoundError,
    TransactionFailedError,
)
from app.core.repository import EventStore
from app.models import Event, EventTemplate
from app.schemas import EventCreate
from app.series.occurrences import generate_occurrences
from app.series.scheduling import check_not_past, combine, validate_schedule

logger = logging.getLogger(__name__)


@dataclass
class CreateResult:
    events: list[Event] = field(default_factory=list)
    template: EventTemplate | None = None

    @property
    def series_id(self) -> UUID | None:
        return self.events[0].series_id if self.events else None


def _start_of(day: dt.date, time: str | None) -> dt.datetime:
    return combine(day, time or "00:00")


def _duration_minutes(request: EventCreate) -> int | None:
    """Occurrence length from durationMinutes, else from endDate - start."""
    if request.duration_minutes is not None:
        return request.duration_minutes
    if request.end_date is None:
        return None

    end = request.end_date.replace(tzinfo=None)
    minutes = int((end - _start_of(request.date, request.time)).total_seconds() // 60)
    return minutes if minutes >= 0 else None


def _end_date(day: dt.date, time: str | None, duration: int | None) -> dt.datetime | None:
    if duration is None:
        return None
    return _start_of(day, time) + dt.timedelta(minutes=duration)


def _event_fields(request: EventCreate, user_id: int) -> dict:
    return {
        "title": request.title,
        "type": request.type,
        "course_id": request.course_id,
        "color": request.color,
        "location": request.location,
        "date": request.date,
        "time": request.time,
        "description": request.description,
        "meta": request.meta,
        "user_id": user_id,
    }


def _save_template(store: EventStore, request: EventCreate, user_id: int) -> CreateResult:
    with store.transaction():
        template = store.templates.create({
            "title": request.title or None,
            "course_id": request.course_id,
            "repeat_option": request.repeat_option,
            "start_date": request.date,
            "payload": request.template_modules,
            "user_id": user_id,
        })
    logger.info(f"Saved template {template.id} ({len(template.payload or [])} modules)")
    return CreateResult(template=template)


def _materialize_series(store: EventStore, request: EventCreate, user_id: int) -> CreateResult:
    dates = generate_occurrences(
        request.date,
        request.repeat_option,
        by_days=request.by_days,
        interval_weeks=request.interval_weeks or 1,
        count=request.materialize_count,
        until=request.materialize_until,
    )
    duration = _duration_minutes(request)
    main_id = uuid4()

    with store.transaction():
        template = store.templates.create({
            "title": request.title or None,
            "course_id": request.course_id,
            "repeat_option": request.repeat_option,
            "start_date": request.date,
            "user_id": user_id,
        })

        meta = dict(request.meta or {})
        meta.update(templateId=str(template.id), repeatOption=request.repeat_option)
        if duration is not None:
            meta["durationMinutes"] = duration

        events = []
        for day in dates:
            data = _event_fields(request, user_id)
            data.update(
                date=day,
                series_id=main_id,
                meta=meta,
                end_date=_end_date(day, request.time, duration),
            )
            if not events:
                data["id"] = main_id
            events.append(store.active.create(data))

    logger.info(
        f"Materialized {len(events)} occurrences of '{request.title}' "
        f"({request.repeat_option}) as series {main_id}"
    )
    return CreateResult(events=events, template=template)


def _create_single(store: EventStore, request: EventCreate, user_id: int) -> CreateResult:
    data = _event_fields(request, user_id)
    if request.end_date is not None:
        data["end_date"] = request.end_date.replace(tzinfo=None)
    else:
        data["end_date"] = _end_date(request.date, request.time, request.duration_minutes)
    if request.duration_minutes is not None:
        data["meta"] = {**(request.meta or {}), "durationMinutes": request.duration_minutes}

    with store.transaction():
        event = store.active.create(data)
    logger.info(f"Created event {event.id} on {event.date}")
    return CreateResult(events=[event])


def create_events(
    store: EventStore,
    request: EventCreate,
    user_id: int = 1,
    now: dt.datetime | None = None,
) -> CreateResult:
    """
    Create one event, a materialized series, or a template.

    Validation runs before any write.

    Raises:
        PastDateError: ``date`` is before today.
        ScheduleOffsetError: a timed event starts too soon.
        AmbiguousRecurrenceError: ``repeatOption`` without a template or
            materialize flag.
        TransactionFailedError: storage failed; nothing was created.
    """
    now = now or dt.datetime.now()
    check_not_past(request.date, today=now.date())
    validate_schedule(request.date, request.time, now)

    try:
        if request.wants_template:
            return _save_template(store, request, user_id)
        if request.repeat_option:
            if not request.wants_materialize:
                raise AmbiguousRecurrenceError()
            return _materialize_series(store, request, user_id)
        return _create_single(store, request, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Create failed for '{request.title}': {e}")
        raise TransactionFailedError("Failed to create events") from e


def _module_date(module: dict, template: EventTemplate, today: dt.date) -> dt.date:
    value = module.get("date")
    if value:
        return dt.date.fromisoformat(str(value)[:10])
    return template.start_date or today


def materialize_template(store: EventStore, template_id: UUID, user_id: int = 1) -> CreateResult:
    """
    Create one event per module in a template's payload.

    Each module may carry title, type, courseId, date, time, description and
    durationMinutes; missing values fall back to the template's own.

    Raises:
        NotFoundError: no template with this id for this user.
        InvalidTemplateError: the payload is missing or not a list of modules.
    """
    template = store.templates.find_by_id(template_id)
    if template is None or template.user_id != user_id:
        raise NotFoundError(f"Template {template_id} not found")

    payload = template.payload
    if not isinstance(payload, list) or not all(isinstance(m, dict) for m in payload):
        raise InvalidTemplateError()

    today = dt.date.today()
    try:
        with store.transaction():
            events = []
            for module in payload:
                day = _module_date(module, template, today)
                time = module.get("time") or None
                duration = module.get("durationMinutes")
                meta = {"templateId": str(template.id)}
                if template.repeat_option:
                    meta["repeatOption"] = template.repeat_option
                if duration is not None:
                    meta["durationMinutes"] = int(duration)
                events.append(store.active.create({
                    "title": module.get("title") or template.title or "",
                    "type": module.get("type") or "assignment",
                    "course_id": module.get("courseId") or template.course_id,
                    "date": day,
                    "time": time,
                    "description": module.get("description"),
                    "meta": meta,
                    "end_date": _end_date(day, time, int(duration) if duration is not None else None),
                    "user_id": user_id,
                }))
    except SQLAlchemyError as e:
        logger.error(f"Materializing template {template_id} failed: {e}")
        raise TransactionFailedError(f"Failed to materialize template {template_id}") from e
    except ValueError as e:
        raise InvalidTemplateError(f"Template module has an invalid value: {e}") from e

    logger.info(f"Materialized template {template.id} into {len(events)} events")
    return CreateResult(events=events, template=template)
