"""
Pydantic schemas for the events API.

Requests and responses use camelCase on the wire (``courseId``,
``repeatOption``, ``materializeCount``) and snake_case in Python. Both
spellings are accepted on input.
"""
import datetime as dt
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.series.scheduling import normalize_time


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============================================================================
# Requests
# ============================================================================


class EventCreate(CamelModel):
    """
    Body of ``POST /events``.

    A plain body creates one event. With ``repeatOption`` the caller must say
    what to do: materialize occurrences (``materialize``,
    ``materializeCount`` or ``materializeUntil``) or store a template
    (``isTemplate`` / ``templateModules``).
    """

    title: str = ""
    type: str = "assignment"
    course_id: str | None = None
    color: str | None = None
    location: str | None = None
    date: dt.date
    time: str | None = None
    description: str | None = None
    meta: dict | None = None

    # Recurrence
    repeat_option: str | None = None
    by_days: list[int] | None = None
    interval_weeks: int | None = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("intervalWeeks", "interval_weeks", "interval"),
    )
    materialize: bool = False
    materialize_count: int | None = Field(default=None, ge=1)
    materialize_until: dt.date | None = None
    is_template: bool = False
    template_modules: list | None = None

    # Duration of each occurrence
    duration_minutes: int | None = Field(default=None, ge=0)
    end_date: dt.datetime | None = None

    @field_validator("time")
    @classmethod
    def _normalize_time(cls, value: str | None) -> str | None:
        return normalize_time(value) if value is not None else None

    @property
    def wants_template(self) -> bool:
        return self.is_template or self.template_modules is not None

    @property
    def wants_materialize(self) -> bool:
        return bool(self.materialize or self.materialize_count or self.materialize_until)


class EventUpdate(CamelModel):
    """Body of ``PATCH /events/{id}``. Only the fields sent are applied."""

    title: str | None = None
    type: str | None = None
    course_id: str | None = None
    color: str | None = None
    location: str | None = None
    date: dt.date | None = None
    time: str | None = None
    end_date: dt.datetime | None = None
    description: str | None = None
    meta: dict | None = None
    completed: bool | None = None
    archived: bool | None = None
    repeat_option: str | None = None

    @field_validator("time")
    @classmethod
    def _normalize_time(cls, value: str | None) -> str | None:
        return normalize_time(value) if value is not None else None


# ============================================================================
# Responses
# ============================================================================


class EventRead(CamelModel):
    id: UUID
    title: str
    type: str
    course_id: str | None = None
    color: str | None = None
    location: str | None = None
    date: dt.date
    time: str | None = None
    end_date: dt.datetime | None = None
    description: str | None = None
    meta: dict | None = None
    series_id: UUID | None = None
    completed: bool = False
    archived: bool = False
    original_event_id: UUID | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class TemplateRead(CamelModel):
    id: UUID
    title: str | None = None
    course_id: str | None = None
    repeat_option: str | None = None
    start_date: dt.date | None = None
    payload: list | None = None
    created_at: dt.datetime | None = None


class CreateResponse(CamelModel):
    """Result of ``POST /events`` and template materialization."""

    events: list[EventRead] = Field(default_factory=list)
    template: TemplateRead | None = None
    series_id: UUID | None = None


class SeriesRead(CamelModel):
    event_id: UUID
    strategy: str
    best_effort: bool
    active_ids: list[UUID]
    archived_ids: list[UUID]
    count: int


class ScopedResultRead(CamelModel):
    """Result of a PATCH or DELETE on ``/events/{id}``."""

    scope: str
    strategy: str
    affected_count: int
    affected_ids: list[UUID]
    active_ids: list[UUID]
    archived_ids: list[UUID]
    degraded: bool = False
    preview: bool = False
    template_updated: bool = False
    event: EventRead | None = None


class ScheduleConfigRead(CamelModel):
    min_schedule_offset_minutes: int
    min_schedule_offset_label: str
    default_max_count: int
    safety_cap: int
    max_interval_weeks: int


class RecurrenceOption(CamelModel):
    value: str
    label: str
