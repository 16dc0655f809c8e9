"""Event template model for stored recurrence definitions.

A template records how a repeating schedule was defined (title, course,
repeat option, first date). Materialized occurrences point back at it through
``meta.templateId``. Newer series are anchored on the main event's id
(``Event.series_id``); the template id is kept as a legacy anchor and for
the timetable feature, which stores a list of modules in ``payload``.
"""

import datetime as dt
from uuid import UUID, uuid4

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel

from app.models.event import utcnow


class EventTemplate(SQLModel, table=True):
    """A stored recurrence definition.

    Attributes:
        id: Unique identifier (UUID).
        title: Title copied onto materialized occurrences.
        course_id: Course the schedule belongs to.
        repeat_option: Recurrence tag ("weekly", "every-2-3-4", ...).
        start_date: First occurrence date.
        payload: Optional list of module dicts used by timetable templates.
        user_id: Owner of this template.
    """
    __tablename__ = "event_templates"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str | None = None
    course_id: str | None = None
    repeat_option: str | None = None
    start_date: dt.date | None = None
    payload: list | None = Field(default=None, sa_type=JSON)
    user_id: int = Field(default=1, index=True)
    created_at: dt.datetime = Field(default_factory=utcnow)
