"""Event models for active and archived calendar events.

This module defines the two collections an event can live in. Active events
are what the calendar shows; archived events are moved into a separate table
rather than flagged in place, so an event's lifecycle is a move between
``Event`` and ``ArchivedEvent`` rather than an update of one row.

Both tables share every field through ``EventBase``, so a move between them
is a plain field copy plus the identity bookkeeping done by the archive
state machine.
"""

import datetime as dt
from uuid import UUID, uuid4

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class EventBase(SQLModel):
    """Fields shared by active and archived events.

    Attributes:
        title: Event title.
        type: Category tag such as "assignment", "class" or "exam".
        course_id: Optional reference to a course owned by the course module.
        color: Display color chosen by the user or inherited from the course.
        location: Room or place, free text.
        date: Calendar date of the occurrence.
        time: Start time as "HH:MM". None means an all-day (date-only) event.
        end_date: When the occurrence ends. Some deployments lack this column.
        description: Free text. Legacy rows may embed a ``[META]{...}[META]``
            block carrying series identity.
        meta: Structured JSON blob. Some deployments lack this column.
        series_id: Id of the main event of the series this event belongs to.
            The main event carries its own id here.
        completed: Whether the user ticked the event off.
        archived: Always False for active rows, True for archived rows.
        user_id: Owner of this event.
    """
    title: str = ""
    type: str = Field(default="assignment")
    course_id: str | None = Field(default=None, index=True)
    color: str | None = None
    location: str | None = None
    date: dt.date = Field(index=True)
    time: str | None = None
    end_date: dt.datetime | None = None
    description: str | None = None
    meta: dict | None = Field(default=None, sa_type=JSON)
    series_id: UUID | None = Field(default=None, index=True)
    completed: bool = Field(default=False)
    archived: bool = Field(default=False)
    user_id: int = Field(default=1, index=True)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class Event(EventBase, table=True):
    """An active calendar event (one occurrence of a series or a one-off)."""
    __tablename__ = "events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)


class ArchivedEvent(EventBase, table=True):
    """An event moved out of the active calendar.

    Attributes:
        id: Identifier of the archived row itself.
        original_event_id: The id the event had while active. Always set by
            the archive state machine; historical rows may lack it, which is
            why lookups try this key first and then ``id``.
    """
    __tablename__ = "archived_events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    original_event_id: UUID | None = Field(default=None, index=True, unique=True)


# Fields copied verbatim when an event moves between the two collections.
SHARED_FIELDS = tuple(
    name for name in EventBase.model_fields if name not in ("created_at", "updated_at", "archived")
)

# Fields a caller may change; identity and ownership are never patched.
PATCHABLE_FIELDS = (
    "title",
    "type",
    "course_id",
    "color",
    "location",
    "date",
    "time",
    "end_date",
    "description",
    "meta",
    "completed",
)


def clean_patch(patch: dict | None) -> dict:
    """Keep only patchable fields from a caller-supplied change set."""
    return {k: v for k, v in (patch or {}).items() if k in PATCHABLE_FIELDS}
