"""Event routes: create, read, update, archive and delete events."""
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.errors import NotFoundError
from app.core.repository import EventStore, get_store, get_user_id
from app.models.event import EventBase
from app.schemas import (
    CreateResponse,
    EventCreate,
    EventRead,
    EventUpdate,
    RecurrenceOption,
    ScheduleConfigRead,
    ScopedResultRead,
    SeriesRead,
    TemplateRead,
)
from app.series.archive import archive_event, find_event, unarchive_event
from app.series.materialize import create_events
from app.series.occurrences import (
    DEFAULT_MAX_COUNT,
    MAX_INTERVAL_WEEKS,
    RECURRENCE_OPTIONS,
    SAFETY_CAP,
)
from app.series.resolver import resolve_series
from app.series.scheduling import MIN_SCHEDULE_OFFSET, MIN_SCHEDULE_OFFSET_LABEL
from app.series.scoped import Scope, ScopedResult, apply_scoped

router = APIRouter(prefix="/events", tags=["events"])

# "all" and "future" are the scope names older clients send
SCOPE_PATTERN = "^(single|series|all|future)$"


def parse_scope(scope: str, future_only: bool) -> tuple[Scope, bool]:
    """Map a scope query value onto (Scope, future_only)."""
    if scope == "future":
        return Scope.SERIES, True
    if scope == "all":
        return Scope.SERIES, future_only
    return Scope(scope), future_only


def owned_event(store: EventStore, event_id: UUID, user_id: int) -> EventBase:
    """Active or archived event owned by ``user_id``, else NOT_FOUND."""
    record = find_event(store, event_id)
    if record is None or record.user_id != user_id:
        raise NotFoundError(f"Event {event_id} not found")
    return record


def to_response(result: ScopedResult) -> ScopedResultRead:
    return ScopedResultRead(
        scope=result.scope.value,
        strategy=result.strategy.value,
        affected_count=result.affected_count,
        affected_ids=result.affected_ids,
        active_ids=result.active_ids,
        archived_ids=result.archived_ids,
        degraded=result.degraded,
        preview=result.preview,
        template_updated=result.template_updated,
        event=EventRead.model_validate(result.record) if result.record is not None else None,
    )


@router.get("", response_model=list[EventRead])
async def list_events(
    start: date | None = None,
    end: date | None = None,
    include_archived: bool = Query(False, alias="includeArchived"),
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """
    List the user's events, ordered by date and time.

    Optional ``start`` / ``end`` bound the dates (inclusive). Archived events
    are only included with ``includeArchived=true``.
    """
    repos = [store.active, store.archived] if include_archived else [store.active]
    records = []
    for repo in repos:
        criteria = [repo.table.c.user_id == user_id]
        if start is not None:
            criteria.append(repo.table.c.date >= start)
        if end is not None:
            criteria.append(repo.table.c.date <= end)
        records.extend(repo.find_many(*criteria))

    records.sort(key=lambda r: (r.date, r.time or ""))
    return [EventRead.model_validate(r) for r in records]


@router.post("", response_model=CreateResponse, status_code=201)
async def create_event(
    body: EventCreate,
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """
    Create a single event, a materialized series, or a template.

    A ``repeatOption`` must come with ``materialize`` / ``materializeCount`` /
    ``materializeUntil`` or with ``isTemplate``; otherwise the request is
    rejected with MUST_SPECIFY_TEMPLATE_OR_MATERIALIZE.
    """
    result = create_events(store, body, user_id=user_id)
    return CreateResponse(
        events=[EventRead.model_validate(e) for e in result.events],
        template=TemplateRead.model_validate(result.template) if result.template else None,
        series_id=result.series_id,
    )


@router.get("/config", response_model=ScheduleConfigRead)
async def schedule_config():
    """Scheduling constants clients must apply before submitting events."""
    return ScheduleConfigRead(
        min_schedule_offset_minutes=int(MIN_SCHEDULE_OFFSET.total_seconds() // 60),
        min_schedule_offset_label=MIN_SCHEDULE_OFFSET_LABEL,
        default_max_count=DEFAULT_MAX_COUNT,
        safety_cap=SAFETY_CAP,
        max_interval_weeks=MAX_INTERVAL_WEEKS,
    )


@router.get("/recurrence-options", response_model=list[RecurrenceOption])
async def recurrence_options():
    """Supported repeat options."""
    return [RecurrenceOption(**option) for option in RECURRENCE_OPTIONS]


@router.get("/{event_id}", response_model=EventRead)
async def get_event(
    event_id: UUID,
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """Fetch an active event, or an archived one by its original or own id."""
    return EventRead.model_validate(owned_event(store, event_id, user_id))


@router.get("/{event_id}/series", response_model=SeriesRead)
async def get_series(
    event_id: UUID,
    future_only: bool = Query(False, alias="futureOnly"),
    allow_heuristic: bool | None = Query(None, alias="allowHeuristic"),
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """
    Resolve the series an event belongs to.

    ``strategy`` tells how the series was matched; ``bestEffort`` is true
    when only the title+time heuristic matched.
    """
    owned_event(store, event_id, user_id)
    match = resolve_series(store, event_id, future_only=future_only, allow_heuristic=allow_heuristic)
    return SeriesRead(
        event_id=event_id,
        strategy=match.strategy.value,
        best_effort=match.best_effort,
        active_ids=sorted(match.active_ids, key=str),
        archived_ids=sorted(match.archived_ids, key=str),
        count=match.count,
    )


@router.patch("/{event_id}", response_model=ScopedResultRead)
async def update_event(
    event_id: UUID,
    body: EventUpdate,
    scope: str = Query("single", pattern=SCOPE_PATTERN),
    future_only: bool = Query(False, alias="futureOnly"),
    preview: bool = False,
    allow_heuristic: bool | None = Query(None, alias="allowHeuristic"),
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """
    Update an event or its series, or move it in or out of the archive.

    ``archived: true`` on an active event archives it; ``archived: false``
    on an archived event restores it. Any other fields sent along are
    applied to the moved copy. Everything else is a scoped update.
    """
    owned_event(store, event_id, user_id)
    patch = body.model_dump(exclude_unset=True)
    archived = patch.pop("archived", None)
    is_active = store.active.find_by_id(event_id) is not None

    if archived is True and is_active:
        record = archive_event(store, event_id, patch)
        return to_response(ScopedResult(
            Scope.SINGLE, archived_ids=[record.id], affected_count=1, record=record,
        ))
    if archived is False and not is_active:
        record = unarchive_event(store, event_id, patch)
        return to_response(ScopedResult(
            Scope.SINGLE, active_ids=[record.id], affected_count=1, record=record,
        ))

    resolved_scope, future_only = parse_scope(scope, future_only)
    result = apply_scoped(
        store,
        event_id,
        resolved_scope,
        future_only=future_only,
        patch=patch,
        preview=preview,
        allow_heuristic=allow_heuristic,
    )
    return to_response(result)


@router.delete("/{event_id}", response_model=ScopedResultRead)
async def delete_event(
    event_id: UUID,
    scope: str = Query("single", pattern=SCOPE_PATTERN),
    future_only: bool = Query(False, alias="futureOnly"),
    preview: bool = False,
    allow_heuristic: bool | None = Query(None, alias="allowHeuristic"),
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """
    Delete an event, or every event in its series.

    With ``scope=series`` an event without any resolvable series is deleted
    on its own and the response reports ``degraded: true``.
    """
    owned_event(store, event_id, user_id)
    resolved_scope, future_only = parse_scope(scope, future_only)
    result = apply_scoped(
        store,
        event_id,
        resolved_scope,
        future_only=future_only,
        preview=preview,
        allow_heuristic=allow_heuristic,
    )
    return to_response(result)


@router.post("/{event_id}/toggle", response_model=EventRead)
async def toggle_event(
    event_id: UUID,
    store: EventStore = Depends(get_store),
    user_id: int = Depends(get_user_id),
):
    """Flip the completed flag of one event."""
    record = owned_event(store, event_id, user_id)
    result = apply_scoped(store, event_id, Scope.SINGLE, patch={"completed": not record.completed})
    return EventRead.model_validate(result.record)
