"""Scoped update and delete: one occurrence, or its whole series.

``apply_scoped`` is the single entry point used by the API for PATCH and
DELETE. A ``None`` patch means delete.

For ``Scope.SERIES`` the affected ids are resolved once, before anything is
written, and every write for both collections happens in one transaction.
If resolution finds no series at all, the call falls back to the single
target event and the result is flagged ``degraded``.
"""
import datetime as dt
import logging
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import NotFoundError, TransactionFailedError
from app.core.repository import EventStore, Repository
from app.models.event import EventBase, clean_patch
from app.series.archive import find_archived
from app.series.markers import identity_from
from app.series.resolver import MatchStrategy, SeriesMatch, resolve_series
from app.series.scheduling import check_not_past, validate_schedule

logger = logging.getLogger(__name__)

# Template columns kept in step with a series-wide update
TEMPLATE_SYNC_FIELDS = {"title": "title", "course_id": "course_id", "repeat_option": "repeat_option"}


class Scope(str, Enum):
    SINGLE = "single"
    SERIES = "series"


@dataclass
class ScopedResult:
    """Outcome of a scoped mutation.

    Attributes:
        scope: The scope actually applied (``single`` after a degrade).
        strategy: How the series was matched, ``none`` for single scope.
        active_ids: Active event ids the operation touched (or would touch).
        archived_ids: Archived row ids the operation touched (or would touch).
        affected_count: Rows actually changed; the candidate count in preview.
        degraded: A series operation found no series and fell back to single.
        preview: Nothing was written.
        template_updated: The linked EventTemplate row was updated too.
        record: The updated record for single-scope updates.
    """
    scope: Scope
    strategy: MatchStrategy = MatchStrategy.NONE
    active_ids: list[UUID] = field(default_factory=list)
    archived_ids: list[UUID] = field(default_factory=list)
    affected_count: int = 0
    degraded: bool = False
    preview: bool = False
    template_updated: bool = False
    record: EventBase | None = None

    @property
    def affected_ids(self) -> list[UUID]:
        return self.active_ids + self.archived_ids


def _locate(store: EventStore, target_id: UUID) -> tuple[Repository, EventBase]:
    record = store.active.find_by_id(target_id)
    if record is not None:
        return store.active, record
    record = find_archived(store, target_id)
    if record is not None:
        return store.archived, record
    raise NotFoundError(f"Event {target_id} not found")


def _validate_single(record: EventBase, data: dict, now: dt.datetime | None) -> None:
    """Re-run the scheduling rules when a patch moves the event in time."""
    new_date = data.get("date", record.date)
    new_time = data.get("time", record.time)

    if "date" in data and new_date != record.date:
        check_not_past(new_date, today=now.date() if now else None)
    if ("date" in data or "time" in data) and new_time:
        validate_schedule(new_date, new_time, now)


def _apply_single(
    store: EventStore,
    target_id: UUID,
    patch: dict | None,
    preview: bool,
    now: dt.datetime | None,
) -> ScopedResult:
    repo, record = _locate(store, target_id)
    result = ScopedResult(Scope.SINGLE, preview=preview, record=record)
    ids = result.archived_ids if repo is store.archived else result.active_ids
    ids.append(record.id)

    data = clean_patch(patch)
    if patch is not None:
        _validate_single(record, data, now)

    if preview:
        result.affected_count = 1
        return result

    try:
        with store.transaction():
            if patch is None:
                result.affected_count = 1 if repo.delete(record.id) else 0
                result.record = None
            elif data:
                result.record = repo.update(record.id, data)
                result.affected_count = 1 if result.record is not None else 0
    except SQLAlchemyError as e:
        logger.error(f"Single-scope {'delete' if patch is None else 'update'} failed for {target_id}: {e}")
        raise TransactionFailedError(f"Failed to apply change to event {target_id}") from e

    return result


def _sync_template(store: EventStore, target: EventBase, data: dict) -> bool:
    """Update the EventTemplate a series was materialized from, if any."""
    template_id = identity_from(target.meta)
    changes = {column: data[key] for key, column in TEMPLATE_SYNC_FIELDS.items() if key in data}
    if template_id is None or not changes:
        return False

    try:
        template_uuid = UUID(str(template_id))
    except ValueError:
        return False

    template = store.templates.find_by_id(template_uuid)
    if template is None or template.user_id != target.user_id:
        return False
    return store.templates.update(template.id, changes) is not None


def _apply_series(
    store: EventStore,
    match: SeriesMatch,
    patch: dict | None,
    preview: bool,
    now: dt.datetime | None,
) -> ScopedResult:
    target = match.target
    result = ScopedResult(
        Scope.SERIES,
        strategy=match.strategy,
        active_ids=sorted(match.active_ids, key=str),
        archived_ids=sorted(match.archived_ids, key=str),
        preview=preview,
    )

    data = {}
    if patch is not None:
        data = clean_patch(patch)
        if data.pop("date", None) is not None:
            logger.info(f"Ignoring date in series update of {target.id}; occurrences keep their own dates")
        if data.get("time"):
            validate_schedule(target.date, data["time"], now)
        # repeat_option is not an event column but is kept on the template
        if "repeat_option" in patch:
            data["repeat_option"] = patch["repeat_option"]

    if preview:
        result.affected_count = match.count
        return result

    event_data = {k: v for k, v in data.items() if k != "repeat_option"}
    try:
        with store.transaction():
            if patch is None:
                active_count = store.active.delete_many(result.active_ids)
                archived_count = store.archived.delete_many(result.archived_ids)
            else:
                active_count = store.active.update_many(result.active_ids, event_data)
                archived_count = store.archived.update_many(result.archived_ids, event_data)
                result.template_updated = _sync_template(store, target, data)
    except SQLAlchemyError as e:
        logger.error(f"Series {'delete' if patch is None else 'update'} failed for {target.id}: {e}")
        raise TransactionFailedError(f"Failed to apply change to the series of event {target.id}") from e

    result.affected_count = active_count + archived_count
    logger.info(
        f"Series {'delete' if patch is None else 'update'} from {target.id} via {match.strategy.value}: "
        f"{active_count} active, {archived_count} archived"
    )
    return result


def apply_scoped(
    store: EventStore,
    target_id: UUID,
    scope: Scope | str = Scope.SINGLE,
    future_only: bool = False,
    patch: dict | None = None,
    preview: bool = False,
    allow_heuristic: bool | None = None,
    now: dt.datetime | None = None,
) -> ScopedResult:
    """
    Update or delete one event or every event in its series.

    Args:
        store: Event store for the current request.
        target_id: Active event id, or an archived event's original or own id.
        scope: ``single`` or ``series``.
        future_only: With series scope, only occurrences dated on or after
            the target.
        patch: Field changes; ``None`` deletes instead.
        preview: Return the candidate ids without writing anything.
        allow_heuristic: Passed through to the series resolver.
        now: Clock override for the scheduling rules.

    Raises:
        NotFoundError: the target does not exist.
        PastDateError, ScheduleOffsetError: the patch fails scheduling rules.
        TransactionFailedError: a write failed; nothing was changed.
        SchemaMismatchError: storage rejected the patch fields even after retry.
    """
    scope = Scope(scope)
    if scope is Scope.SINGLE:
        return _apply_single(store, target_id, patch, preview, now)

    match = resolve_series(store, target_id, future_only=future_only, allow_heuristic=allow_heuristic)
    if not match.is_empty:
        return _apply_series(store, match, patch, preview, now)

    logger.info(f"No series found for {target_id}; applying to the single event")
    result = _apply_single(store, target_id, patch, preview, now)
    result.degraded = True
    return result
