"""Move events between the active and archived collections.

Two transitions only:

    Active --archive--> Archived      copy into archived_events with
                                      original_event_id = active id, then
                                      delete the active row
    Archived --unarchive--> Active    copy back as a new active row (new id),
                                      then delete the archived row

Both transitions run in one transaction and keep ``series_id`` untouched, so
series resolution keeps working after a round trip.

Archived rows written before ``original_event_id`` was always populated may
only be reachable by their own id. ``find_archived`` hides that: it tries
``original_event_id`` first and falls back to ``id``. No other module should
look archived rows up by key directly.
"""
import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import NotFoundError, TransactionFailedError
from app.core.repository import EventStore
from app.models import ArchivedEvent, Event
from app.models.event import SHARED_FIELDS, EventBase, clean_patch

logger = logging.getLogger(__name__)

ARCHIVE_KEYS = ("original_event_id", "id")


def find_archived(store: EventStore, key: UUID) -> ArchivedEvent | None:
    """Look up an archived row by original_event_id, then by its own id."""
    table = store.archived.table
    record = store.archived.find_one(table.c.original_event_id == key)
    if record is None:
        record = store.archived.find_by_id(key)
    return record


def find_event(store: EventStore, key: UUID) -> EventBase | None:
    """Active event with this id, else the archived row reachable by it."""
    return store.active.find_by_id(key) or find_archived(store, key)


def _copy(source: EventBase, patch: dict) -> dict:
    data = {name: getattr(source, name) for name in SHARED_FIELDS}
    data.update(clean_patch(patch))
    return data


def archive_event(store: EventStore, event_id: UUID, patch: dict | None = None) -> ArchivedEvent:
    """
    Move an active event into the archive.

    Any patch fields sent along with the archive request are applied to the
    archived copy.

    Raises:
        NotFoundError: no active event has this id.
        TransactionFailedError: the copy or the delete failed; nothing changed.
    """
    try:
        with store.transaction():
            active = store.active.find_by_id(event_id)
            if active is None:
                raise NotFoundError(f"Event {event_id} not found")

            data = _copy(active, patch or {})
            data.update(original_event_id=active.id, archived=True, created_at=active.created_at)
            archived = store.archived.create(data)

            if not store.active.delete(active.id):
                raise TransactionFailedError(
                    "Archived copy created but the active event could not be removed",
                    event_id=str(event_id),
                )
    except SQLAlchemyError as e:
        logger.error(f"Archive failed for event {event_id}: {e}")
        raise TransactionFailedError(f"Failed to archive event {event_id}") from e

    logger.info(f"Archived event {event_id} as {archived.id} (series {archived.series_id})")
    return archived


def unarchive_event(store: EventStore, event_id: UUID, patch: dict | None = None) -> Event:
    """
    Restore an archived event to the active collection.

    If an active row with ``event_id`` already exists, the request only
    clears the archived flag and applies the patch; no move happens.
    Otherwise the archived row is copied into a new active row, which gets a
    fresh id, and the archived row is deleted.

    Raises:
        NotFoundError: neither an active row nor an archived row (under
            either key) matches ``event_id``.
        TransactionFailedError: the move could not be applied atomically.
    """
    try:
        with store.transaction():
            active = store.active.find_by_id(event_id)
            if active is not None:
                data = clean_patch(patch)
                data["archived"] = False
                return store.active.update(active.id, data)

            archived = find_archived(store, event_id)
            if archived is None:
                logger.warning(
                    f"Unarchive failed for {event_id}: no archived record "
                    f"(attempted keys: {', '.join(ARCHIVE_KEYS)})"
                )
                raise NotFoundError("Archived event not found", attempted=list(ARCHIVE_KEYS))

            data = _copy(archived, patch or {})
            data["archived"] = False
            restored = store.active.create(data)

            if not store.archived.delete(archived.id):
                raise TransactionFailedError(
                    "Event restored but the archived copy could not be removed",
                    event_id=str(event_id),
                )
    except SQLAlchemyError as e:
        logger.error(f"Unarchive failed for event {event_id}: {e}")
        raise TransactionFailedError(f"Failed to unarchive event {event_id}") from e

    logger.info(f"Restored archived event {archived.id} as {restored.id} (series {restored.series_id})")
    return restored
