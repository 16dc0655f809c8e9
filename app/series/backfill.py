"""One-time migration of legacy series identity into ``series_id``.

Rows created before ``series_id`` existed only carry their series identity in
``meta`` or in a ``[META]`` description block. ``backfill_series_ids`` groups
such rows by owner and identity and anchors every group on its main event:
the earliest active occurrence, or for fully archived groups the id the
earliest archived occurrence had while active.

Once a row has its ``series_id``, any ``[META]`` block in its description is
folded into the ``meta`` column and removed from the text. Tables without a
``meta`` column keep the block.

``link_series_to_main`` re-anchors an already resolved series on a chosen
main event.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import NotFoundError, TransactionFailedError
from app.core.repository import EventStore, Repository
from app.models.event import EventBase
from app.series.markers import identity_from, parse_meta_block, strip_meta_block
from app.series.resolver import resolve_series

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    groups: int = 0
    updated_active: int = 0
    updated_archived: int = 0
    cleaned_descriptions: int = 0
    anchors: dict[str, UUID] = field(default_factory=dict)

    @property
    def updated(self) -> int:
        return self.updated_active + self.updated_archived


def legacy_identity(record: EventBase) -> str | None:
    """Series identity from the meta column, else from a ``[META]`` block."""
    return identity_from(record.meta) or identity_from(parse_meta_block(record.description))


def _unlinked(repo: Repository) -> list[EventBase]:
    return repo.find_many(repo.table.c.series_id.is_(None), order_by=repo.table.c.date)


def _fold_meta_blocks(repo: Repository, records: list[EventBase]) -> int:
    """Move ``[META]`` description blocks into the meta column."""
    if not repo.supports("meta"):
        return 0
    folded = 0
    for record in records:
        block = parse_meta_block(record.description)
        if block is None:
            continue
        repo.update(record.id, {
            "meta": {**block, **(record.meta or {})},
            "description": strip_meta_block(record.description),
        })
        folded += 1
    return folded


def _anchor(active: list[EventBase], archived: list[EventBase]) -> UUID:
    if active:
        return min(active, key=lambda r: r.date).id
    first = min(archived, key=lambda r: r.date)
    return first.original_event_id or first.id


def backfill_series_ids(store: EventStore, dry_run: bool = False) -> BackfillReport:
    """
    Populate ``series_id`` on rows whose identity only lives in meta/[META].

    Rows without any legacy identity are left alone. With ``dry_run`` the
    report is computed but nothing is written.
    """
    grouped = defaultdict(lambda: ([], []))
    for index, repo in enumerate((store.active, store.archived)):
        for record in _unlinked(repo):
            key = legacy_identity(record)
            if key is not None:
                grouped[(record.user_id, key)][index].append(record)

    report = BackfillReport(groups=len(grouped))
    if not grouped:
        logger.info("Series backfill: nothing to do")
        return report

    try:
        with store.transaction():
            for (user_id, key), (active, archived) in grouped.items():
                anchor = _anchor(active, archived)
                report.anchors[key] = anchor
                logger.info(
                    f"Series backfill: user {user_id} identity {key} -> {anchor} "
                    f"({len(active)} active, {len(archived)} archived)"
                )
                if dry_run:
                    continue
                report.updated_active += store.active.update_many(
                    [r.id for r in active], {"series_id": anchor}
                )
                report.updated_archived += store.archived.update_many(
                    [r.id for r in archived], {"series_id": anchor}
                )
                report.cleaned_descriptions += _fold_meta_blocks(store.active, active)
                report.cleaned_descriptions += _fold_meta_blocks(store.archived, archived)
    except SQLAlchemyError as e:
        logger.error(f"Series backfill failed: {e}")
        raise TransactionFailedError("Series backfill failed; nothing was changed") from e

    logger.info(
        f"Series backfill {'(dry run) ' if dry_run else ''}complete: {report.groups} groups, "
        f"{report.updated_active} active and {report.updated_archived} archived rows updated, "
        f"{report.cleaned_descriptions} descriptions cleaned"
    )
    return report


def link_series_to_main(store: EventStore, main_event_id: UUID) -> int:
    """
    Point every member of a series at ``main_event_id``.

    The series is resolved from the main event without the title+time
    heuristic. Returns the number of rows updated.

    Raises:
        NotFoundError: no active event has this id.
    """
    main = store.active.find_by_id(main_event_id)
    if main is None:
        raise NotFoundError(f"Main event {main_event_id} not found")

    if main.series_id == main.id:
        logger.info(f"Series of {main_event_id} is already anchored on it")
        return 0

    match = resolve_series(store, main_event_id, allow_heuristic=False)
    active_ids = match.active_ids | {main.id}

    try:
        with store.transaction():
            count = store.active.update_many(active_ids, {"series_id": main.id})
            count += store.archived.update_many(match.archived_ids, {"series_id": main.id})
    except SQLAlchemyError as e:
        logger.error(f"Linking series to {main_event_id} failed: {e}")
        raise TransactionFailedError(f"Failed to link series to {main_event_id}") from e

    logger.info(f"Linked {count} events ({match.strategy.value}) to main event {main_event_id}")
    return count
