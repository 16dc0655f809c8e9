"""Resolve which events belong to the same series as a given event.

Series identity is not always stored durably. Rows created by older clients
or imported from elsewhere may have no ``series_id``, so resolution is a
cascade of strategies in decreasing order of reliability. The first strategy
that matches anything wins:

    1. direct-link      rows sharing the target's ``series_id``
    2. structured-meta  rows whose ``meta`` carries the same templateId/seriesId
    3. embedded-text    rows whose description ``[META]`` block carries the same
                        templateId/seriesId (or, failing that, repeatOption)
    4. heuristic        rows with exactly the same (title, time), date-only rows
                        matching on a null time; best effort, can be switched
                        off per call or in settings. A heuristic hit on the
                        target alone counts as no match.

Every strategy searches both the active and the archived collection and only
considers rows owned by the target's user. With ``future_only`` each strategy
is additionally limited to rows dated on or after the target.

Finding nothing is not an error: callers get an empty match with strategy
``none`` and decide how to degrade.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from app.core.config import settings
from app.core.errors import NotFoundError
from app.core.repository import EventStore, Repository
from app.models.event import EventBase
from app.series.archive import find_event
from app.series.markers import (
    META_SENTINEL,
    identity_from,
    parse_meta_block,
    repeat_option_from,
)

logger = logging.getLogger(__name__)


class MatchStrategy(str, Enum):
    DIRECT_LINK = "direct-link"
    STRUCTURED_META = "structured-meta"
    EMBEDDED_TEXT = "embedded-text"
    HEURISTIC = "heuristic"
    NONE = "none"


@dataclass
class SeriesMatch:
    """Result of a series resolution.

    Attributes:
        strategy: Which cascade level produced the match.
        target: The event the resolution started from.
        active_ids: Matching ids in the active collection.
        archived_ids: Matching archived row ids (their own ``id``).
    """
    strategy: MatchStrategy
    target: EventBase
    active_ids: set[UUID] = field(default_factory=set)
    archived_ids: set[UUID] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not (self.active_ids or self.archived_ids)

    @property
    def best_effort(self) -> bool:
        return self.strategy is MatchStrategy.HEURISTIC

    @property
    def count(self) -> int:
        return len(self.active_ids) + len(self.archived_ids)


def _base_criteria(repo: Repository, target: EventBase, future_only: bool) -> list:
    table = repo.table
    criteria = [table.c.user_id == target.user_id]
    if future_only:
        criteria.append(table.c.date >= target.date)
    return criteria


def _scan(repo: Repository, criteria: list) -> list:
    """Bounded scan used by the levels that filter rows in Python."""
    limit = settings.series_scan_limit
    rows = repo.find_many(*criteria, limit=limit)
    if len(rows) >= limit:
        logger.warning(f"Series scan on {repo.name} hit the {limit} row budget; results may be partial")
    return rows


def _match_direct_link(store: EventStore, target: EventBase, future_only: bool):
    if target.series_id is None:
        return set(), set()

    found = []
    for repo in (store.active, store.archived):
        criteria = _base_criteria(repo, target, future_only)
        criteria.append(repo.table.c.series_id == target.series_id)
        found.append({row.id for row in repo.find_many(*criteria)})
    return found[0], found[1]


def _match_structured_meta(store: EventStore, target: EventBase, future_only: bool):
    key = identity_from(target.meta)
    if key is None:
        return set(), set()

    found = []
    for repo in (store.active, store.archived):
        if not repo.supports("meta"):
            found.append(set())
            continue
        criteria = _base_criteria(repo, target, future_only)
        criteria.append(repo.table.c.meta.isnot(None))
        found.append({row.id for row in _scan(repo, criteria) if identity_from(row.meta) == key})
    return found[0], found[1]


def _match_embedded_text(store: EventStore, target: EventBase, future_only: bool):
    block = parse_meta_block(target.description)
    if block is None:
        return set(), set()

    key = identity_from(block)
    extract = identity_from
    if key is None:
        key = repeat_option_from(block)
        extract = repeat_option_from
    if key is None:
        return set(), set()

    found = []
    for repo in (store.active, store.archived):
        criteria = _base_criteria(repo, target, future_only)
        criteria.append(repo.table.c.description.contains(META_SENTINEL))
        found.append({
            row.id
            for row in _scan(repo, criteria)
            if extract(parse_meta_block(row.description)) == key
        })
    return found[0], found[1]


def _match_heuristic(store: EventStore, target: EventBase, future_only: bool):
    found = []
    for repo in (store.active, store.archived):
        criteria = _base_criteria(repo, target, future_only)
        criteria.append(repo.table.c.title == target.title)
        criteria.append(repo.table.c.time == target.time)
        found.append({row.id for row in _scan(repo, criteria)})
    return found[0], found[1]


CASCADE = (
    (MatchStrategy.DIRECT_LINK, _match_direct_link),
    (MatchStrategy.STRUCTURED_META, _match_structured_meta),
    (MatchStrategy.EMBEDDED_TEXT, _match_embedded_text),
    (MatchStrategy.HEURISTIC, _match_heuristic),
)


def resolve_series(
    store: EventStore,
    event_id: UUID,
    future_only: bool = False,
    allow_heuristic: bool | None = None,
) -> SeriesMatch:
    """
    Find every active and archived event in the same series as ``event_id``.

    Args:
        store: Event store for the current request.
        event_id: Active event id, or an archived event's original or own id.
        future_only: Only include events dated on or after the target.
        allow_heuristic: Allow the title+time fallback. Defaults to
            ``settings.enable_heuristic_matching``.

    Raises:
        NotFoundError: the target event does not exist under any key.
    """
    target = find_event(store, event_id)
    if target is None:
        raise NotFoundError(f"Event {event_id} not found")

    if allow_heuristic is None:
        allow_heuristic = settings.enable_heuristic_matching

    for strategy, match in CASCADE:
        if strategy is MatchStrategy.HEURISTIC and not allow_heuristic:
            continue
        active_ids, archived_ids = match(store, target, future_only)
        if strategy is MatchStrategy.HEURISTIC and (active_ids | archived_ids) <= {target.id}:
            # The target always matches its own title and time
            continue
        if active_ids or archived_ids:
            result = SeriesMatch(strategy, target, active_ids, archived_ids)
            log = logger.warning if result.best_effort else logger.debug
            log(f"Resolved series of {event_id} by {strategy.value}: {result.count} events")
            return result

    logger.info(f"No series found for event {event_id}")
    return SeriesMatch(MatchStrategy.NONE, target)
