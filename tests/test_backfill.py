"""Tests for the legacy series-id backfill."""

from uuid import uuid4

import pytest

from conftest import future

from app.core.errors import NotFoundError
from app.core.repository import EventStore
from app.series.backfill import backfill_series_ids, legacy_identity, link_series_to_main
from app.series.resolver import MatchStrategy, resolve_series


class TestLegacyIdentity:
    def test_meta_column_wins(self, make_event):
        event = make_event(meta={"templateId": "a"}, description='[META]{"templateId": "b"}[META]')
        assert legacy_identity(event) == "a"

    def test_description_block(self, make_event):
        event = make_event(description='[META]{"seriesId": "b"}[META]')
        assert legacy_identity(event) == "b"

    def test_none(self, make_event):
        assert legacy_identity(make_event()) is None


class TestBackfillSeriesIds:
    def test_groups_are_anchored_on_earliest_active(self, store: EventStore, make_event, make_archived):
        late = make_event(meta={"templateId": "tpl-1"}, date=future(14))
        early = make_event(description='[META]{"templateId": "tpl-1"}[META]', date=future(7))
        archived = make_archived(meta={"templateId": "tpl-1"}, date=future(3), original_event_id=uuid4())

        report = backfill_series_ids(store)

        assert report.groups == 1
        assert report.updated_active == 2
        assert report.updated_archived == 1
        assert store.active.find_by_id(late.id).series_id == early.id
        assert store.archived.find_by_id(archived.id).series_id == early.id

    def test_fully_archived_group_uses_original_id(self, store: EventStore, make_archived):
        original = uuid4()
        first = make_archived(meta={"templateId": "old"}, date=future(7), original_event_id=original)
        make_archived(meta={"templateId": "old"}, date=future(14))

        report = backfill_series_ids(store)

        assert report.anchors == {"old": original}
        assert store.archived.find_by_id(first.id).series_id == original

    def test_rows_without_identity_are_untouched(self, store: EventStore, make_event):
        event = make_event(title="Solo")
        report = backfill_series_ids(store)

        assert report.groups == 0
        assert store.active.find_by_id(event.id).series_id is None

    def test_owners_are_grouped_separately(self, store: EventStore, make_event):
        mine = make_event(meta={"templateId": "shared"})
        theirs = make_event(meta={"templateId": "shared"}, user_id=2)

        report = backfill_series_ids(store)

        assert report.groups == 2
        assert store.active.find_by_id(theirs.id).series_id == theirs.id
        assert store.active.find_by_id(mine.id).series_id == mine.id

    def test_dry_run_writes_nothing(self, store: EventStore, make_event):
        event = make_event(meta={"templateId": "tpl-1"})
        report = backfill_series_ids(store, dry_run=True)

        assert report.groups == 1
        assert report.updated == 0
        assert store.active.find_by_id(event.id).series_id is None

    def test_meta_blocks_move_into_meta_column(self, store: EventStore, make_event, make_archived):
        text_only = make_event(description='Bring notes\n\n[META]{"templateId": "tpl-9", "repeatOption": "weekly"}[META]')
        archived = make_archived(description='[META]{"templateId": "tpl-9"}[META]', date=future(21))

        report = backfill_series_ids(store)

        migrated = store.active.find_by_id(text_only.id)
        assert migrated.description == "Bring notes"
        assert migrated.meta == {"templateId": "tpl-9", "repeatOption": "weekly"}
        assert store.archived.find_by_id(archived.id).description is None
        assert report.cleaned_descriptions == 2

    def test_existing_meta_wins_over_block(self, store: EventStore, make_event):
        event = make_event(
            meta={"templateId": "tpl-1", "durationMinutes": 50},
            description='[META]{"templateId": "tpl-1", "durationMinutes": 90}[META]',
        )

        backfill_series_ids(store)

        assert store.active.find_by_id(event.id).meta == {"templateId": "tpl-1", "durationMinutes": 50}

    def test_block_is_kept_without_meta_column(self, store: EventStore, make_event, monkeypatch):
        description = '[META]{"templateId": "tpl-3"}[META]'
        event = make_event(description=description)
        monkeypatch.setattr(store.active, "supports", lambda name: name != "meta")

        report = backfill_series_ids(store)

        assert report.cleaned_descriptions == 0
        kept = store.active.find_by_id(event.id)
        assert kept.description == description
        assert kept.series_id == event.id

    def test_dry_run_keeps_descriptions(self, store: EventStore, make_event):
        event = make_event(description='[META]{"templateId": "tpl-4"}[META]')
        backfill_series_ids(store, dry_run=True)
        assert store.active.find_by_id(event.id).description == '[META]{"templateId": "tpl-4"}[META]'

    def test_backfilled_series_resolves_by_direct_link(self, store: EventStore, make_event):
        first = make_event(description='[META]{"templateId": "x"}[META]', date=future(7))
        second = make_event(description='[META]{"templateId": "x"}[META]', date=future(14))

        backfill_series_ids(store)
        match = resolve_series(store, second.id)

        assert match.strategy is MatchStrategy.DIRECT_LINK
        assert match.active_ids == {first.id, second.id}


class TestLinkSeriesToMain:
    def test_relinks_series_to_chosen_main(self, store: EventStore, weekly_series):
        new_main = weekly_series["active"][1]
        count = link_series_to_main(store, new_main.id)

        assert count == 4
        for event in store.active.find_many():
            assert event.series_id == new_main.id
        assert store.archived.find_many()[0].series_id == new_main.id

    def test_links_meta_series(self, store: EventStore, make_event):
        main = make_event(meta={"templateId": "tpl"}, date=future(7))
        other = make_event(meta={"templateId": "tpl"}, date=future(14))

        assert link_series_to_main(store, main.id) == 2
        assert store.active.find_by_id(other.id).series_id == main.id

    def test_already_linked(self, store: EventStore, weekly_series):
        assert link_series_to_main(store, weekly_series["main_id"]) == 0

    def test_missing_main(self, store: EventStore):
        with pytest.raises(NotFoundError):
            link_series_to_main(store, uuid4())
