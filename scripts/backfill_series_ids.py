#!/usr/bin/env python3
"""
One-off script to give legacy recurring events a durable series_id.

Events created by older clients only carry their series identity in the
meta column or in a [META] block inside the description. This script
groups them by identity and anchors each group on its main event.

Usage:
    python scripts/backfill_series_ids.py [--dry-run]

Options:
    --dry-run    Show what would be linked without making changes
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session

from app.core.database import create_db_and_tables, engine
from app.core.errors import PlannerError
from app.core.repository import EventStore
from app.series.backfill import backfill_series_ids


def main(dry_run: bool = False):
    """Preview the series groups, confirm, then write series_id."""
    create_db_and_tables()

    with Session(engine) as session:
        store = EventStore(session)
        preview = backfill_series_ids(store, dry_run=True)

        if not preview.groups:
            print("No unlinked recurring events found.")
            return

        print(f"Found {preview.groups} legacy series:\n")
        for identity, anchor in preview.anchors.items():
            print(f"  {identity} -> main event {anchor}")
        print()

        if dry_run:
            print("--- DRY RUN: No changes made ---")
            return

        response = input(f"Link {preview.groups} series to their main events? [y/N]: ")
        if response.lower() != "y":
            print("Aborted.")
            return

        try:
            report = backfill_series_ids(store)
        except PlannerError as e:
            print(f"Error: {e.message}")
            sys.exit(1)

        print(f"\nComplete: {report.updated_active} active and {report.updated_archived} archived events linked, "
              f"{report.cleaned_descriptions} descriptions cleaned")


if __name__ == "__main__":
    dry_run = "--dry-run" in sys.argv
    main(dry_run=dry_run)
