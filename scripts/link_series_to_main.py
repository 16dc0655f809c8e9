#!/usr/bin/env python3
"""
Anchor a recurring series on a chosen main event.

Every active and archived occurrence of the series gets series_id set to
the main event's id, so later series edits match them by direct link.

Usage:
    python scripts/link_series_to_main.py <main-event-id>
"""
import sys
from pathlib import Path
from uuid import UUID

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session

from app.core.database import engine
from app.core.errors import PlannerError
from app.core.repository import EventStore
from app.series.backfill import link_series_to_main


def main(main_event_id: UUID):
    with Session(engine) as session:
        try:
            count = link_series_to_main(EventStore(session), main_event_id)
        except PlannerError as e:
            print(f"Error: {e.message}")
            sys.exit(2)

    if count:
        print(f"Linked {count} events to main event {main_event_id}")
    else:
        print("Series already linked to main event; nothing to do.")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/link_series_to_main.py <main-event-id>")
        sys.exit(1)
    try:
        event_id = UUID(sys.argv[1])
    except ValueError:
        print(f"Error: not a valid event id: {sys.argv[1]}")
        sys.exit(1)
    main(event_id)
