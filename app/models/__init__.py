from app.models.event import ArchivedEvent, Event
from app.models.template import EventTemplate

__all__ = ["Event", "ArchivedEvent", "EventTemplate"]
