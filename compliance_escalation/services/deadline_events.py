"""Deadline events received from the calendar generator."""

from compliance_escalation.core.escalation.enums import EventStatus
from compliance_escalation.core.escalation.errors import NotFoundError
from compliance_escalation.core.escalation.models import DeadlineEvent
from compliance_escalation.logging_config import get_logger

logger = get_logger(__name__)


class DeadlineEventStore:
    """In-memory registry of deadline events keyed by id."""

    def __init__(self) -> None:
        self._events: dict[str, DeadlineEvent] = {}

    async def upsert(self, event: DeadlineEvent) -> DeadlineEvent:
        created = event.id not in self._events
        self._events[event.id] = event
        logger.info(
            "Stored deadline event",
            event_id=event.id,
            created=created,
            status=event.status.value,
            due_date=event.due_date.isoformat(),
        )
        return event

    async def get(self, event_id: str) -> DeadlineEvent:
        """Raises NotFoundError for an unknown id."""
        event = self._events.get(event_id)
        if event is None:
            raise NotFoundError("Deadline event", event_id)
        return event

    async def open_events(self) -> list[DeadlineEvent]:
        """Events not yet completed, ordered by due date."""
        events = [e for e in self._events.values() if e.status != EventStatus.completed]
        return sorted(events, key=lambda e: (e.due_date, e.id))

    def as_mapping(self) -> dict[str, DeadlineEvent]:
        return dict(self._events)

    async def list(self) -> list[DeadlineEvent]:
        return list(self._events.values())
