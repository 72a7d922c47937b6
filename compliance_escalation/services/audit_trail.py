"""Escalation audit trail.

Append-only log of every escalation state change. Entries are never
mutated or removed; corrections are new entries carrying the previous
level/assignee. ``query`` returns entries ordered by timestamp with ties
broken by append order, since several system entries can share a
timestamp (a level increase immediately followed by its notification).
"""

import asyncio
import itertools
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime

from compliance_escalation.core.escalation.models import AuditEntry
from compliance_escalation.logging_config import get_logger

logger = get_logger(__name__)


class AuditTrail:
    """In-memory audit log keyed by deadline event id."""

    def __init__(self) -> None:
        self._entries: dict[str, list[tuple[int, AuditEntry]]] = defaultdict(list)
        self._ids: set[str] = set()
        self._sequence = itertools.count()
        self._lock = asyncio.Lock()

    async def append(self, entry: AuditEntry) -> None:
        """Append one entry.

        Raises:
            ValueError: If an entry with the same id was already appended.
        """
        await self.append_many([entry])

    async def append_many(self, entries: Sequence[AuditEntry]) -> None:
        """Append ``entries`` in order, all or none.

        Raises:
            ValueError: If any id is already recorded or repeated in the batch.
        """
        async with self._lock:
            ids = [entry.id for entry in entries]
            duplicates = sorted(
                {i for i in ids if i in self._ids or ids.count(i) > 1}
            )
            if duplicates:
                msg = f"Audit entries already recorded: {', '.join(duplicates)}"
                raise ValueError(msg)
            for entry in entries:
                self._ids.add(entry.id)
                self._entries[entry.event_id].append((next(self._sequence), entry))

        for entry in entries:
            logger.debug(
                "Audit entry appended",
                audit_id=entry.id,
                action=entry.action.value,
                performed_by=entry.performed_by_name,
            )

    async def latest_timestamp(self, event_id: str) -> datetime | None:
        """Timestamp of the newest entry for ``event_id``, if any."""
        rows = self._entries.get(event_id)
        if not rows:
            return None
        return max(entry.timestamp for _, entry in rows)

    async def query(self, event_id: str) -> list[AuditEntry]:
        """All entries for ``event_id`` in (timestamp, append order)."""
        rows = sorted(
            self._entries.get(event_id, []),
            key=lambda row: (row[1].timestamp, row[0]),
        )
        return [entry for _, entry in rows]

    async def recent(self, limit: int = 50) -> list[AuditEntry]:
        """Newest entries across all events, newest first."""
        rows = [row for rows in self._entries.values() for row in rows]
        rows.sort(key=lambda row: (row[1].timestamp, row[0]), reverse=True)
        return [entry for _, entry in rows[:limit]]

    def __len__(self) -> int:
        return len(self._ids)
