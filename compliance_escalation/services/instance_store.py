"""Escalation instance storage with a single writer per event id."""

import asyncio
import weakref
from dataclasses import dataclass

from compliance_escalation.core.escalation.errors import NotFoundError
from compliance_escalation.core.escalation.models import (
    EscalationChainDefinition,
    EscalationInstance,
)


@dataclass(frozen=True)
class InstanceRecord:
    """A stored instance and the chain snapshot it escalates under.

    The snapshot is captured when the escalation starts, so later edits to
    the chain do not re-level the running escalation.
    """

    instance: EscalationInstance
    chain: EscalationChainDefinition


class InstanceStore:
    """In-memory instance store keyed by deadline event id.

    ``lock(event_id)`` returns the per-event lock that every read-modify-write
    of an instance must hold. Two overlapping evaluations of the same event
    would otherwise both see the same prior state and emit duplicate
    notifications and audit entries. Locks are held weakly and disappear
    once no caller is using or waiting on them.
    """

    def __init__(self) -> None:
        self._records: dict[str, InstanceRecord] = {}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock(self, event_id: str) -> asyncio.Lock:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[event_id] = lock
        return lock

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    async def get_record(self, event_id: str) -> InstanceRecord | None:
        return self._records.get(event_id)

    async def get(self, event_id: str) -> EscalationInstance:
        """Raises NotFoundError when the event has no escalation."""
        record = self._records.get(event_id)
        if record is None:
            raise NotFoundError("Escalation", event_id)
        return record.instance

    def check_writable(self, instance: EscalationInstance) -> None:
        """Raises ValueError if the event already has a different escalation."""
        existing = self._records.get(instance.event_id)
        if existing is not None and existing.instance.id != instance.id:
            msg = (
                f"Event {instance.event_id} already has escalation "
                f"{existing.instance.id}"
            )
            raise ValueError(msg)

    async def put(
        self,
        instance: EscalationInstance,
        chain: EscalationChainDefinition,
    ) -> None:
        self.check_writable(instance)
        existing = self._records.get(instance.event_id)
        # Keep the snapshot captured at creation.
        snapshot = existing.chain if existing is not None else chain
        self._records[instance.event_id] = InstanceRecord(instance, snapshot)

    async def list(self) -> list[EscalationInstance]:
        return [record.instance for record in self._records.values()]
