"""Escalation engine service.

Applies the pure evaluator and actions to the stores: holds the per-event
lock for every read-modify-write, appends the audit entries in order and
persists the next instance, then hands notifications to the dispatcher.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from compliance_escalation.core.escalation import actions
from compliance_escalation.core.escalation.enums import EscalationAuditAction
from compliance_escalation.core.escalation.errors import NotFoundError
from compliance_escalation.core.escalation.evaluator import (
    evaluate,
    refresh_days_overdue,
)
from compliance_escalation.core.escalation.matcher import match_chain
from compliance_escalation.core.escalation.models import (
    AuditEntry,
    EscalationChainDefinition,
    EscalationInstance,
    EvaluationResult,
)
from compliance_escalation.core.escalation.stats import EscalationStats, compute_stats
from compliance_escalation.logging_config import bind_event_id, get_logger
from compliance_escalation.services.assignee_directory import AssigneeDirectory
from compliance_escalation.services.audit_trail import AuditTrail
from compliance_escalation.services.deadline_events import DeadlineEventStore
from compliance_escalation.services.escalation_chain import ChainRepository
from compliance_escalation.services.instance_store import InstanceStore
from compliance_escalation.services.notifier import NotificationDispatcher

logger = get_logger(__name__)

_LEVEL_ACTIONS = frozenset(
    {
        EscalationAuditAction.escalation_started,
        EscalationAuditAction.escalation_level_increased,
    }
)


@dataclass
class EvaluationSummary:
    """Counters for one evaluation pass."""

    evaluated: int = 0
    level_changes: int = 0
    errors: int = 0


class EscalationService:
    """Stateful facade over the escalation core."""

    def __init__(
        self,
        directory: AssigneeDirectory,
        chains: ChainRepository,
        events: DeadlineEventStore,
        instances: InstanceStore,
        audit: AuditTrail,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self.directory = directory
        self.chains = chains
        self.events = events
        self.instances = instances
        self.audit = audit
        self.dispatcher = dispatcher

    async def _commit(
        self,
        instance: EscalationInstance,
        chain: EscalationChainDefinition,
        entries: list[AuditEntry],
    ) -> None:
        # Every check runs before the first write.
        self.instances.check_writable(instance)
        await self.audit.append_many(entries)
        await self.instances.put(instance, chain)

    async def _clock(self, event_id: str, now: datetime | None) -> datetime:
        """Time to apply a change to ``event_id`` at.

        Never earlier than the event's latest audit entry, so a ``now``
        captured before a concurrent action cannot write history out of
        order. Call it while holding the event lock.
        """
        now = now or datetime.now(UTC)
        latest = await self.audit.latest_timestamp(event_id)
        if latest is not None and latest > now:
            return latest
        return now

    async def evaluate_event(
        self,
        event_id: str,
        now: datetime | None = None,
    ) -> EvaluationResult:
        """Evaluate one deadline event and apply the resulting effects.

        The transition and its audit entries are committed before any
        notification is sent; delivery failures do not undo them.

        Raises:
            NotFoundError: If the event is unknown.
            ChainValidationError: If the chain in use is malformed.
        """
        event = await self.events.get(event_id)

        with bind_event_id(event_id):
            async with self.instances.lock(event_id):
                now = await self._clock(event_id, now)
                record = await self.instances.get_record(event_id)
                if record is None:
                    chain = match_chain(event, await self.chains.list())
                    if chain is None:
                        logger.debug("No escalation chain applies to event")
                        return EvaluationResult(instance=None)
                    prior = None
                else:
                    chain, prior = record.chain, record.instance

                result = evaluate(now, event, chain, prior)
                if not result.changed:
                    logger.debug(
                        "No escalation change",
                        status=prior.status.value if prior else None,
                    )
                    return result

                await self._commit(result.instance, chain, result.audit_entries)

            for entry in result.audit_entries:
                if entry.action in _LEVEL_ACTIONS:
                    logger.info(
                        "Escalation level changed",
                        escalation_id=entry.escalation_id,
                        previous_level=entry.previous_level,
                        new_level=entry.new_level,
                        assignee=entry.new_assignee,
                    )

            for notification in result.notifications:
                await self.dispatcher.dispatch(notification)

        return result

    async def run_evaluation_pass(self, now: datetime | None = None) -> EvaluationSummary:
        """Evaluate every open event plus completed events with open escalations.

        A failure on one event is logged and counted; it never stops the
        pass for the others. Without ``now`` each event is evaluated at the
        time its lock is acquired.
        """
        summary = EvaluationSummary()

        event_ids = [event.id for event in await self.events.open_events()]
        for instance in await self.instances.list():
            if instance.is_open and instance.event_id not in event_ids:
                event_ids.append(instance.event_id)

        for event_id in event_ids:
            try:
                result = await self.evaluate_event(event_id, now)
                summary.evaluated += 1
                summary.level_changes += sum(
                    1 for e in result.audit_entries if e.action in _LEVEL_ACTIONS
                )
            except Exception as e:
                logger.error(
                    "Escalation evaluation failed for event",
                    event_id=event_id,
                    error=str(e),
                )
                summary.errors += 1

        logger.info(
            "Escalation evaluation pass completed",
            evaluated=summary.evaluated,
            level_changes=summary.level_changes,
            errors=summary.errors,
        )
        return summary

    async def _apply_action(
        self,
        event_id: str,
        action: Callable[[EscalationInstance, datetime], actions.ActionResult],
        now: datetime | None,
    ) -> EscalationInstance:
        with bind_event_id(event_id):
            async with self.instances.lock(event_id):
                record = await self.instances.get_record(event_id)
                if record is None:
                    raise NotFoundError("Escalation", event_id)
                instance, entry = action(record.instance, await self._clock(event_id, now))
                await self._commit(instance, record.chain, [entry])

            logger.info(
                "Escalation action recorded",
                escalation_id=instance.id,
                action=entry.action.value,
                performed_by=entry.performed_by,
                status=instance.status.value,
            )
        return instance

    async def snooze(
        self,
        event_id: str,
        snoozed_by: str,
        hours: int,
        reason: str,
        now: datetime | None = None,
    ) -> EscalationInstance:
        """Snooze the escalation of ``event_id``.

        Raises:
            NotFoundError: Unknown user or no escalation for the event.
            PreconditionViolation: See ``actions.snooze``.
        """
        actor = self.directory.get(snoozed_by)
        return await self._apply_action(
            event_id,
            lambda instance, at: actions.snooze(instance, actor, hours, reason, at),
            now,
        )

    async def cancel_snooze(
        self,
        event_id: str,
        cancelled_by: str,
        now: datetime | None = None,
    ) -> EscalationInstance:
        actor = self.directory.get(cancelled_by)
        return await self._apply_action(
            event_id,
            lambda instance, at: actions.cancel_snooze(instance, actor, at),
            now,
        )

    async def acknowledge(
        self,
        event_id: str,
        acknowledged_by: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> EscalationInstance:
        actor = self.directory.get(acknowledged_by)
        return await self._apply_action(
            event_id,
            lambda instance, at: actions.acknowledge(instance, actor, at, notes),
            now,
        )

    async def reassign(
        self,
        event_id: str,
        assignee_id: str,
        assigned_by: str,
        now: datetime | None = None,
    ) -> EscalationInstance:
        assignee = self.directory.get(assignee_id)
        actor = self.directory.get(assigned_by)
        return await self._apply_action(
            event_id,
            lambda instance, at: actions.reassign(instance, assignee, actor, at),
            now,
        )

    async def resolve(
        self,
        event_id: str,
        resolved_by: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> EscalationInstance:
        actor = self.directory.get(resolved_by)
        return await self._apply_action(
            event_id,
            lambda instance, at: actions.resolve(instance, actor, at, notes),
            now,
        )

    async def present(
        self,
        instance: EscalationInstance,
        now: datetime | None = None,
    ) -> EscalationInstance:
        """``instance`` as shown to readers, with ``days_overdue`` current."""
        event = await self.events.get(instance.event_id)
        return refresh_days_overdue(instance, event.due_date, now or datetime.now(UTC))

    async def get_instance(
        self,
        event_id: str,
        now: datetime | None = None,
    ) -> EscalationInstance:
        """Raises NotFoundError when the event has no escalation."""
        return await self.present(await self.instances.get(event_id), now)

    async def list_instances(
        self,
        open_only: bool = False,
        now: datetime | None = None,
    ) -> list[EscalationInstance]:
        now = now or datetime.now(UTC)
        instances = await self.instances.list()
        if open_only:
            instances = [i for i in instances if i.is_open]
        return [await self.present(i, now) for i in instances]

    async def audit_for_event(self, event_id: str) -> list[AuditEntry]:
        """Audit entries for an event.

        Raises:
            NotFoundError: If the event is unknown.
        """
        await self.events.get(event_id)
        return await self.audit.query(event_id)

    async def stats(self, now: datetime | None = None) -> EscalationStats:
        return compute_stats(
            await self.instances.list(),
            self.events.as_mapping(),
            now or datetime.now(UTC),
        )
