"""Tests for the stateful escalation service."""

import asyncio
import gc
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from compliance_escalation.container import build_service
from compliance_escalation.core.escalation import (
    AuditEntry,
    Channel,
    DeadlineEvent,
    EscalationAuditAction,
    EscalationStatus,
    EventStatus,
    EventType,
    NotFoundError,
    PreconditionViolation,
)
from compliance_escalation.core.escalation.models import evolve
from compliance_escalation.services.notifier import NotificationDeliveryError

NOW = datetime(2024, 6, 11, 9, 0, tzinfo=UTC)


def make_event(
    event_id: str = "evt-1",
    event_type: EventType = EventType.covenant_test,
    due_date: date = date(2024, 6, 1),
    status: EventStatus = EventStatus.overdue,
) -> DeadlineEvent:
    return DeadlineEvent(
        id=event_id,
        event_type=event_type,
        facility_id="facility-1",
        due_date=due_date,
        status=status,
        title=f"Deadline {event_id}",
    )


async def service_with_events(*events: DeadlineEvent):
    service = build_service()
    for event in events:
        await service.events.upsert(event)
    return service


class TestEvaluateEvent:
    """Single-event evaluation applies effects exactly once."""

    @pytest.mark.asyncio
    async def test_commits_instance_and_audit(self):
        service = await service_with_events(make_event())

        result = await service.evaluate_event("evt-1", NOW)

        stored = await service.instances.get("evt-1")
        assert stored == result.instance
        assert stored.status == EscalationStatus.level_3
        trail = await service.audit.query("evt-1")
        assert [e.id for e in trail] == list(stored.audit_entry_ids)
        assert len(trail) == 6

    @pytest.mark.asyncio
    async def test_reevaluation_is_a_no_op(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)

        result = await service.evaluate_event("evt-1", NOW + timedelta(hours=1))

        assert not result.changed
        assert len(service.audit) == 6

    @pytest.mark.asyncio
    async def test_concurrent_evaluations_emit_once(self):
        service = await service_with_events(make_event())
        dispatch = AsyncMock()

        with patch.object(service.dispatcher, "dispatch", dispatch):
            results = await asyncio.gather(
                service.evaluate_event("evt-1", NOW),
                service.evaluate_event("evt-1", NOW),
            )

        assert sum(1 for r in results if r.changed) == 1
        assert dispatch.await_count == 3
        assert len(service.audit) == 6

    @pytest.mark.asyncio
    async def test_no_matching_chain(self):
        service = await service_with_events(make_event())
        await service.chains.delete("chain-1")

        result = await service.evaluate_event("evt-1", NOW)

        assert result.instance is None
        assert await service.instances.list() == []

    @pytest.mark.asyncio
    async def test_unknown_event(self):
        service = await service_with_events()

        with pytest.raises(NotFoundError):
            await service.evaluate_event("missing", NOW)

    @pytest.mark.asyncio
    async def test_delivery_failure_keeps_transition(self):
        service = await service_with_events(make_event())
        failing = AsyncMock()
        failing.send.side_effect = NotificationDeliveryError("down")
        for channel in Channel:
            service.dispatcher.register(channel, failing)

        result = await service.evaluate_event("evt-1", NOW)

        assert result.instance.current_level == 3
        assert (await service.instances.get("evt-1")).current_level == 3
        assert len(service.audit) == 6

    @pytest.mark.asyncio
    async def test_chain_edit_does_not_relevel_running_escalation(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)

        standard = await service.chains.get("chain-1")
        # Tighten level 4 to 8 days; the running escalation keeps 14.
        tightened_steps = (
            *standard.steps[:3],
            evolve(standard.steps[3], trigger_days_overdue=8),
        )
        await service.chains.save(evolve(standard, steps=tightened_steps))

        result = await service.evaluate_event("evt-1", NOW + timedelta(days=1))

        assert not result.changed
        assert (await service.instances.get("evt-1")).current_level == 3

    @pytest.mark.asyncio
    async def test_completed_event_resolves(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)
        await service.events.upsert(make_event(status=EventStatus.completed))

        await service.evaluate_event("evt-1", NOW + timedelta(hours=2))

        instance = await service.instances.get("evt-1")
        assert instance.status == EscalationStatus.resolved


class TestEvaluationPass:
    """Pass over all open events."""

    @pytest.mark.asyncio
    async def test_pass_counts_level_changes(self):
        service = await service_with_events(
            make_event("evt-1"),
            make_event("evt-2", event_type=EventType.compliance_event),
            make_event("evt-3", due_date=date(2024, 7, 1)),
        )

        summary = await service.run_evaluation_pass(NOW)

        assert summary.evaluated == 3
        # evt-1: 3 levels, evt-2: 4 levels, evt-3: not due
        assert summary.level_changes == 7
        assert summary.errors == 0

    @pytest.mark.asyncio
    async def test_failure_on_one_event_does_not_stop_pass(self):
        service = await service_with_events(make_event("evt-1"), make_event("evt-2"))
        original = service.evaluate_event

        async def flaky(event_id, now=None):
            if event_id == "evt-1":
                raise RuntimeError("boom")
            return await original(event_id, now)

        with patch.object(service, "evaluate_event", side_effect=flaky):
            summary = await service.run_evaluation_pass(NOW)

        assert summary.errors == 1
        assert summary.evaluated == 1
        assert (await service.instances.get("evt-2")).current_level == 3

    @pytest.mark.asyncio
    async def test_pass_resolves_completed_events(self):
        service = await service_with_events(make_event("evt-1"))
        await service.run_evaluation_pass(NOW)
        await service.events.upsert(make_event("evt-1", status=EventStatus.completed))

        await service.run_evaluation_pass(NOW + timedelta(hours=1))

        instance = await service.instances.get("evt-1")
        assert instance.status == EscalationStatus.resolved


class TestServiceActions:
    """Actions resolve actors through the directory and are audited."""

    @pytest.mark.asyncio
    async def test_snooze_pauses_pass(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)

        instance = await service.snooze(
            "evt-1", "user-vp-1", 168, "Lender waiver in progress", now=NOW
        )
        assert instance.status == EscalationStatus.snoozed

        summary = await service.run_evaluation_pass(NOW + timedelta(days=4))

        assert summary.level_changes == 0
        assert (await service.instances.get("evt-1")).status == EscalationStatus.snoozed

    @pytest.mark.asyncio
    async def test_unknown_actor(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)

        with pytest.raises(NotFoundError):
            await service.acknowledge("evt-1", "user-nobody", now=NOW)

    @pytest.mark.asyncio
    async def test_action_without_escalation(self):
        service = await service_with_events(make_event())

        with pytest.raises(NotFoundError):
            await service.resolve("evt-1", "user-manager-1", now=NOW)

    @pytest.mark.asyncio
    async def test_precondition_violation_changes_nothing(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)
        before = len(service.audit)

        with pytest.raises(PreconditionViolation):
            await service.cancel_snooze("evt-1", "user-vp-1", now=NOW)

        assert len(service.audit) == before

    @pytest.mark.asyncio
    async def test_full_lifecycle_audit(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)
        await service.acknowledge("evt-1", "user-vp-1", now=NOW)
        await service.reassign("evt-1", "user-manager-2", "user-vp-1", now=NOW)
        await service.resolve("evt-1", "user-manager-2", notes="Tested", now=NOW)

        trail = await service.audit_for_event("evt-1")

        assert [e.action for e in trail][-3:] == [
            EscalationAuditAction.escalation_acknowledged,
            EscalationAuditAction.escalation_assigned,
            EscalationAuditAction.escalation_resolved,
        ]

    @pytest.mark.asyncio
    async def test_audit_for_unknown_event(self):
        service = await service_with_events()

        with pytest.raises(NotFoundError):
            await service.audit_for_event("missing")


class TestDaysOverdueOnRead:
    """Readers see days overdue as of now, not as of the last transition."""

    @pytest.mark.asyncio
    async def test_top_level_instance_keeps_counting(self):
        service = await service_with_events(make_event())
        reached_top = datetime(2024, 6, 16, 9, 0, tzinfo=UTC)
        await service.evaluate_event("evt-1", reached_top)

        later = reached_top + timedelta(days=20)
        result = await service.evaluate_event("evt-1", later)
        instance = await service.get_instance("evt-1", now=later)

        assert not result.changed
        assert instance.current_level == 4
        assert instance.days_overdue == 35
        assert (await service.instances.get("evt-1")).days_overdue == 15

    @pytest.mark.asyncio
    async def test_list_reports_current_value(self):
        service = await service_with_events(make_event("evt-1"), make_event("evt-2"))
        await service.run_evaluation_pass(NOW)

        instances = await service.list_instances(now=NOW + timedelta(days=5))

        assert [i.days_overdue for i in instances] == [15, 15]

    @pytest.mark.asyncio
    async def test_resolved_instance_stops_counting(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)
        await service.resolve("evt-1", "user-vp-1", now=NOW + timedelta(days=2))

        instance = await service.get_instance("evt-1", now=NOW + timedelta(days=30))

        assert instance.days_overdue == 12


class TestHistoryOrdering:
    """Changes are never written before the event's latest audit entry."""

    @pytest.mark.asyncio
    async def test_stale_pass_time_lands_after_snooze_cancel(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", datetime(2024, 6, 2, 8, 0, tzinfo=UTC))
        await service.snooze(
            "evt-1",
            "user-analyst-1",
            240,
            "Waiting on lender",
            now=datetime(2024, 6, 2, 10, 0, tzinfo=UTC),
        )
        cancelled_at = datetime(2024, 6, 10, 9, 5, tzinfo=UTC)
        await service.cancel_snooze("evt-1", "user-analyst-1", now=cancelled_at)

        # Pass time captured before the cancel landed.
        await service.run_evaluation_pass(datetime(2024, 6, 10, 9, 0, tzinfo=UTC))

        trail = await service.audit_for_event("evt-1")
        actions = [e.action for e in trail]
        cancel_index = actions.index(EscalationAuditAction.snooze_cancelled)
        increases = [
            e for e in trail if e.action == EscalationAuditAction.escalation_level_increased
        ]
        assert [(e.previous_level, e.new_level) for e in increases] == [(1, 2), (2, 3)]
        assert all(trail.index(e) > cancel_index for e in increases)
        assert all(e.timestamp == cancelled_at for e in increases)
        timestamps = [e.timestamp for e in trail]
        assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_stale_action_time_is_clamped(self):
        service = await service_with_events(make_event())
        await service.evaluate_event("evt-1", NOW)

        instance = await service.acknowledge("evt-1", "user-vp-1", now=NOW - timedelta(hours=3))

        assert instance.acknowledged_at == NOW


class TestStoreHousekeeping:
    @pytest.mark.asyncio
    async def test_event_locks_are_released(self):
        service = await service_with_events(make_event("evt-1"), make_event("evt-2"))
        await service.run_evaluation_pass(NOW)
        await service.resolve("evt-1", "user-vp-1", now=NOW)

        gc.collect()

        assert service.instances.lock_count == 0

    @pytest.mark.asyncio
    async def test_rejected_audit_write_stores_no_instance(self):
        service = await service_with_events(make_event())
        await service.audit.append(
            AuditEntry(
                id="esc-evt-1-audit-2",
                escalation_id="esc-evt-1",
                event_id="evt-1",
                action=EscalationAuditAction.notification_sent,
                performed_by_name="System",
                timestamp=NOW - timedelta(days=1),
                details="imported",
            )
        )

        with pytest.raises(ValueError):
            await service.evaluate_event("evt-1", NOW)

        assert await service.instances.get_record("evt-1") is None
        assert len(service.audit) == 1
