"""Human-initiated escalation actions.

Snooze, snooze cancellation, acknowledgement, reassignment and
resolution. Each action is a pure function returning the next instance
and the audit entry describing the change; the caller persists both.
Preconditions are checked before any state is built and violations raise
``PreconditionViolation``; nothing is silently coerced.
"""

from datetime import datetime, timedelta

from compliance_escalation.core.escalation.constants import (
    SYSTEM_ACTOR_NAME,
    level_label,
)
from compliance_escalation.core.escalation.enums import (
    EscalationAuditAction,
    EscalationStatus,
)
from compliance_escalation.core.escalation.errors import PreconditionViolation
from compliance_escalation.core.escalation.models import (
    AssigneeRef,
    AuditEntry,
    EscalationInstance,
    Snooze,
    evolve,
)

ActionResult = tuple[EscalationInstance, AuditEntry]


def _assignee_name(assignee: AssigneeRef | None) -> str | None:
    return assignee.name if assignee else None


def _audit_entry(
    instance: EscalationInstance,
    action: EscalationAuditAction,
    actor: AssigneeRef | None,
    now: datetime,
    details: str,
    **fields,
) -> AuditEntry:
    return AuditEntry(
        id=instance.next_audit_id(),
        escalation_id=instance.id,
        event_id=instance.event_id,
        action=action,
        performed_by=actor.id if actor else None,
        performed_by_name=actor.name if actor else SYSTEM_ACTOR_NAME,
        timestamp=now,
        details=details,
        **fields,
    )


def record(instance: EscalationInstance, entry: AuditEntry) -> EscalationInstance:
    """Return ``instance`` with ``entry`` appended to its audit references."""
    return evolve(instance, audit_entry_ids=(*instance.audit_entry_ids, entry.id))


def _require_open_escalation(instance: EscalationInstance, action: str) -> None:
    if instance.status == EscalationStatus.resolved:
        msg = f"Cannot {action} a resolved escalation ({instance.id})"
        raise PreconditionViolation(msg)
    if instance.status == EscalationStatus.not_escalated:
        msg = f"Cannot {action} an escalation that has not started ({instance.id})"
        raise PreconditionViolation(msg)


def snooze(
    instance: EscalationInstance,
    by_user: AssigneeRef,
    hours: int,
    reason: str,
    now: datetime,
) -> ActionResult:
    """Pause auto-escalation for ``hours``.

    The current level is kept; when the snooze expires the evaluator
    resumes from it rather than restarting at level 1.

    Raises:
        PreconditionViolation: Blank reason, non-positive hours, or the
            instance is not at an escalation level.
    """
    if not reason or not reason.strip():
        msg = "A snooze requires a non-empty justification"
        raise PreconditionViolation(msg)
    if hours <= 0:
        msg = f"Snooze duration must be positive (got {hours}h)"
        raise PreconditionViolation(msg)
    if not instance.status.is_level:
        msg = (
            f"Only escalations at level 1-4 can be snoozed "
            f"({instance.id} is {instance.status})"
        )
        raise PreconditionViolation(msg)

    reason = reason.strip()
    active = Snooze(
        id=instance.next_snooze_id(),
        event_id=instance.event_id,
        snoozed_by=by_user.id,
        snoozed_by_name=by_user.name,
        snoozed_at=now,
        snooze_until=now + timedelta(hours=hours),
        reason=reason,
    )
    entry = _audit_entry(
        instance,
        EscalationAuditAction.escalation_snoozed,
        by_user,
        now,
        f"Escalation snoozed for {hours} hours",
        previous_level=instance.current_level,
        new_level=None,
        previous_assignee=_assignee_name(instance.current_assignee),
        snooze_reason=reason,
        snooze_duration_hours=hours,
    )
    next_instance = evolve(
        instance,
        status=EscalationStatus.snoozed,
        active_snooze=active,
        snoozes=(*instance.snoozes, active),
    )
    return record(next_instance, entry), entry


def deactivate_snooze(instance: EscalationInstance) -> EscalationInstance:
    """Mark the active snooze inactive and restore the paused level status.

    The snooze stays in the history with ``is_active=False``.
    """
    active = instance.active_snooze
    if active is None:
        return instance
    ended = active.model_copy(update={"is_active": False})
    history = tuple(ended if s.id == active.id else s for s in instance.snoozes)
    return evolve(
        instance,
        status=EscalationStatus.for_level(instance.current_level),
        active_snooze=None,
        snoozes=history,
    )


def expire_snooze(instance: EscalationInstance, now: datetime) -> ActionResult:
    """End a snooze whose window has elapsed (system action)."""
    resumed = deactivate_snooze(instance)
    entry = _audit_entry(
        instance,
        EscalationAuditAction.snooze_expired,
        None,
        now,
        f"Snooze expired; escalation resumed at {level_label(instance.current_level)}",
        previous_level=instance.current_level,
        new_level=instance.current_level,
    )
    return record(resumed, entry), entry


def cancel_snooze(
    instance: EscalationInstance,
    by_user: AssigneeRef,
    now: datetime,
) -> ActionResult:
    """Cancel the active snooze before it expires.

    Raises:
        PreconditionViolation: The instance is not snoozed.
    """
    if instance.active_snooze is None:
        msg = f"Escalation {instance.id} is not snoozed"
        raise PreconditionViolation(msg)

    resumed = deactivate_snooze(instance)
    entry = _audit_entry(
        instance,
        EscalationAuditAction.snooze_cancelled,
        by_user,
        now,
        f"Snooze cancelled; escalation resumed at {level_label(instance.current_level)}",
        previous_level=instance.current_level,
        new_level=instance.current_level,
    )
    return record(resumed, entry), entry


def acknowledge(
    instance: EscalationInstance,
    by_user: AssigneeRef,
    now: datetime,
    notes: str | None = None,
) -> ActionResult:
    """Record that ``by_user`` has seen the escalation.

    Acknowledging does not pause auto-escalation; only a snooze does.

    Raises:
        PreconditionViolation: The escalation is resolved or not started.
    """
    _require_open_escalation(instance, "acknowledge")

    details = f"Escalation acknowledged at {level_label(instance.current_level)}"
    if notes and notes.strip():
        details = f"{details}: {notes.strip()}"
    entry = _audit_entry(
        instance,
        EscalationAuditAction.escalation_acknowledged,
        by_user,
        now,
        details,
        previous_level=instance.current_level,
        new_level=instance.current_level,
    )
    next_instance = evolve(instance, acknowledged_by=by_user.id, acknowledged_at=now)
    return record(next_instance, entry), entry


def reassign(
    instance: EscalationInstance,
    assignee: AssigneeRef,
    by_user: AssigneeRef,
    now: datetime,
) -> ActionResult:
    """Hand the escalation to a different assignee without changing its level.

    Raises:
        PreconditionViolation: The escalation is resolved or not started,
            or ``assignee`` is already the current assignee.
    """
    _require_open_escalation(instance, "reassign")
    if instance.current_assignee and instance.current_assignee.id == assignee.id:
        msg = f"{assignee.name} is already assigned to {instance.id}"
        raise PreconditionViolation(msg)

    entry = _audit_entry(
        instance,
        EscalationAuditAction.escalation_assigned,
        by_user,
        now,
        f"Reassigned to {assignee.name} ({assignee.role})",
        previous_level=instance.current_level,
        new_level=instance.current_level,
        previous_assignee=_assignee_name(instance.current_assignee),
        new_assignee=assignee.name,
    )
    next_instance = evolve(instance, current_assignee=assignee)
    return record(next_instance, entry), entry


def resolve(
    instance: EscalationInstance,
    by_user: AssigneeRef | None,
    now: datetime,
    notes: str | None = None,
) -> ActionResult:
    """Close the escalation. ``by_user=None`` records a system resolution.

    Any active snooze is deactivated. The level is left as it was.

    Raises:
        PreconditionViolation: The escalation is already resolved.
    """
    if instance.status == EscalationStatus.resolved:
        msg = f"Escalation {instance.id} is already resolved"
        raise PreconditionViolation(msg)

    notes = notes.strip() if notes and notes.strip() else None
    details = f"Escalation resolved at {level_label(instance.current_level)}"
    if notes:
        details = f"{details}: {notes}"
    entry = _audit_entry(
        instance,
        EscalationAuditAction.escalation_resolved,
        by_user,
        now,
        details,
        previous_level=instance.current_level,
        new_level=None,
        previous_assignee=_assignee_name(instance.current_assignee),
    )
    closed = deactivate_snooze(instance)
    next_instance = evolve(
        closed,
        status=EscalationStatus.resolved,
        resolved_at=now,
        resolution_notes=notes,
    )
    return record(next_instance, entry), entry
