"""Escalation evaluator: the core state machine.

``evaluate`` is a pure function of ``(now, event, chain, prior)``. It
returns the next instance state plus the ordered effects (audit entries
to append, notifications to send) the caller must apply exactly once.
Ids are derived from the instance, so identical inputs always produce
identical output.

State lives entirely in the instance; the audit trail is written, never
read back.
"""

from datetime import UTC, date, datetime

from compliance_escalation.core.escalation import actions
from compliance_escalation.core.escalation.constants import (
    SYSTEM_ACTOR_NAME,
    level_label,
)
from compliance_escalation.core.escalation.enums import (
    EscalationAuditAction,
    EscalationStatus,
    EventStatus,
)
from compliance_escalation.core.escalation.messages import (
    build_escalation_message,
    event_display_name,
)
from compliance_escalation.core.escalation.models import (
    AssigneeRef,
    AuditEffect,
    AuditEntry,
    DeadlineEvent,
    Effect,
    EscalationChainDefinition,
    EscalationInstance,
    EscalationStep,
    EvaluationResult,
    NotificationEffect,
    NotificationRequest,
    evolve,
)
from compliance_escalation.core.escalation.validation import ensure_valid_chain


def instance_id_for(event_id: str) -> str:
    """Deterministic escalation id for a deadline event."""
    return f"esc-{event_id}"


def compute_days_overdue(now: datetime, due_date: date) -> int:
    """Whole calendar days between ``due_date`` and the UTC date of ``now``.

    Same calendar day is 0; an event not yet due is clamped to 0.
    """
    return max((now.astimezone(UTC).date() - due_date).days, 0)


def refresh_days_overdue(
    instance: EscalationInstance,
    due_date: date,
    now: datetime,
) -> EscalationInstance:
    """Return ``instance`` with ``days_overdue`` recomputed for reading.

    Open escalations count up to ``now``; resolved ones stop at
    ``resolved_at``. The stored instance is left untouched.
    """
    as_of = instance.resolved_at or now
    days_overdue = compute_days_overdue(as_of, due_date)
    if days_overdue == instance.days_overdue:
        return instance
    return instance.model_copy(update={"days_overdue": days_overdue})


def highest_reached_step(
    chain: EscalationChainDefinition,
    days_overdue: int,
) -> EscalationStep | None:
    """Highest step whose threshold is reached (equality counts as reached)."""
    reached = [s for s in chain.steps if s.trigger_days_overdue <= days_overdue]
    return max(reached, key=lambda s: s.level) if reached else None


def notification_recipients(
    chain: EscalationChainDefinition,
    step: EscalationStep,
) -> tuple[AssigneeRef, ...]:
    """Step assignees, plus lower-level assignees when the step asks for it.

    De-duplicated by id, keeping first-seen order.
    """
    candidates = list(step.assignees)
    if step.notify_previous_levels:
        for previous in sorted(chain.steps, key=lambda s: s.level):
            if previous.level < step.level:
                candidates.extend(previous.assignees)

    seen: set[str] = set()
    recipients: list[AssigneeRef] = []
    for assignee in candidates:
        if assignee.id not in seen:
            seen.add(assignee.id)
            recipients.append(assignee)
    return tuple(recipients)


def _system_entry(
    instance: EscalationInstance,
    action: EscalationAuditAction,
    now: datetime,
    details: str,
    **fields,
) -> AuditEntry:
    return AuditEntry(
        id=instance.next_audit_id(),
        escalation_id=instance.id,
        event_id=instance.event_id,
        action=action,
        performed_by=None,
        performed_by_name=SYSTEM_ACTOR_NAME,
        timestamp=now,
        details=details,
        **fields,
    )


def _escalate_to_step(
    now: datetime,
    event: DeadlineEvent,
    chain: EscalationChainDefinition,
    instance: EscalationInstance,
    step: EscalationStep,
    days_overdue: int,
) -> tuple[EscalationInstance, list[Effect]]:
    """Advance ``instance`` by exactly one level to ``step``.

    Emits the transition entry, the notification effect and the
    ``notification_sent`` entry, in that order.
    """
    previous_level = instance.current_level
    new_assignee = step.assignees[0]

    if previous_level == 0:
        action = EscalationAuditAction.escalation_started
        details = f"Escalation initiated for overdue {event_display_name(event)}"
    else:
        action = EscalationAuditAction.escalation_level_increased
        day_word = "day" if step.trigger_days_overdue == 1 else "days"
        details = (
            f"Auto-escalated to {level_label(step.level)} after "
            f"{step.trigger_days_overdue} {day_word} overdue threshold reached"
        )

    transition = _system_entry(
        instance,
        action,
        now,
        details,
        previous_level=previous_level,
        new_level=step.level,
        previous_assignee=(
            instance.current_assignee.name if instance.current_assignee else None
        ),
        new_assignee=new_assignee.name,
    )
    instance = actions.record(
        evolve(
            instance,
            status=EscalationStatus.for_level(step.level),
            current_level=step.level,
            current_assignee=new_assignee,
            last_escalated_at=now,
        ),
        transition,
    )

    recipients = notification_recipients(chain, step)
    notification = NotificationRequest(
        escalation_id=instance.id,
        event_id=event.id,
        level=step.level,
        assignees=recipients,
        channels=step.channels,
        message=build_escalation_message(event, step, days_overdue),
    )
    sent = _system_entry(
        instance,
        EscalationAuditAction.notification_sent,
        now,
        (
            f"{level_label(step.level)} notification sent to "
            f"{', '.join(a.name for a in recipients)}"
        ),
        new_level=step.level,
        notification_channels=step.channels,
    )
    instance = actions.record(instance, sent)

    return instance, [
        AuditEffect(entry=transition),
        NotificationEffect(notification=notification),
        AuditEffect(entry=sent),
    ]


def evaluate(
    now: datetime,
    event: DeadlineEvent,
    chain: EscalationChainDefinition,
    prior: EscalationInstance | None,
) -> EvaluationResult:
    """Compute the next escalation state for ``event``.

    Args:
        now: Evaluation time (timezone-aware).
        event: The deadline event being evaluated.
        chain: The chain matched for the event (or the snapshot captured
            when its escalation started).
        prior: The stored instance, or None if the event has none yet.

    Returns:
        EvaluationResult. When nothing changes, ``instance`` is ``prior``
        and ``effects`` is empty, so periodic re-evaluation is safe.

    Raises:
        ChainValidationError: ``chain`` is structurally invalid.
        ValueError: ``prior`` belongs to a different event or chain.
    """
    if prior is not None and prior.event_id != event.id:
        msg = f"Instance {prior.id} belongs to event {prior.event_id}, not {event.id}"
        raise ValueError(msg)

    if prior is not None and prior.status == EscalationStatus.resolved:
        return EvaluationResult(instance=prior)

    ensure_valid_chain(chain)
    if prior is not None and prior.chain_id != chain.id:
        msg = f"Instance {prior.id} was started by chain {prior.chain_id}, not {chain.id}"
        raise ValueError(msg)

    not_started = prior is None or prior.status == EscalationStatus.not_escalated
    days_overdue = compute_days_overdue(now, event.due_date)

    if event.status == EventStatus.completed:
        if not_started:
            return EvaluationResult(instance=prior)
        resolved, entry = actions.resolve(
            prior, None, now, notes="Deadline marked completed"
        )
        return EvaluationResult(
            instance=evolve(resolved, days_overdue=days_overdue),
            effects=(AuditEffect(entry=entry),),
        )

    if days_overdue <= 0 and not_started:
        return EvaluationResult(instance=prior)

    instance = prior or EscalationInstance(
        id=instance_id_for(event.id),
        event_id=event.id,
        chain_id=chain.id,
        started_at=now,
    )
    effects: list[Effect] = []

    snooze = instance.active_snooze
    if snooze is not None:
        if now < snooze.snooze_until:
            return EvaluationResult(instance=prior)
        instance, entry = actions.expire_snooze(instance, now)
        effects.append(AuditEffect(entry=entry))

    target = highest_reached_step(chain, days_overdue)
    if target is not None and target.level > instance.current_level:
        # One transition per crossed level, in level order.
        for step in sorted(chain.steps, key=lambda s: s.level):
            if instance.current_level < step.level <= target.level:
                instance, step_effects = _escalate_to_step(
                    now, event, chain, instance, step, days_overdue
                )
                effects.extend(step_effects)

    if not effects:
        return EvaluationResult(instance=prior)

    return EvaluationResult(
        instance=evolve(instance, days_overdue=days_overdue),
        effects=tuple(effects),
    )
