"""Aggregate statistics over escalation instances."""

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from compliance_escalation.core.escalation.enums import EscalationStatus, EventType
from compliance_escalation.core.escalation.models import (
    DeadlineEvent,
    EscalationInstance,
)


class EscalationStats(BaseModel):
    """Dashboard counters for escalations."""

    model_config = ConfigDict(frozen=True)

    total_active_escalations: int = 0
    level_1_count: int = 0
    level_2_count: int = 0
    level_3_count: int = 0
    level_4_count: int = 0
    snoozed_count: int = 0
    resolved_today: int = 0
    average_resolution_time_hours: float | None = None
    escalations_by_event_type: dict[EventType, int] = Field(
        default_factory=lambda: {event_type: 0 for event_type in EventType}
    )


def compute_stats(
    instances: Iterable[EscalationInstance],
    events: Mapping[str, DeadlineEvent],
    now: datetime,
) -> EscalationStats:
    """Summarise ``instances``.

    Active means not resolved and past ``not_escalated``. Snoozed instances
    count as active and towards ``snoozed_count`` but not towards their
    paused level. ``resolved_today`` uses the UTC date of ``now``.
    """
    today = now.astimezone(UTC).date()
    level_counts = {1: 0, 2: 0, 3: 0, 4: 0}
    by_type = {event_type: 0 for event_type in EventType}
    active = 0
    snoozed = 0
    resolved_today = 0
    resolution_hours: list[float] = []

    for instance in instances:
        if instance.status == EscalationStatus.resolved:
            if instance.resolved_at is not None:
                resolution_hours.append(
                    (instance.resolved_at - instance.started_at).total_seconds() / 3600
                )
                if instance.resolved_at.astimezone(UTC).date() == today:
                    resolved_today += 1
            continue
        if instance.status == EscalationStatus.not_escalated:
            continue

        active += 1
        if instance.status == EscalationStatus.snoozed:
            snoozed += 1
        else:
            level_counts[instance.current_level] += 1

        event = events.get(instance.event_id)
        if event is not None:
            by_type[event.event_type] += 1

    average = (
        round(sum(resolution_hours) / len(resolution_hours), 1)
        if resolution_hours
        else None
    )

    return EscalationStats(
        total_active_escalations=active,
        level_1_count=level_counts[1],
        level_2_count=level_counts[2],
        level_3_count=level_counts[3],
        level_4_count=level_counts[4],
        snoozed_count=snoozed,
        resolved_today=resolved_today,
        average_resolution_time_hours=average,
        escalations_by_event_type=by_type,
    )
