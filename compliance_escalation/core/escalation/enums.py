"""Escalation engine enums.

Value types shared by the chain, instance and audit models.
"""

from enum import StrEnum, auto


class EventType(StrEnum):
    """Kind of compliance deadline produced by the calendar generator."""

    covenant_test = auto()
    compliance_event = auto()
    notification_due = auto()
    waiver_expiration = auto()


class EventStatus(StrEnum):
    """Lifecycle status of a deadline event as reported by the calendar."""

    upcoming = auto()
    pending = auto()
    overdue = auto()
    completed = auto()


class Channel(StrEnum):
    """Notification delivery channel."""

    email = auto()
    slack = auto()
    in_app = auto()
    calendar_push = auto()


class EscalationStatus(StrEnum):
    """Runtime status of an escalation instance.

    ``level_1``..``level_4`` mirror ``current_level``. ``snoozed`` keeps the
    paused level in ``current_level``. ``resolved`` is terminal.
    """

    not_escalated = auto()
    level_1 = auto()
    level_2 = auto()
    level_3 = auto()
    level_4 = auto()
    snoozed = auto()
    resolved = auto()

    @classmethod
    def for_level(cls, level: int) -> "EscalationStatus":
        """Return the level status for ``level`` (0 maps to not_escalated)."""
        if level == 0:
            return cls.not_escalated
        return cls(f"level_{level}")

    @property
    def is_level(self) -> bool:
        return self in LEVEL_STATUSES


LEVEL_STATUSES = frozenset(
    {
        EscalationStatus.level_1,
        EscalationStatus.level_2,
        EscalationStatus.level_3,
        EscalationStatus.level_4,
    }
)


class EscalationAuditAction(StrEnum):
    """Action recorded by an audit entry."""

    escalation_started = auto()
    escalation_level_increased = auto()
    escalation_assigned = auto()
    escalation_snoozed = auto()
    snooze_expired = auto()
    snooze_cancelled = auto()
    escalation_resolved = auto()
    escalation_acknowledged = auto()
    notification_sent = auto()


class NotificationStatus(StrEnum):
    """Outcome of dispatching a notification effect."""

    sent = auto()
    failed = auto()
