"""Escalation engine core.

Pure decision logic for overdue compliance deadlines. Nothing in this
package performs I/O or holds module-level state:

1. ``match_chain`` picks the escalation policy for a deadline event.
2. ``evaluate`` compares days overdue against the chain's step
   thresholds and returns the next instance plus effects (audit entries
   and notification requests).
3. ``actions`` holds the human-initiated transitions (snooze, cancel,
   acknowledge, reassign, resolve), each fully audited.
4. ``validate_chain`` rejects malformed chains at save time.

Callers apply the returned effects exactly once and must serialise
evaluation of the same event (single writer per event id).
"""

from compliance_escalation.core.escalation.actions import (
    acknowledge,
    cancel_snooze,
    reassign,
    resolve,
    snooze,
)
from compliance_escalation.core.escalation.enums import (
    Channel,
    EscalationAuditAction,
    EscalationStatus,
    EventStatus,
    EventType,
    NotificationStatus,
)
from compliance_escalation.core.escalation.errors import (
    ChainValidationError,
    EscalationError,
    NotFoundError,
    PreconditionViolation,
)
from compliance_escalation.core.escalation.evaluator import (
    compute_days_overdue,
    evaluate,
    instance_id_for,
    refresh_days_overdue,
)
from compliance_escalation.core.escalation.matcher import match_chain
from compliance_escalation.core.escalation.models import (
    AssigneeRef,
    AuditEffect,
    AuditEntry,
    DeadlineEvent,
    EscalationChainDefinition,
    EscalationInstance,
    EscalationStep,
    EvaluationResult,
    NotificationEffect,
    NotificationRequest,
    Snooze,
)
from compliance_escalation.core.escalation.stats import EscalationStats, compute_stats
from compliance_escalation.core.escalation.validation import validate_chain

__all__ = [
    "AssigneeRef",
    "AuditEffect",
    "AuditEntry",
    "ChainValidationError",
    "Channel",
    "DeadlineEvent",
    "EscalationAuditAction",
    "EscalationChainDefinition",
    "EscalationError",
    "EscalationInstance",
    "EscalationStats",
    "EscalationStatus",
    "EscalationStep",
    "EvaluationResult",
    "EventStatus",
    "EventType",
    "NotFoundError",
    "NotificationEffect",
    "NotificationRequest",
    "NotificationStatus",
    "PreconditionViolation",
    "Snooze",
    "acknowledge",
    "cancel_snooze",
    "compute_days_overdue",
    "compute_stats",
    "evaluate",
    "instance_id_for",
    "match_chain",
    "reassign",
    "refresh_days_overdue",
    "resolve",
    "snooze",
    "validate_chain",
]
