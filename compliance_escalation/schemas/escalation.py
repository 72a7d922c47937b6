"""Escalation instance, action and audit schemas."""

from datetime import date

from pydantic import BaseModel, Field, field_validator

from compliance_escalation.config import settings
from compliance_escalation.core.escalation.enums import EventStatus, EventType
from compliance_escalation.core.escalation.models import (
    AuditEntry,
    DeadlineEvent,
    EscalationInstance,
    NotificationRequest,
)


def _require_text(value: str, field_name: str) -> str:
    stripped = value.strip()
    if not stripped:
        msg = f"{field_name} must not be blank"
        raise ValueError(msg)
    return stripped


class DeadlineEventWrite(BaseModel):
    """Deadline event pushed by the calendar generator."""

    event_type: EventType
    facility_id: str
    due_date: date
    status: EventStatus = EventStatus.pending
    title: str = ""


class DeadlineEventListResponse(BaseModel):
    events: list[DeadlineEvent]
    count: int


class SnoozeRequest(BaseModel):
    """Request schema for snoozing an escalation.

    A justification is always required; the duration is bounded by
    ``settings.snooze_max_hours``.
    """

    snoozed_by: str = Field(min_length=1)
    snooze_hours: int = Field(ge=1, description="Snooze duration in hours.")
    reason: str = Field(min_length=1, description="Justification for the pause.")

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        return _require_text(value, "reason")

    @field_validator("snooze_hours")
    @classmethod
    def within_max_hours(cls, value: int) -> int:
        if value > settings.snooze_max_hours:
            msg = f"snooze_hours must be at most {settings.snooze_max_hours}"
            raise ValueError(msg)
        return value


class CancelSnoozeRequest(BaseModel):
    cancelled_by: str = Field(min_length=1)


class AcknowledgeRequest(BaseModel):
    acknowledged_by: str = Field(min_length=1)
    notes: str | None = None


class ReassignRequest(BaseModel):
    assignee_id: str = Field(min_length=1)
    assigned_by: str = Field(min_length=1)


class ResolveRequest(BaseModel):
    resolved_by: str = Field(min_length=1)
    notes: str | None = None


class EscalationInstanceListResponse(BaseModel):
    instances: list[EscalationInstance]
    count: int


class EvaluationResponse(BaseModel):
    """Outcome of evaluating a single event."""

    event_id: str
    instance: EscalationInstance | None
    audit_entries: list[AuditEntry]
    notifications: list[NotificationRequest]


class EvaluationPassResponse(BaseModel):
    """Counters for an evaluation pass over all open events."""

    evaluated: int
    level_changes: int
    errors: int


class AuditTrailResponse(BaseModel):
    """Audit trail of one event, oldest first."""

    event_id: str
    entries: list[AuditEntry]
    count: int


class RecentAuditResponse(BaseModel):
    """Newest audit entries across events, newest first."""

    entries: list[AuditEntry]
    count: int
