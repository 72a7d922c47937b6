"""Escalation engine Pydantic models.

Pure data models for the escalation engine. No storage dependencies.
All models are frozen: operations return new instances instead of
mutating, so a prior state can always be compared with the next one.
"""

from datetime import date
from typing import Annotated, Any, Literal, Self, TypeVar

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from compliance_escalation.core.escalation.constants import MAX_LEVEL, MIN_LEVEL
from compliance_escalation.core.escalation.enums import (
    Channel,
    EscalationAuditAction,
    EscalationStatus,
    EventStatus,
    EventType,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def evolve(model: ModelT, **changes: Any) -> ModelT:
    """Return a copy of ``model`` with ``changes`` applied and re-validated.

    Unlike ``model_copy(update=...)`` this runs the model validators, so
    cross-field invariants are checked on every transition.
    """
    return type(model).model_validate({**dict(model), **changes})


class AssigneeRef(BaseModel):
    """A person who can be the target of an escalation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    role: str
    email: str
    phone: str | None = None


class EscalationStep(BaseModel):
    """One severity level of a chain."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    level: int = Field(ge=MIN_LEVEL, le=MAX_LEVEL)
    trigger_days_overdue: int = Field(ge=0)
    # Order is significant: the first assignee becomes the current assignee.
    assignees: tuple[AssigneeRef, ...] = ()
    channels: tuple[Channel, ...] = ()
    notify_previous_levels: bool = False


class EscalationChainDefinition(BaseModel):
    """A named escalation policy.

    Structural rules (contiguous levels, increasing thresholds, non-empty
    assignees) are checked by ``validate_chain`` at save time rather than
    here, so that every problem can be reported at once.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    description: str = ""
    is_active: bool = True
    applies_to_event_types: tuple[EventType, ...] = ()
    # Empty means the chain applies to every facility.
    applies_to_facility_ids: tuple[str, ...] = ()
    steps: tuple[EscalationStep, ...] = ()
    created_at: AwareDatetime | None = None
    updated_at: AwareDatetime | None = None
    created_by: str | None = None

    def step_for_level(self, level: int) -> EscalationStep:
        for step in self.steps:
            if step.level == level:
                return step
        msg = f"Chain {self.id} has no step for level {level}"
        raise LookupError(msg)


class DeadlineEvent(BaseModel):
    """Deadline record supplied by the calendar generator.

    The engine only reads these fields.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    event_type: EventType
    facility_id: str
    due_date: date
    status: EventStatus = EventStatus.pending
    title: str = ""


class Snooze(BaseModel):
    """A justified, time-bounded pause of auto-escalation."""

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    snoozed_by: str
    snoozed_by_name: str
    snoozed_at: AwareDatetime
    snooze_until: AwareDatetime
    reason: str = Field(min_length=1)
    is_active: bool = True
    audit_logged: bool = True

    @model_validator(mode="after")
    def check_window(self) -> Self:
        if self.snooze_until <= self.snoozed_at:
            msg = "snooze_until must be after snoozed_at"
            raise ValueError(msg)
        if not self.reason.strip():
            msg = "reason must not be blank"
            raise ValueError(msg)
        return self


class EscalationInstance(BaseModel):
    """Live escalation state for one overdue deadline event."""

    model_config = ConfigDict(frozen=True)

    id: str
    event_id: str
    chain_id: str
    status: EscalationStatus = EscalationStatus.not_escalated
    current_level: int = Field(default=0, ge=0, le=MAX_LEVEL)
    current_assignee: AssigneeRef | None = None
    started_at: AwareDatetime
    last_escalated_at: AwareDatetime | None = None
    days_overdue: int = Field(default=0, ge=0)
    snoozes: tuple[Snooze, ...] = ()
    active_snooze: Snooze | None = None
    acknowledged_by: str | None = None
    acknowledged_at: AwareDatetime | None = None
    resolved_at: AwareDatetime | None = None
    resolution_notes: str | None = None
    # Weak references into the audit trail, in append order.
    audit_entry_ids: tuple[str, ...] = ()

    @model_validator(mode="after")
    def check_status_consistency(self) -> Self:
        """Enforce the status/level/snooze invariants."""
        snoozed = self.status == EscalationStatus.snoozed
        if snoozed != (self.active_snooze is not None):
            msg = "status must be 'snoozed' exactly when an active snooze is set"
            raise ValueError(msg)
        if self.active_snooze is not None and not self.active_snooze.is_active:
            msg = "active_snooze must have is_active=True"
            raise ValueError(msg)
        if sum(1 for s in self.snoozes if s.is_active) > 1:
            msg = "at most one snooze may be active"
            raise ValueError(msg)
        if self.status.is_level and self.current_level != int(self.status.value[-1]):
            msg = f"status {self.status} does not match current_level {self.current_level}"
            raise ValueError(msg)
        if self.status == EscalationStatus.not_escalated and self.current_level != 0:
            msg = "not_escalated instances must have current_level 0"
            raise ValueError(msg)
        if snoozed and self.current_level < MIN_LEVEL:
            msg = "only escalated instances can be snoozed"
            raise ValueError(msg)
        if self.status == EscalationStatus.resolved and self.resolved_at is None:
            msg = "resolved instances must have resolved_at"
            raise ValueError(msg)
        return self

    @property
    def is_open(self) -> bool:
        return self.status != EscalationStatus.resolved

    def next_audit_id(self) -> str:
        """Deterministic id for the next audit entry of this instance."""
        return f"{self.id}-audit-{len(self.audit_entry_ids) + 1}"

    def next_snooze_id(self) -> str:
        return f"{self.id}-snooze-{len(self.snoozes) + 1}"


class AuditEntry(BaseModel):
    """Immutable record of one escalation state change."""

    model_config = ConfigDict(frozen=True)

    id: str
    escalation_id: str
    event_id: str
    action: EscalationAuditAction
    # None means the entry was written by the system.
    performed_by: str | None = None
    performed_by_name: str
    timestamp: AwareDatetime
    previous_level: int | None = None
    new_level: int | None = None
    previous_assignee: str | None = None
    new_assignee: str | None = None
    details: str
    snooze_reason: str | None = None
    snooze_duration_hours: int | None = None
    notification_channels: tuple[Channel, ...] | None = None


class NotificationRequest(BaseModel):
    """Request handed to the delivery collaborator."""

    model_config = ConfigDict(frozen=True)

    escalation_id: str
    event_id: str
    level: int = Field(ge=MIN_LEVEL, le=MAX_LEVEL)
    assignees: tuple[AssigneeRef, ...]
    channels: tuple[Channel, ...]
    message: str


class AuditEffect(BaseModel):
    """Effect: append ``entry`` to the audit trail."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["audit"] = "audit"
    entry: AuditEntry


class NotificationEffect(BaseModel):
    """Effect: hand ``notification`` to the delivery collaborator."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["notification"] = "notification"
    notification: NotificationRequest


Effect = Annotated[AuditEffect | NotificationEffect, Field(discriminator="kind")]


class EvaluationResult(BaseModel):
    """Next instance state plus the ordered effects the caller must apply.

    ``instance`` is None when no escalation exists for the event (not yet
    overdue, or no threshold crossed on a first evaluation).
    """

    model_config = ConfigDict(frozen=True)

    instance: EscalationInstance | None
    effects: tuple[Effect, ...] = ()

    @property
    def audit_entries(self) -> list[AuditEntry]:
        return [e.entry for e in self.effects if isinstance(e, AuditEffect)]

    @property
    def notifications(self) -> list[NotificationRequest]:
        return [
            e.notification for e in self.effects if isinstance(e, NotificationEffect)
        ]

    @property
    def changed(self) -> bool:
        return bool(self.effects)
