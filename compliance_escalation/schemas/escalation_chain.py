"""Escalation chain request/response schemas."""

from pydantic import BaseModel, Field

from compliance_escalation.core.escalation.constants import MAX_LEVEL, MIN_LEVEL
from compliance_escalation.core.escalation.enums import Channel, EventType
from compliance_escalation.core.escalation.models import (
    AssigneeRef,
    EscalationChainDefinition,
)


class EscalationStepWrite(BaseModel):
    """One step of a chain as submitted by the admin UI.

    Assignees are referenced by id and resolved against the directory;
    their order decides who becomes the current assignee.
    """

    id: str | None = None
    level: int = Field(ge=MIN_LEVEL, le=MAX_LEVEL)
    trigger_days_overdue: int = Field(ge=0)
    assignee_ids: list[str] = Field(default_factory=list)
    channels: list[Channel] = Field(default_factory=list)
    notify_previous_levels: bool = False


class EscalationChainWrite(BaseModel):
    """Request schema for creating or replacing a chain.

    Structural rules are checked by the service, which reports every
    problem in a single 422 response.
    """

    name: str
    description: str = ""
    is_active: bool = True
    applies_to_event_types: list[EventType] = Field(default_factory=list)
    applies_to_facility_ids: list[str] = Field(
        default_factory=list,
        description="Facility ids the chain applies to. Empty applies to all.",
    )
    steps: list[EscalationStepWrite] = Field(default_factory=list)
    created_by: str | None = None


class EscalationChainCreate(EscalationChainWrite):
    """Create request; the id is generated when omitted."""

    id: str | None = Field(default=None, min_length=1)


class EscalationChainListResponse(BaseModel):
    """List of chains in declaration order."""

    chains: list[EscalationChainDefinition]
    count: int


class AssigneeListResponse(BaseModel):
    """Assignee directory listing."""

    assignees: list[AssigneeRef]
    count: int
