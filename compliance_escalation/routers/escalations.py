"""Escalation router.

Deadline event intake, escalation instances and their human actions,
audit trail, dashboard stats, and on-demand evaluation.
"""

from fastapi import APIRouter, Depends, Query

from compliance_escalation.container import get_escalation_service
from compliance_escalation.core.escalation.models import (
    DeadlineEvent,
    EscalationInstance,
)
from compliance_escalation.core.escalation.stats import EscalationStats
from compliance_escalation.routers.errors import http_errors
from compliance_escalation.schemas.escalation import (
    AcknowledgeRequest,
    AuditTrailResponse,
    CancelSnoozeRequest,
    DeadlineEventListResponse,
    DeadlineEventWrite,
    EscalationInstanceListResponse,
    EvaluationPassResponse,
    EvaluationResponse,
    ReassignRequest,
    RecentAuditResponse,
    ResolveRequest,
    SnoozeRequest,
)
from compliance_escalation.services.escalation_engine import EscalationService

router = APIRouter(prefix="/api/escalation", tags=["escalation"])


@router.put("/events/{event_id}", response_model=DeadlineEvent)
async def upsert_event(
    event_id: str,
    body: DeadlineEventWrite,
    service: EscalationService = Depends(get_escalation_service),
) -> DeadlineEvent:
    """Create or replace a deadline event.

    Marking an event completed resolves its escalation on the next
    evaluation.
    """
    event = DeadlineEvent(id=event_id, **body.model_dump())
    return await service.events.upsert(event)


@router.get("/events", response_model=DeadlineEventListResponse)
async def list_events(
    service: EscalationService = Depends(get_escalation_service),
) -> DeadlineEventListResponse:
    events = await service.events.list()
    return DeadlineEventListResponse(events=events, count=len(events))


@router.get("/instances", response_model=EscalationInstanceListResponse)
async def list_instances(
    open_only: bool = False,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationInstanceListResponse:
    instances = await service.list_instances(open_only=open_only)
    return EscalationInstanceListResponse(instances=instances, count=len(instances))


@router.get("/instances/{event_id}", response_model=EscalationInstance)
async def get_instance(
    event_id: str,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationInstance:
    with http_errors():
        return await service.get_instance(event_id)


@router.post("/instances/{event_id}/evaluate", response_model=EvaluationResponse)
async def evaluate_instance(
    event_id: str,
    service: EscalationService = Depends(get_escalation_service),
) -> EvaluationResponse:
    """Evaluate one deadline event now.

    ``instance`` is null when no active chain applies to the event.
    """
    with http_errors():
        result = await service.evaluate_event(event_id)
    instance = result.instance
    if instance is not None:
        instance = await service.present(instance)
    return EvaluationResponse(
        event_id=event_id,
        instance=instance,
        audit_entries=result.audit_entries,
        notifications=result.notifications,
    )


@router.post("/instances/{event_id}/snooze", response_model=EscalationInstance)
async def snooze_instance(
    event_id: str,
    body: SnoozeRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationInstance:
    """Pause automatic escalation for ``snooze_hours`` with a justification."""
    with http_errors():
        instance = await service.snooze(
            event_id,
            snoozed_by=body.snoozed_by,
            hours=body.snooze_hours,
            reason=body.reason,
        )
    return await service.present(instance)


@router.post("/instances/{event_id}/snooze/cancel", response_model=EscalationInstance)
async def cancel_snooze(
    event_id: str,
    body: CancelSnoozeRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationInstance:
    with http_errors():
        instance = await service.cancel_snooze(event_id, cancelled_by=body.cancelled_by)
    return await service.present(instance)


@router.post("/instances/{event_id}/acknowledge", response_model=EscalationInstance)
async def acknowledge_instance(
    event_id: str,
    body: AcknowledgeRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationInstance:
    with http_errors():
        instance = await service.acknowledge(
            event_id,
            acknowledged_by=body.acknowledged_by,
            notes=body.notes,
        )
    return await service.present(instance)


@router.post("/instances/{event_id}/reassign", response_model=EscalationInstance)
async def reassign_instance(
    event_id: str,
    body: ReassignRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationInstance:
    with http_errors():
        instance = await service.reassign(
            event_id,
            assignee_id=body.assignee_id,
            assigned_by=body.assigned_by,
        )
    return await service.present(instance)


@router.post("/instances/{event_id}/resolve", response_model=EscalationInstance)
async def resolve_instance(
    event_id: str,
    body: ResolveRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationInstance:
    with http_errors():
        instance = await service.resolve(
            event_id,
            resolved_by=body.resolved_by,
            notes=body.notes,
        )
    return await service.present(instance)


@router.get("/instances/{event_id}/audit", response_model=AuditTrailResponse)
async def get_event_audit_trail(
    event_id: str,
    service: EscalationService = Depends(get_escalation_service),
) -> AuditTrailResponse:
    """Audit trail of one deadline event, oldest first."""
    with http_errors():
        entries = await service.audit_for_event(event_id)
    return AuditTrailResponse(event_id=event_id, entries=entries, count=len(entries))


@router.get("/audit", response_model=RecentAuditResponse)
async def get_recent_audit(
    limit: int = Query(default=50, ge=1, le=500),
    service: EscalationService = Depends(get_escalation_service),
) -> RecentAuditResponse:
    entries = await service.audit.recent(limit)
    return RecentAuditResponse(entries=entries, count=len(entries))


@router.get("/stats", response_model=EscalationStats)
async def get_stats(
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationStats:
    return await service.stats()


@router.post("/evaluate", response_model=EvaluationPassResponse)
async def run_evaluation_pass(
    service: EscalationService = Depends(get_escalation_service),
) -> EvaluationPassResponse:
    """Run one evaluation pass over every open deadline event now."""
    summary = await service.run_evaluation_pass()
    return EvaluationPassResponse(
        evaluated=summary.evaluated,
        level_changes=summary.level_changes,
        errors=summary.errors,
    )
