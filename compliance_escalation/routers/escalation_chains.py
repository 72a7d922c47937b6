"""Escalation chain administration router.

CRUD over chain definitions plus the assignee directory used to fill in
chain steps.
"""

import uuid

from fastapi import APIRouter, Depends, Response, status

from compliance_escalation.container import get_escalation_service
from compliance_escalation.core.escalation.errors import (
    ChainValidationError,
    PreconditionViolation,
)
from compliance_escalation.core.escalation.models import (
    AssigneeRef,
    EscalationChainDefinition,
    EscalationStep,
)
from compliance_escalation.routers.errors import http_errors
from compliance_escalation.schemas.escalation_chain import (
    AssigneeListResponse,
    EscalationChainCreate,
    EscalationChainListResponse,
    EscalationChainWrite,
)
from compliance_escalation.services.assignee_directory import AssigneeDirectory
from compliance_escalation.services.escalation_engine import EscalationService

router = APIRouter(prefix="/api/escalation", tags=["escalation-chains"])


def _to_chain(
    chain_id: str,
    body: EscalationChainWrite,
    directory: AssigneeDirectory,
) -> EscalationChainDefinition:
    """Build a chain definition, resolving assignee ids via the directory.

    Unknown assignee ids are reported as validation problems.
    """
    problems: list[str] = []
    steps = []
    for step in body.steps:
        assignees: list[AssigneeRef] = []
        for assignee_id in step.assignee_ids:
            if assignee_id in directory:
                assignees.append(directory.get(assignee_id))
            else:
                problems.append(
                    f"Level {step.level} references unknown assignee {assignee_id}"
                )
        steps.append(
            EscalationStep(
                id=step.id,
                level=step.level,
                trigger_days_overdue=step.trigger_days_overdue,
                assignees=tuple(assignees),
                channels=tuple(step.channels),
                notify_previous_levels=step.notify_previous_levels,
            )
        )
    if problems:
        raise ChainValidationError(problems)

    return EscalationChainDefinition(
        id=chain_id,
        name=body.name,
        description=body.description,
        is_active=body.is_active,
        applies_to_event_types=tuple(body.applies_to_event_types),
        applies_to_facility_ids=tuple(body.applies_to_facility_ids),
        steps=tuple(steps),
        created_by=body.created_by,
    )


@router.get("/assignees", response_model=AssigneeListResponse)
async def list_assignees(
    service: EscalationService = Depends(get_escalation_service),
) -> AssigneeListResponse:
    """List people that can be placed on a chain step."""
    assignees = service.directory.list()
    return AssigneeListResponse(assignees=assignees, count=len(assignees))


@router.get("/chains", response_model=EscalationChainListResponse)
async def list_chains(
    active_only: bool = False,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationChainListResponse:
    """List chains in declaration order (the order the matcher uses)."""
    chains = await service.chains.list(active_only=active_only)
    return EscalationChainListResponse(chains=chains, count=len(chains))


@router.post(
    "/chains",
    response_model=EscalationChainDefinition,
    status_code=status.HTTP_201_CREATED,
)
async def create_chain(
    body: EscalationChainCreate,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationChainDefinition:
    """Create a chain.

    Returns 422 listing every structural problem when the chain is
    malformed, and 409 when the id is already taken.
    """
    chain_id = body.id or f"chain-{uuid.uuid4().hex[:12]}"
    with http_errors():
        if any(c.id == chain_id for c in await service.chains.list()):
            raise PreconditionViolation(f"Escalation chain already exists: {chain_id}")
        chain = _to_chain(chain_id, body, service.directory)
        return await service.chains.save(chain)


@router.get("/chains/{chain_id}", response_model=EscalationChainDefinition)
async def get_chain(
    chain_id: str,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationChainDefinition:
    with http_errors():
        return await service.chains.get(chain_id)


@router.put("/chains/{chain_id}", response_model=EscalationChainDefinition)
async def update_chain(
    chain_id: str,
    body: EscalationChainWrite,
    service: EscalationService = Depends(get_escalation_service),
) -> EscalationChainDefinition:
    """Replace a chain definition.

    Escalations already running keep the steps they started with.
    """
    with http_errors():
        await service.chains.get(chain_id)
        chain = _to_chain(chain_id, body, service.directory)
        return await service.chains.save(chain)


@router.delete("/chains/{chain_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chain(
    chain_id: str,
    service: EscalationService = Depends(get_escalation_service),
) -> Response:
    """Soft-delete a chain: it stays listed but no longer matches events."""
    with http_errors():
        await service.chains.delete(chain_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
