"""Health check endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Depends

from compliance_escalation.container import get_escalation_service
from compliance_escalation.services.escalation_engine import EscalationService
from compliance_escalation.services.scheduler import get_scheduler

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """
    Health check endpoint with engine status.

    Reports whether the periodic evaluation scheduler is running and how
    many chains are loaded. Used by Docker health checks and load balancers.
    """
    chains = await service.chains.list()
    return {
        "status": "healthy",
        "scheduler": "running" if get_scheduler() is not None else "stopped",
        "chains": len(chains),
        "active_chains": sum(1 for chain in chains if chain.is_active),
    }


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """
    Liveness probe.

    Returns success if the application process is running.
    """
    return {"status": "alive"}
