"""Escalation service wiring.

The service and its stores are created lazily on first use and shared by
the HTTP layer and the scheduler. The core never sees this module; it
receives stores by reference through ``EscalationService``.
"""

from compliance_escalation.config import settings
from compliance_escalation.services.assignee_directory import (
    REFERENCE_ASSIGNEES,
    AssigneeDirectory,
)
from compliance_escalation.services.audit_trail import AuditTrail
from compliance_escalation.services.deadline_events import DeadlineEventStore
from compliance_escalation.services.escalation_chain import (
    ChainRepository,
    build_reference_chains,
)
from compliance_escalation.services.escalation_engine import EscalationService
from compliance_escalation.services.instance_store import InstanceStore
from compliance_escalation.services.notifier import NotificationDispatcher

_service: EscalationService | None = None


def build_service(seed_reference_data: bool = True) -> EscalationService:
    """Create a service with fresh in-memory stores."""
    directory = AssigneeDirectory(REFERENCE_ASSIGNEES if seed_reference_data else ())
    chains = ChainRepository(
        build_reference_chains(directory) if seed_reference_data else ()
    )
    return EscalationService(
        directory=directory,
        chains=chains,
        events=DeadlineEventStore(),
        instances=InstanceStore(),
        audit=AuditTrail(),
        dispatcher=NotificationDispatcher(),
    )


def get_service() -> EscalationService:
    """Get or create the shared escalation service."""
    global _service
    if _service is None:
        _service = build_service(settings.seed_reference_data)
    return _service


async def get_escalation_service() -> EscalationService:
    """FastAPI dependency for the shared escalation service."""
    return get_service()


def reset_service() -> None:
    """Drop the shared service so the next call builds fresh stores."""
    global _service
    _service = None
