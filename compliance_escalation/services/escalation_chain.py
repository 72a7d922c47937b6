"""Escalation chain service.

Manages chain definitions for the admin UI: validated saves, listing in
declaration order, and soft deletion. Declaration order matters because
the matcher picks the first applicable chain.
"""

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime

from compliance_escalation.core.escalation.enums import Channel, EventType
from compliance_escalation.core.escalation.errors import NotFoundError
from compliance_escalation.core.escalation.models import (
    EscalationChainDefinition,
    EscalationStep,
    evolve,
)
from compliance_escalation.core.escalation.validation import validate_chain
from compliance_escalation.logging_config import get_logger
from compliance_escalation.services.assignee_directory import AssigneeDirectory

logger = get_logger(__name__)

_REFERENCE_UPDATED_AT = datetime(2024, 6, 1, 14, 30, tzinfo=UTC)


class ChainRepository:
    """In-memory store of chain definitions.

    Saves are forward-only: running escalations keep the step data they
    captured when they started (see ``InstanceStore``), so editing a chain
    never re-levels an existing escalation.
    """

    def __init__(self, chains: Iterable[EscalationChainDefinition] = ()) -> None:
        self._chains: dict[str, EscalationChainDefinition] = {}
        self._lock = asyncio.Lock()
        for chain in chains:
            validate_chain(chain)
            self._chains[chain.id] = chain

    async def save(
        self,
        chain: EscalationChainDefinition,
        now: datetime | None = None,
    ) -> EscalationChainDefinition:
        """Validate and store a chain, creating or replacing it by id.

        ``created_at``/``created_by`` of an existing chain are preserved;
        ``updated_at`` is always set to ``now``.

        Raises:
            ChainValidationError: If the chain is malformed. Nothing is stored.
        """
        validate_chain(chain)
        now = now or datetime.now(UTC)

        async with self._lock:
            existing = self._chains.get(chain.id)
            if existing is not None:
                stored = evolve(
                    chain,
                    created_at=existing.created_at,
                    created_by=existing.created_by,
                    updated_at=now,
                )
            else:
                stored = evolve(
                    chain,
                    created_at=chain.created_at or now,
                    updated_at=now,
                )
            self._chains[chain.id] = stored

        logger.info(
            "Saved escalation chain",
            chain_id=stored.id,
            created=existing is None,
            steps=len(stored.steps),
            is_active=stored.is_active,
        )
        return stored

    async def get(self, chain_id: str) -> EscalationChainDefinition:
        """Raises NotFoundError for an unknown id."""
        chain = self._chains.get(chain_id)
        if chain is None:
            raise NotFoundError("Escalation chain", chain_id)
        return chain

    async def list(self, active_only: bool = False) -> list[EscalationChainDefinition]:
        """List chains in declaration order."""
        chains = list(self._chains.values())
        if active_only:
            chains = [c for c in chains if c.is_active]
        return chains

    async def delete(
        self,
        chain_id: str,
        now: datetime | None = None,
    ) -> EscalationChainDefinition:
        """Soft-delete a chain by deactivating it.

        Raises:
            NotFoundError: If the chain does not exist.
        """
        async with self._lock:
            chain = self._chains.get(chain_id)
            if chain is None:
                raise NotFoundError("Escalation chain", chain_id)
            deactivated = evolve(
                chain, is_active=False, updated_at=now or datetime.now(UTC)
            )
            self._chains[chain_id] = deactivated

        logger.info("Deactivated escalation chain", chain_id=chain_id)
        return deactivated


def build_reference_chains(
    directory: AssigneeDirectory,
) -> list[EscalationChainDefinition]:
    """The reference policy set: standard, critical and notification chains."""
    a = directory.get
    email_app = (Channel.email, Channel.in_app)
    email_app_slack = (Channel.email, Channel.in_app, Channel.slack)
    all_channels = (
        Channel.email,
        Channel.in_app,
        Channel.slack,
        Channel.calendar_push,
    )

    return [
        EscalationChainDefinition(
            id="chain-1",
            name="Standard Covenant Escalation",
            description=(
                "Default escalation chain for covenant test deadlines. Escalates "
                "from analyst to manager at 3 days overdue, VP at 7 days, and "
                "executive at 14 days."
            ),
            applies_to_event_types=(EventType.covenant_test,),
            steps=(
                EscalationStep(
                    id="step-1-1",
                    level=1,
                    trigger_days_overdue=0,
                    assignees=(a("user-analyst-1"), a("user-analyst-2")),
                    channels=email_app,
                ),
                EscalationStep(
                    id="step-1-2",
                    level=2,
                    trigger_days_overdue=3,
                    assignees=(a("user-manager-1"),),
                    channels=email_app_slack,
                    notify_previous_levels=True,
                ),
                EscalationStep(
                    id="step-1-3",
                    level=3,
                    trigger_days_overdue=7,
                    assignees=(a("user-vp-1"),),
                    channels=email_app_slack,
                    notify_previous_levels=True,
                ),
                EscalationStep(
                    id="step-1-4",
                    level=4,
                    trigger_days_overdue=14,
                    assignees=(a("user-exec-1"),),
                    channels=all_channels,
                    notify_previous_levels=True,
                ),
            ),
            created_at=datetime(2024, 1, 15, 10, 0, tzinfo=UTC),
            updated_at=_REFERENCE_UPDATED_AT,
            created_by="user-admin",
        ),
        EscalationChainDefinition(
            id="chain-2",
            name="Critical Compliance Escalation",
            description=(
                "Fast-track escalation for critical compliance events. Shorter "
                "intervals: 1 day to manager, 3 days to VP, 5 days to executive."
            ),
            applies_to_event_types=(
                EventType.compliance_event,
                EventType.waiver_expiration,
            ),
            steps=(
                EscalationStep(
                    id="step-2-1",
                    level=1,
                    trigger_days_overdue=0,
                    assignees=(a("user-analyst-1"),),
                    channels=email_app_slack,
                ),
                EscalationStep(
                    id="step-2-2",
                    level=2,
                    trigger_days_overdue=1,
                    assignees=(a("user-manager-1"), a("user-manager-2")),
                    channels=email_app_slack,
                    notify_previous_levels=True,
                ),
                EscalationStep(
                    id="step-2-3",
                    level=3,
                    trigger_days_overdue=3,
                    assignees=(a("user-vp-1"),),
                    channels=all_channels,
                    notify_previous_levels=True,
                ),
                EscalationStep(
                    id="step-2-4",
                    level=4,
                    trigger_days_overdue=5,
                    assignees=(a("user-exec-1"),),
                    channels=all_channels,
                    notify_previous_levels=True,
                ),
            ),
            created_at=datetime(2024, 2, 20, 14, 0, tzinfo=UTC),
            updated_at=_REFERENCE_UPDATED_AT,
            created_by="user-admin",
        ),
        EscalationChainDefinition(
            id="chain-3",
            name="Notification Due Escalation",
            description=(
                "Standard escalation for notification deadlines with moderate "
                "urgency."
            ),
            applies_to_event_types=(EventType.notification_due,),
            steps=(
                EscalationStep(
                    id="step-3-1",
                    level=1,
                    trigger_days_overdue=0,
                    assignees=(a("user-analyst-2"),),
                    channels=email_app,
                ),
                EscalationStep(
                    id="step-3-2",
                    level=2,
                    trigger_days_overdue=2,
                    assignees=(a("user-manager-2"),),
                    channels=email_app_slack,
                    notify_previous_levels=True,
                ),
                EscalationStep(
                    id="step-3-3",
                    level=3,
                    trigger_days_overdue=5,
                    assignees=(a("user-vp-1"),),
                    channels=email_app_slack,
                    notify_previous_levels=True,
                ),
            ),
            created_at=datetime(2024, 3, 10, 9, 0, tzinfo=UTC),
            updated_at=_REFERENCE_UPDATED_AT,
            created_by="user-admin",
        ),
    ]
