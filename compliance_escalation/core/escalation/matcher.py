"""Chain matching: select the escalation policy for a deadline event."""

from collections.abc import Iterable

from compliance_escalation.core.escalation.models import (
    DeadlineEvent,
    EscalationChainDefinition,
)


def chain_applies(chain: EscalationChainDefinition, event: DeadlineEvent) -> bool:
    """Return True if ``chain`` is active and covers the event's type and facility."""
    if not chain.is_active:
        return False
    if event.event_type not in chain.applies_to_event_types:
        return False
    return (
        not chain.applies_to_facility_ids
        or event.facility_id in chain.applies_to_facility_ids
    )


def match_chain(
    event: DeadlineEvent,
    chains: Iterable[EscalationChainDefinition],
) -> EscalationChainDefinition | None:
    """Select the chain that applies to ``event``.

    The first applicable chain in declaration order wins; overlapping
    chains are not reconciled. Returns None when no chain applies, in which
    case the event is never auto-escalated.
    """
    for chain in chains:
        if chain_applies(chain, event):
            return chain
    return None
