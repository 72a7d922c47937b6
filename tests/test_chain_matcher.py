"""Tests for selecting the escalation chain of a deadline event."""

from datetime import date

from compliance_escalation.core.escalation import (
    DeadlineEvent,
    EventType,
    match_chain,
)
from compliance_escalation.core.escalation.matcher import chain_applies
from compliance_escalation.core.escalation.models import evolve
from compliance_escalation.services.assignee_directory import (
    REFERENCE_ASSIGNEES,
    AssigneeDirectory,
)
from compliance_escalation.services.escalation_chain import build_reference_chains


def reference_chains():
    return build_reference_chains(AssigneeDirectory(REFERENCE_ASSIGNEES))


def make_event(event_type: EventType, facility_id: str = "facility-1") -> DeadlineEvent:
    return DeadlineEvent(
        id="evt-1",
        event_type=event_type,
        facility_id=facility_id,
        due_date=date(2024, 6, 1),
    )


class TestMatchChain:
    """First active chain covering the event wins."""

    def test_matches_by_event_type(self):
        chains = reference_chains()

        assert match_chain(make_event(EventType.covenant_test), chains).id == "chain-1"
        assert match_chain(make_event(EventType.compliance_event), chains).id == "chain-2"
        assert match_chain(make_event(EventType.waiver_expiration), chains).id == "chain-2"
        assert match_chain(make_event(EventType.notification_due), chains).id == "chain-3"

    def test_inactive_chain_is_skipped(self):
        chains = reference_chains()
        chains[0] = evolve(chains[0], is_active=False)

        assert match_chain(make_event(EventType.covenant_test), chains) is None

    def test_no_chain_for_event_type(self):
        chains = [c for c in reference_chains() if c.id != "chain-3"]

        assert match_chain(make_event(EventType.notification_due), chains) is None

    def test_declaration_order_breaks_overlap(self):
        standard = reference_chains()[0]
        facility_chain = evolve(
            standard,
            id="chain-facility",
            applies_to_facility_ids=("facility-9",),
        )

        event = make_event(EventType.covenant_test, facility_id="facility-9")

        assert match_chain(event, [facility_chain, standard]).id == "chain-facility"
        assert match_chain(event, [standard, facility_chain]).id == "chain-1"


class TestChainApplies:
    """Facility scoping."""

    def test_empty_facility_list_applies_everywhere(self):
        chain = reference_chains()[0]
        assert chain_applies(chain, make_event(EventType.covenant_test, "anywhere"))

    def test_facility_list_restricts_scope(self):
        chain = evolve(reference_chains()[0], applies_to_facility_ids=("facility-2",))

        assert chain_applies(chain, make_event(EventType.covenant_test, "facility-2"))
        assert not chain_applies(chain, make_event(EventType.covenant_test, "facility-1"))
