"""Assignee directory: people eligible to be escalation targets."""

from collections.abc import Iterable

from compliance_escalation.core.escalation.errors import NotFoundError
from compliance_escalation.core.escalation.models import AssigneeRef

REFERENCE_ASSIGNEES: tuple[AssigneeRef, ...] = (
    AssigneeRef(
        id="user-analyst-1",
        name="Sarah Chen",
        email="sarah.chen@company.com",
        role="Compliance Analyst",
    ),
    AssigneeRef(
        id="user-analyst-2",
        name="Michael Brown",
        email="michael.brown@company.com",
        role="Compliance Analyst",
    ),
    AssigneeRef(
        id="user-manager-1",
        name="Jennifer Williams",
        email="jennifer.williams@company.com",
        role="Compliance Manager",
        phone="+1-555-0101",
    ),
    AssigneeRef(
        id="user-manager-2",
        name="Robert Davis",
        email="robert.davis@company.com",
        role="Compliance Manager",
        phone="+1-555-0102",
    ),
    AssigneeRef(
        id="user-vp-1",
        name="Elizabeth Taylor",
        email="elizabeth.taylor@company.com",
        role="VP of Compliance",
        phone="+1-555-0201",
    ),
    AssigneeRef(
        id="user-exec-1",
        name="James Anderson",
        email="james.anderson@company.com",
        role="Chief Risk Officer",
        phone="+1-555-0301",
    ),
)


class AssigneeDirectory:
    """Read-only registry of assignees, keyed by id."""

    def __init__(self, assignees: Iterable[AssigneeRef] = ()) -> None:
        self._assignees: dict[str, AssigneeRef] = {a.id: a for a in assignees}

    def get(self, assignee_id: str) -> AssigneeRef:
        """Look up an assignee.

        Raises:
            NotFoundError: If no assignee has this id.
        """
        try:
            return self._assignees[assignee_id]
        except KeyError:
            raise NotFoundError("Assignee", assignee_id) from None

    def list(self) -> list[AssigneeRef]:
        return list(self._assignees.values())

    def __contains__(self, assignee_id: object) -> bool:
        return assignee_id in self._assignees
