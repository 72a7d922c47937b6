"""Save-time validation of escalation chain definitions.

Every rule is checked (no short-circuit) so the admin UI can show all
problems at once. The evaluator relies on these rules holding and calls
``ensure_valid_chain`` to fail fast when handed an unvalidated chain.
"""

from compliance_escalation.core.escalation.constants import MAX_LEVEL, MIN_LEVEL
from compliance_escalation.core.escalation.errors import ChainValidationError
from compliance_escalation.core.escalation.models import EscalationChainDefinition


def chain_problems(chain: EscalationChainDefinition) -> list[str]:
    """Return a list of human-readable problems with ``chain`` (empty if valid)."""
    problems: list[str] = []

    if not chain.name.strip():
        problems.append("Chain name must not be empty")

    if not chain.applies_to_event_types:
        problems.append("Chain must apply to at least one event type")

    if not chain.steps:
        problems.append("Chain must have at least one step")
        return problems

    if len(chain.steps) > MAX_LEVEL:
        problems.append(f"Chain may have at most {MAX_LEVEL} steps")

    levels = [step.level for step in chain.steps]
    expected = list(range(MIN_LEVEL, len(chain.steps) + MIN_LEVEL))
    if levels != expected:
        problems.append(
            f"Step levels must be contiguous starting at {MIN_LEVEL} "
            f"(got {levels})"
        )

    first = chain.steps[0]
    if first.level == MIN_LEVEL and first.trigger_days_overdue != 0:
        problems.append(
            f"Level {MIN_LEVEL} must trigger at 0 days overdue "
            f"(got {first.trigger_days_overdue})"
        )

    for previous, step in zip(chain.steps, chain.steps[1:]):
        if step.trigger_days_overdue <= previous.trigger_days_overdue:
            problems.append(
                f"Level {step.level} trigger ({step.trigger_days_overdue}d) must be "
                f"greater than level {previous.level} trigger "
                f"({previous.trigger_days_overdue}d)"
            )

    for step in chain.steps:
        if not step.assignees:
            problems.append(f"Level {step.level} must have at least one assignee")
        ids = [a.id for a in step.assignees]
        if len(ids) != len(set(ids)):
            problems.append(f"Level {step.level} lists the same assignee twice")
        if not step.channels:
            problems.append(
                f"Level {step.level} must have at least one notification channel"
            )

    return problems


def validate_chain(chain: EscalationChainDefinition) -> EscalationChainDefinition:
    """Validate ``chain`` for saving.

    Raises:
        ChainValidationError: If any rule is violated.
    """
    problems = chain_problems(chain)
    if problems:
        raise ChainValidationError(problems)
    return chain


def ensure_valid_chain(chain: EscalationChainDefinition) -> None:
    """Fail fast if an invalid chain reaches the evaluator.

    Invalid chains are rejected on save, so reaching this branch is a
    programming error rather than a recoverable condition.
    """
    validate_chain(chain)
