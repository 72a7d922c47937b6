"""Escalation engine constants."""

from typing import Final

MIN_LEVEL: Final[int] = 1
MAX_LEVEL: Final[int] = 4

# Display label per severity level, used in audit details and messages.
LEVEL_LABELS: Final[dict[int, str]] = {
    1: "Analyst",
    2: "Manager",
    3: "VP",
    4: "Executive",
}

# performed_by_name for entries written by the evaluator itself.
SYSTEM_ACTOR_NAME: Final[str] = "System"


def level_label(level: int) -> str:
    """Return ``Level N (Label)`` for audit details and messages."""
    label = LEVEL_LABELS.get(level)
    return f"Level {level} ({label})" if label else f"Level {level}"
