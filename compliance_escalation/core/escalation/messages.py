"""Notification message rendering for escalation steps."""

import html

from compliance_escalation.core.escalation.constants import level_label
from compliance_escalation.core.escalation.models import DeadlineEvent, EscalationStep


def event_display_name(event: DeadlineEvent) -> str:
    """Return the event title, falling back to its id."""
    return event.title or event.id


def build_escalation_message(
    event: DeadlineEvent,
    step: EscalationStep,
    days_overdue: int,
) -> str:
    """Build the notification message for a newly reached escalation step.

    Args:
        event: The overdue deadline event.
        step: The step that was reached.
        days_overdue: Calendar days past the due date.

    Returns:
        Formatted message string. Event-supplied text is HTML-escaped
        because some channels render HTML.
    """
    safe_title = html.escape(event_display_name(event))
    safe_facility = html.escape(event.facility_id)
    day_word = "day" if days_overdue == 1 else "days"

    lines = [
        f"[ESCALATION {level_label(step.level).upper()}] {safe_title}",
        f"Deadline {event.due_date.isoformat()} is {days_overdue} {day_word} overdue.",
        f"Facility: {safe_facility}",
    ]
    if step.level == 1:
        lines.append("Please complete or snooze this deadline with a justification.")
    else:
        lines.append(
            "Previous escalation levels have not resolved this deadline. "
            "Please take action immediately."
        )
    return "\n".join(lines)
