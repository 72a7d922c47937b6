"""Escalation engine error taxonomy.

* ``ChainValidationError``: a chain definition was rejected at save time.
* ``PreconditionViolation``: an operation was invoked on an instance in a
  state that does not allow it (e.g. snoozing a resolved escalation).
* ``NotFoundError``: an unknown chain, event, instance or assignee id.

Notification delivery failures are not part of this taxonomy; the
dispatcher logs them and never raises.
"""


class EscalationError(Exception):
    """Base class for escalation engine errors."""


class ChainValidationError(EscalationError):
    """Chain definition failed validation.

    ``problems`` lists every violation found, not just the first one.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class PreconditionViolation(EscalationError):
    """Operation rejected because a precondition does not hold."""


class NotFoundError(EscalationError):
    """Referenced entity does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")
