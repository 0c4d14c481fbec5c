class PlannerError(Exception):
    """
    Base class for errors raised by the task store, the checklist and the mail relay.

    The message is safe to return to the client.
    """

    message: str

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PlannerError):
    """A required input is missing or empty. Nothing was mutated."""


class NotFoundError(PlannerError):
    """An identifier does not resolve to a task or a checklist item. Nothing was mutated."""


class RelayError(PlannerError):
    """
    The mail relay failed to accept the message.

    The task reminder is left untouched. The underlying cause is kept in `details`.
    """

    details: list[str]

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []
