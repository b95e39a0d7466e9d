"""Exception taxonomy for the tournament engine.

Every error is raised before any state is mutated, so callers can recover
by re-reading the current bracket and retrying.
"""


class BracketError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BracketError):
    """Bad creation input or a malformed/illegal player action."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field  # "name", "participant_count", "team", "action", ...


class InvalidStateError(BracketError):
    """Action against a tournament or match not in the required status."""


class NotFoundError(BracketError):
    """Unknown tournament or match id."""


class PersistenceError(BracketError):
    """A store write or read failed. Safe to retry the same call."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause
