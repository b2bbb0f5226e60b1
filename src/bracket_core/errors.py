"""Errors raised by the bracket engine and its service layer."""


class TournamentError(Exception):
    """Base class for all engine errors."""


class ValidationError(TournamentError):
    """A request violates a precondition; nothing was changed."""


class NotFoundError(ValidationError):
    """A referenced tournament, match, event or registration does not exist."""


class AuthorizationError(TournamentError):
    """The requester lacks the capability for the operation."""


class ConcurrencyConflictError(TournamentError):
    """A read-compute-write unit kept losing to concurrent writers."""

    def __init__(self, message="The operation failed due to a concurrent modification. Please try again."):
        super().__init__(message)


class StaleWriteError(TournamentError):
    """Raised by a store when the aggregate changed since it was read."""
