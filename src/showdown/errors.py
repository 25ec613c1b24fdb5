"""Exceptions raised by the tournament engine and state store."""


class ShowdownError(Exception):
    """Base exception for all tournament errors.

    Every error here carries a short message meant to be shown to the user.
    """

    pass


# ========== Validation ==========


class ValidationError(ShowdownError):
    """Raised when input does not satisfy a precondition."""

    pass


class ScheduleValidationError(ValidationError):
    """Raised when teams are not ready for schedule generation."""

    pass


class ScoreValidationError(ValidationError):
    """Raised when submitted game scores are malformed."""

    pass


class StateFormatError(ValidationError):
    """Raised when a stored or submitted state does not have the expected shape."""

    pass


class SetupLockedError(ShowdownError):
    """Raised when team setup is changed after the schedule exists."""

    pass


# ========== Lookup ==========


class NotFoundError(ShowdownError):
    """Raised when a referenced entity is absent from the current state."""

    pass


class TeamNotFoundError(NotFoundError):
    pass


class MatchNotFoundError(NotFoundError):
    pass


class KnockoutMatchNotFoundError(NotFoundError):
    pass
