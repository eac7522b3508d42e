"""
Domain-specific exception hierarchy for the booking availability engine.
"""


class BookableError(Exception):
    """Base class for all application-level errors."""


class ConfigError(BookableError):
    """Raised when the schedule configuration is missing or malformed."""


class SourceUnavailable(BookableError):
    """Raised when calendar-feed or ledger data cannot be fetched or parsed."""


class InvalidInput(BookableError):
    """Raised when a caller passes a value the engine cannot compute with."""


class AuthenticationError(BookableError):
    """Raised when authentication or token handling fails."""
