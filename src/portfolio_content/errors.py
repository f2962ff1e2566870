"""
Custom error types and exit codes for the portfolio content core.

Repositories and the store raise these exceptions. The write coordinator
turns them into structured results so callers can redisplay a form instead
of crashing a page.
"""

from typing import Optional


class PortfolioError(Exception):
    """Base exception for portfolio content errors."""

    exit_code = 1
    kind = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(PortfolioError):
    """Configuration or path-related errors."""

    exit_code = 2
    kind = "configuration"


class NotFoundError(PortfolioError):
    """A base record is missing for the given identifier or slug."""

    exit_code = 3
    kind = "not_found"


class ValidationFailure(PortfolioError):
    """A required shared or localized field is missing or unknown."""

    exit_code = 5
    kind = "validation"


class ConflictOnWrite(PortfolioError):
    """Store-level constraint violation, e.g. a duplicate slug."""

    exit_code = 6
    kind = "conflict"


class PartialWriteFailure(PortfolioError):
    """
    The base write succeeded but a translation or tag write failed.

    The base row persists; the caller must retry the localized portion.
    """

    exit_code = 6
    kind = "partial_write"

    def __init__(self, message: str, base_id: Optional[str] = None, step: Optional[str] = None):
        super().__init__(message)
        self.base_id = base_id
        self.step = step


class StoreUnavailable(PortfolioError):
    """Transport or infrastructure failure. Fully retryable."""

    exit_code = 7
    kind = "store_unavailable"


# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_NOT_FOUND = 3
EXIT_VALIDATION_ERROR = 5
EXIT_CONFLICT = 6
EXIT_STORE_UNAVAILABLE = 7
