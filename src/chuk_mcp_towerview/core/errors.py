"""
Error hierarchy for tower visibility calculations.

Every failure aborts a job in one step; callers receive one of these and
never a partially computed mask.
"""

from ..constants import ErrorMessages


class VisibilityError(Exception):
    """Base error for visibility operations."""


class NetworkError(VisibilityError):
    """Transport failure while reaching the elevation provider."""


class ProviderError(VisibilityError):
    """Non-success response from the elevation provider.

    Attributes:
        status: HTTP status code
        body: Response body text
    """

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(ErrorMessages.PROVIDER_ERROR.format(status, body[:200]))


class FormatError(VisibilityError):
    """Raster payload could not be decoded."""


class ComputationTimeoutError(VisibilityError, TimeoutError):
    """Calculation exceeded its deadline."""


class ComputationCancelledError(VisibilityError):
    """Calculation was cancelled, usually superseded by a newer job."""

    def __init__(self, message: str, job_id: str | None = None) -> None:
        self.job_id = job_id
        super().__init__(message)


class InputError(VisibilityError, ValueError):
    """Calculation requested without usable input (e.g. no observer location)."""
