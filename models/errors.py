"""Error taxonomy for the PR CI tracker.

Every error the tracking engine raises derives from TrackerError so that
outer surfaces (CLI, HTTP API) can map them in one place.
"""

from typing import Optional


class TrackerError(Exception):
    """Base class for all tracker errors."""


class NetworkError(TrackerError):
    """Remote API call failed.

    Attributes:
        status: HTTP status code (0 when no response was received)
        message: Message from the response body's ``message`` field,
                 or ``"HTTP <status>"`` when the body carries none
    """

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        self.message = message or f"HTTP {status}"
        super().__init__(self.message)


class AlreadyRunningError(NetworkError):
    """The remote rejected a rerun because the workflow run is still active."""

    def __init__(self, message: str = "Workflow run is already running"):
        super().__init__(403, message)


class DecodeError(TrackerError):
    """A remote payload did not match the expected schema."""


class NoRunsFoundError(TrackerError):
    """Rerun discovery found no failed workflow runs."""


class AlreadyInProgressError(TrackerError):
    """A rerun or bulk operation is already in flight for the same subject."""


class ConfigurationError(TrackerError):
    """A required credential or identifier is missing."""


class RecordNotFoundError(TrackerError):
    """No tracked PR has the requested id or reference."""
