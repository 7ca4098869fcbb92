"""Sync failure taxonomy.

Every failure a Remote Store round trip can produce. All of them are caught
at the per-dataType boundary in the sync client; none reaches the caller of
a sync pass.
"""


class SyncError(Exception):
    """Base class for sync failures."""


class Unauthenticated(SyncError):
    """No credential stored. Expected steady state for a logged-out user."""

    def __init__(self, message: str = "No authentication token"):
        super().__init__(message)


class Timeout(SyncError):
    """Request did not complete within the transport timeout."""

    def __init__(self, endpoint: str, seconds: float):
        self.endpoint = endpoint
        self.seconds = seconds
        super().__init__(f"Request timeout after {seconds:g}s: {endpoint}")


class NetworkError(SyncError):
    """Request could not be sent or its response could not be received."""


class ApiError(SyncError):
    """Remote Store answered with a non-2xx status."""

    def __init__(self, message: str, status: int):
        self.status = status
        super().__init__(message)
