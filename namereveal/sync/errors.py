"""Error taxonomy for the state synchronization layer."""


class SyncError(Exception):
    """Base class for synchronization errors."""


class RemoteUnavailable(SyncError):
    """Network failure, non-success status, or malformed response body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(RemoteUnavailable):
    """The store refused the call because the rate-limit budget is exhausted."""

    def __init__(self, message: str, reset_at: float = 0.0):
        super().__init__(message, status_code=403)
        self.reset_at = reset_at


class CacheMiss(SyncError):
    """No fallback snapshot exists in the local cache."""


class CredentialMissing(SyncError):
    """A write was attempted without a usable credential."""
