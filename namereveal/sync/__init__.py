"""Shared state synchronization for namereveal sessions.

Lets many independent sessions observe and mutate one small shared document
kept in a remote store that has no transactions and coarse rate limits.
"""

from .cache import CachedSnapshot, LocalCache
from .errors import CacheMiss, CredentialMissing, RateLimited, RemoteUnavailable, SyncError
from .poller import StatePoller
from .rate_limit import RateLimiter, RateLimitStatus
from .remote import GistStateStore, ProxyStateStore, RemoteStateStore, create_store
from .sync_client import LoadResult, StateSource, SyncClient

__all__ = [
    "CachedSnapshot",
    "LocalCache",
    "CacheMiss",
    "CredentialMissing",
    "RateLimited",
    "RemoteUnavailable",
    "SyncError",
    "StatePoller",
    "RateLimiter",
    "RateLimitStatus",
    "GistStateStore",
    "ProxyStateStore",
    "RemoteStateStore",
    "create_store",
    "LoadResult",
    "StateSource",
    "SyncClient",
]
