"""Sync between the Local Store and the Remote Store.

- engine: the last-write-wins decision, run on the Remote Store side
- client: per-dataType push/pull loop with pending retry and status
- scheduler: autosave timer and connectivity probe threads
- transport: bearer-authenticated JSON over HTTP
- errors: failure taxonomy caught at the per-dataType boundary
"""

from productive.sync.errors import (
    SyncError,
    Unauthenticated,
    Timeout,
    NetworkError,
    ApiError,
)
from productive.sync.engine import reconcile, remote_is_newer
from productive.sync.transport import Transport
from productive.sync.client import SyncClient
from productive.sync.scheduler import AutosaveScheduler, ConnectivityMonitor

__all__ = [
    "SyncError",
    "Unauthenticated",
    "Timeout",
    "NetworkError",
    "ApiError",
    "reconcile",
    "remote_is_newer",
    "Transport",
    "SyncClient",
    "AutosaveScheduler",
    "ConnectivityMonitor",
]
