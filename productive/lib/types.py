"""
Shared data types for Productive Cloud.

This module contains dataclasses used by both the server and the sync
client to avoid circular imports.
"""

from dataclasses import dataclass, field
from typing import Any

# Reconciliation outcomes
ACTION_CREATED = "created"  # No remote document existed; created from local payload
ACTION_SYNCED = "synced"  # Local payload pushed over the remote document
ACTION_UPDATED = "updated"  # Remote was newer; caller must adopt the remote payload
VALID_ACTIONS = (ACTION_CREATED, ACTION_SYNCED, ACTION_UPDATED)


@dataclass
class SyncOutcome:
    """Result of one reconciliation of a dataset."""
    action: str  # one of VALID_ACTIONS
    payload: Any
    timestamp: str  # ISO timestamp the caller records as its last sync
    version: int | None = None

    def to_response(self) -> dict:
        body = {"action": self.action, "data": self.payload, "timestamp": self.timestamp}
        if self.version is not None:
            body["version"] = self.version
        return body

    @classmethod
    def from_response(cls, body: dict) -> "SyncOutcome":
        action = body.get("action")
        if action not in VALID_ACTIONS:
            raise ValueError(f"Unknown sync action: {action!r}")
        return cls(
            action=action,
            payload=body.get("data"),
            timestamp=body.get("timestamp"),
            version=body.get("version"),
        )


@dataclass
class SyncStatus:
    """Snapshot of the sync client for status queries."""
    online: bool
    sync_in_progress: bool
    pending: list[str] = field(default_factory=list)
    last_sync_times: dict[str, str] = field(default_factory=dict)
    next_sync_in: float | None = None  # Seconds until the next scheduled pass

    def to_dict(self) -> dict:
        return {
            "isOnline": self.online,
            "syncInProgress": self.sync_in_progress,
            "pendingSyncs": list(self.pending),
            "lastSyncTimes": dict(self.last_sync_times),
            "nextSyncIn": self.next_sync_in,
        }
