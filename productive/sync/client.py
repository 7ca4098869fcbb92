"""
Client side of the sync protocol.

Keeps each Local Store dataset convergent with its Remote Store document.
A sync pass walks every dataType in turn and asks the Remote Store to
reconcile it; whichever side wins replaces the other wholesale.

Failure policy:
- Unauthenticated: logged quietly, nothing queued (logged-out is normal)
- Timeout / NetworkError / ApiError: logged, dataType queued for retry,
  transient notification, remaining dataTypes still processed
- Nothing ever propagates out of a pass

Usage:
    client = SyncClient(local_store, transport)
    client.sync_all()             # one pass, dropped if one is in flight
    client.manual_sync("crm")     # force one dataType
    client.set_online(True)       # retries pending dataTypes on reconnect
    client.status().to_dict()
"""

import logging
import threading
import time
from typing import Any, Callable, Iterable

from productive import notifications
from productive.lib.constants import DATA_TYPES, DEFAULT_FLUSH_BUDGET, LAST_SYNC_KEY
from productive.lib.timestamps import parse_ts
from productive.lib.types import ACTION_UPDATED, SyncOutcome, SyncStatus
from productive.store.local import LocalStore
from productive.sync.errors import NetworkError, SyncError, Unauthenticated
from productive.sync.transport import Transport

logger = logging.getLogger(__name__)

DataListener = Callable[[str, Any], None]


class SyncClient:
    """Reconciles Local Store datasets against the Remote Store."""

    def __init__(
        self,
        local: LocalStore,
        transport: Transport | None,
        data_types: Iterable[str] = DATA_TYPES,
        on_failure: Callable[[str, str], None] | None = None,
        on_remote_updates: Callable[[list[str]], None] | None = None,
    ):
        """
        Args:
            local: Local Store holding datasets, credential and sync baseline
            transport: Remote Store transport, or None when no backend is configured
            data_types: Datasets to reconcile, in pass order
            on_failure: Called with (data_type, reason) when a dataType is queued for retry
            on_remote_updates: Called with the dataTypes replaced by check_for_updates
        """
        self.local = local
        self.transport = transport
        self.data_types = tuple(data_types)
        self.on_failure = on_failure or notifications.notify_sync_failed
        self.on_remote_updates = on_remote_updates or notifications.notify_remote_updates

        self.online = True
        self.next_sync_at: float | None = None  # monotonic time, set by the scheduler

        self._in_flight = False
        self._flag_lock = threading.Lock()
        self._pending: dict[str, None] = {}  # ordered set
        self._listeners: list[DataListener] = []
        self._last_sync: dict[str, str] = self._load_last_sync()

    # Sync baseline

    def _load_last_sync(self) -> dict[str, str]:
        stored = self.local.get_json(LAST_SYNC_KEY, {})
        if not isinstance(stored, dict):
            logger.warning("[SYNC] Ignoring malformed last-sync record")
            return {}
        return {k: v for k, v in stored.items() if isinstance(v, str)}

    def _record_sync(self, data_type: str, timestamp: str) -> None:
        self._last_sync[data_type] = timestamp
        self.local.set_json(LAST_SYNC_KEY, self._last_sync)

    def last_sync(self, data_type: str) -> str | None:
        return self._last_sync.get(data_type)

    # Listeners

    def on_data_updated(self, listener: DataListener) -> None:
        """Register a callback(data_type, payload) fired when remote data replaces local."""
        self._listeners.append(listener)

    def _fire_data_updated(self, data_type: str, payload: Any) -> None:
        for listener in self._listeners:
            try:
                listener(data_type, payload)
            except Exception as e:
                logger.error(f"[SYNC] Data-updated listener failed for {data_type}: {e}")

    # Queries

    def is_authenticated(self) -> bool:
        return self.local.get_token() is not None

    @property
    def sync_in_progress(self) -> bool:
        return self._in_flight

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    def status(self) -> SyncStatus:
        next_in = None
        if self.next_sync_at is not None:
            next_in = max(0.0, self.next_sync_at - time.monotonic())
        return SyncStatus(
            online=self.online,
            sync_in_progress=self._in_flight,
            pending=self.pending,
            last_sync_times=dict(self._last_sync),
            next_sync_in=next_in,
        )

    # Single dataType

    def _push(self, data_type: str, payload: Any) -> SyncOutcome:
        body = {
            "dataType": data_type,
            "data": payload if payload is not None else {},
            "lastSync": self._last_sync.get(data_type),
        }
        response = self.transport.request("/data/sync", body)
        try:
            return SyncOutcome.from_response(response)
        except (ValueError, AttributeError) as e:
            raise NetworkError(f"Malformed sync response for {data_type}: {e}") from e

    def _apply(self, data_type: str, outcome: SyncOutcome) -> None:
        if outcome.action == ACTION_UPDATED:
            logger.info(f"[SYNC] Updating local {data_type} data from remote")
            self.local.set_dataset(data_type, outcome.payload)
            self._record_sync(data_type, outcome.timestamp)
            self._fire_data_updated(data_type, outcome.payload)
        else:
            logger.info(f"[SYNC] {data_type}: {outcome.action}")
            self._record_sync(data_type, outcome.timestamp)

    def sync_data_type(self, data_type: str, force: bool = False) -> str | None:
        """
        Reconcile one dataType.

        Returns:
            The action taken ("created", "synced", "updated"), or None when
            skipped or failed. Never raises a SyncError.
        """
        if self.transport is None:
            return None

        payload = self.local.get_dataset(data_type)
        if payload is None and not force:
            logger.debug(f"[SYNC] No local data for {data_type}, skipping")
            return None

        try:
            outcome = self._push(data_type, payload)
        except Unauthenticated:
            logger.debug(f"[SYNC] Not authenticated, skipping {data_type}")
            return None
        except SyncError as e:
            logger.error(f"[SYNC] Failed to sync {data_type}: {e}")
            self._pending[data_type] = None
            self.on_failure(data_type, str(e))
            return None

        self._apply(data_type, outcome)
        self._pending.pop(data_type, None)
        return outcome.action

    # Full passes

    def sync_all(self, force: bool = False) -> dict[str, str | None]:
        """
        Run one pass over every dataType.

        A pass started while another is in flight is dropped unless forced.
        Returns the per-dataType action (None for skipped or failed).
        """
        if self.transport is None:
            return {}

        if not self.is_authenticated():
            logger.info("[SYNC] User not authenticated, skipping sync")
            return {}

        with self._flag_lock:
            if self._in_flight and not force:
                logger.info("[SYNC] Sync already in progress, skipping")
                return {}
            self._in_flight = True

        results: dict[str, str | None] = {}
        try:
            logger.info("[SYNC] Starting full data sync")
            for data_type in self.data_types:
                results[data_type] = self.sync_data_type(data_type, force)
            failed = [dt for dt in self.data_types if dt in self._pending]
            if failed:
                logger.warning(f"[SYNC] Pass finished with pending: {', '.join(failed)}")
            else:
                logger.info("[SYNC] Full data sync completed")
        finally:
            with self._flag_lock:
                self._in_flight = False

        return results

    def sync_pending(self) -> list[str]:
        """Retry every pending dataType. Returns those that synced."""
        if not self._pending:
            return []

        logger.info(f"[SYNC] Syncing {len(self._pending)} pending data types")
        synced = []
        for data_type in list(self._pending):
            if self.sync_data_type(data_type, force=True) is not None:
                synced.append(data_type)
        return synced

    def manual_sync(self, data_type: str) -> str | None:
        logger.info(f"[SYNC] Manual sync requested for {data_type}")
        return self.sync_data_type(data_type, force=True)

    def manual_sync_all(self) -> dict[str, str | None]:
        logger.info("[SYNC] Manual sync all requested")
        return self.sync_all(force=True)

    def check_for_updates(self) -> list[str]:
        """
        Pull any dataType changed remotely since our last sync.

        Used when the client returns to the foreground. Returns the
        dataTypes whose local blob was replaced.
        """
        if self.transport is None or not self.online or not self.is_authenticated():
            return []

        try:
            response = self.transport.request("/data", method="GET")
        except SyncError as e:
            logger.error(f"[SYNC] Failed to check for updates: {e}")
            return []

        updated = []
        for data_type, info in (response.get("data") or {}).items():
            if data_type not in self.data_types or not isinstance(info, dict):
                continue
            remote_ts = info.get("lastModified")
            if not remote_ts:
                continue
            last = self._last_sync.get(data_type)
            try:
                newer = last is None or parse_ts(last) < parse_ts(remote_ts)
            except (TypeError, ValueError) as e:
                logger.warning(f"[SYNC] Skipping {data_type}: bad lastModified {remote_ts!r} ({e})")
                continue
            if newer:
                logger.info(f"[SYNC] Found updates for {data_type}")
                self.local.set_dataset(data_type, info.get("data"))
                self._record_sync(data_type, remote_ts)
                self._fire_data_updated(data_type, info.get("data"))
                updated.append(data_type)

        if updated:
            self.on_remote_updates(updated)
        return updated

    # Connectivity and teardown

    def set_online(self, online: bool) -> None:
        """Record connectivity; coming back online retries pending dataTypes."""
        was_online = self.online
        self.online = online
        if online and not was_online:
            logger.info("[SYNC] Back online, syncing pending data")
            self.sync_pending()
        elif not online and was_online:
            logger.info("[SYNC] Went offline, autosave paused")

    def flush(self, budget: float = DEFAULT_FLUSH_BUDGET) -> bool:
        """
        Best-effort forced pass before shutdown.

        Fires the pass on a daemon thread and waits at most budget seconds.
        Returns True if the pass finished within the budget.
        """
        if self.transport is None or not self.is_authenticated():
            return False
        worker = threading.Thread(
            target=self.sync_all, kwargs={"force": True}, daemon=True, name="sync-flush"
        )
        worker.start()
        worker.join(timeout=budget)
        if worker.is_alive():
            logger.warning(f"[SYNC] Shutdown flush still running after {budget:g}s, not waiting")
            return False
        return True
