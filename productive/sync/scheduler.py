"""
Background autosave and connectivity probing.

Both loops run on daemon threads and sleep on a threading.Event so stop()
returns promptly. Neither does anything when no backend is configured.
"""

import logging
import threading
import time

from productive import notifications
from productive.lib.constants import DEFAULT_CHECK_INTERVAL, DEFAULT_SYNC_INTERVAL
from productive.sync.client import SyncClient
from productive.sync.transport import Transport

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """Runs a sync pass immediately, then every interval seconds."""

    def __init__(self, client: SyncClient, interval: float = DEFAULT_SYNC_INTERVAL):
        self.client = client
        self.interval = float(interval)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Start the loop. Returns False when sync is inert (local storage mode)."""
        if self.client.transport is None:
            logger.info("[SYNC] No backend configured, running in local storage mode")
            notifications.notify_local_mode()
            return False
        if self.running:
            return True

        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="autosave")
        self._thread.start()
        logger.info(f"[SYNC] Autosave started (every {self.interval:g}s)")
        return True

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        self.client.next_sync_at = None

    def tick(self) -> None:
        """One scheduled pass: skipped when offline or a pass is already running."""
        if not self.client.online:
            logger.debug("[SYNC] Offline, skipping scheduled pass")
            return
        if self.client.sync_in_progress:
            logger.debug("[SYNC] Pass in flight, skipping scheduled pass")
            return
        self.client.sync_all()

    def _run(self) -> None:
        self.client.sync_all()
        while True:
            self.client.next_sync_at = time.monotonic() + self.interval
            if self._stop.wait(self.interval):
                break
            self.tick()


class ConnectivityMonitor:
    """Probes the Remote Store health endpoint and reports transitions to the client."""

    def __init__(
        self,
        client: SyncClient,
        transport: Transport,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
    ):
        self.client = client
        self.transport = transport
        self.check_interval = float(check_interval)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def check(self) -> bool:
        """Probe once and push the result into the sync client."""
        online = self.transport.health()
        if online != self.client.online:
            logger.info(f"[SYNC] Connectivity changed: {'online' if online else 'offline'}")
        self.client.set_online(online)
        return online

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="connectivity")
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.check_interval):
            self.check()
