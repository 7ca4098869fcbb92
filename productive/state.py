"""
Application state for one Local Store.

AppState is the single construction point for the in-memory datasets. It
loads each book from the Local Store, writes it back on save, and reloads a
book when the sync client replaces its dataset with newer remote data.

Usage:
    state = AppState(LocalStore(data_dir))
    state.crm.create_project("Website")
    state.save("crm")
    state.attach(sync_client)
"""

import logging
from typing import Any

from productive.lib.constants import DATA_TYPES
from productive.model.habits import HabitBook
from productive.model.projects import CrmBook
from productive.store.local import LocalStore

logger = logging.getLogger(__name__)


class AppState:
    def __init__(self, local: LocalStore):
        self.local = local
        self.crm = CrmBook()
        self.habits = HabitBook()
        self.calendar: dict = {}
        self.settings: dict = {}
        self.reload()

    def reload(self, data_type: str | None = None) -> None:
        """Re-read one dataset (or all) from the Local Store."""
        if data_type in (None, "crm"):
            self.crm = CrmBook.from_payload(self.local.get_dataset("crm"))
        if data_type in (None, "habits"):
            self.habits = HabitBook.from_payload(self.local.get_dataset("habits"))
        if data_type in (None, "calendar"):
            self.calendar = _as_dict(self.local.get_dataset("calendar"))
        if data_type in (None, "settings"):
            self.settings = _as_dict(self.local.get_dataset("settings"))

    def payload(self, data_type: str) -> Any:
        if data_type == "crm":
            return self.crm.to_payload()
        if data_type == "habits":
            return self.habits.to_payload()
        if data_type == "calendar":
            return self.calendar
        if data_type == "settings":
            return self.settings
        raise ValueError(f"Unknown data type: {data_type}")

    def save(self, data_type: str | None = None) -> None:
        """Write one dataset (or all) to the Local Store."""
        targets = [data_type] if data_type else DATA_TYPES
        for dt in targets:
            self.local.set_dataset(dt, self.payload(dt))
            logger.debug(f"[STATE] Saved {dt}")

    def attach(self, client) -> None:
        """Reload books whenever the sync client adopts remote data."""
        client.on_data_updated(self._on_remote_update)

    def _on_remote_update(self, data_type: str, payload: Any) -> None:
        logger.info(f"[STATE] Reloading {data_type} after remote update")
        self.reload(data_type)


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}
