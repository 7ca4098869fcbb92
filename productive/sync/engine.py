"""
Last-write-wins reconciliation of one dataset against the Remote Store.

The decision is made on the Remote Store side, keyed only on timestamps:

- no document yet          -> create it from the local payload ("created")
- caller never synced, or
  remote not strictly newer -> local payload replaces remote ("synced")
- remote strictly newer     -> hand back the remote payload ("updated"),
                               remote left untouched

Payloads are replaced wholesale, never merged. Two devices editing the same
dataType between syncs will lose one side's edits; that is the accepted
product tradeoff.
"""

import logging
from datetime import datetime
from typing import Any

from productive.lib.timestamps import format_ts, parse_ts, utcnow
from productive.lib.types import (
    ACTION_CREATED,
    ACTION_SYNCED,
    ACTION_UPDATED,
    SyncOutcome,
)
from productive.store.remote import RemoteStore

logger = logging.getLogger(__name__)


def remote_is_newer(remote_last_modified: str, last_sync: str | None) -> bool:
    """True when the remote document changed after the caller's last sync."""
    if last_sync is None:
        return False
    return parse_ts(last_sync) < parse_ts(remote_last_modified)


def reconcile(
    store: RemoteStore,
    user_id: str,
    data_type: str,
    payload: Any,
    last_sync: str | None,
    now: datetime | None = None,
) -> SyncOutcome:
    """
    Reconcile one dataType for one user.

    Args:
        store: Remote Store holding the user's documents
        user_id: Owner of the document
        data_type: Dataset name (habits, crm, calendar, settings)
        payload: The caller's current local payload
        last_sync: Timestamp of the caller's last successful sync, or None
        now: Override for the current time

    Returns:
        SyncOutcome with the action taken, the winning payload and the
        timestamp the caller must record.
    """
    stamp = format_ts(now or utcnow())
    existing = store.get_document(user_id, data_type)

    if existing is None:
        doc = store.put_document(user_id, data_type, payload, stamp)
        logger.info(f"[SYNC] {data_type}: created for user {user_id}")
        return SyncOutcome(ACTION_CREATED, doc.data, doc.last_modified, doc.version)

    if remote_is_newer(existing.last_modified, last_sync):
        logger.info(
            f"[SYNC] {data_type}: remote newer ({existing.last_modified} > {last_sync}), "
            "returning remote payload"
        )
        return SyncOutcome(ACTION_UPDATED, existing.data, existing.last_modified, existing.version)

    doc = store.put_document(user_id, data_type, payload, stamp)
    logger.info(f"[SYNC] {data_type}: local payload pushed (version {doc.version})")
    return SyncOutcome(ACTION_SYNCED, doc.data, doc.last_modified, doc.version)
