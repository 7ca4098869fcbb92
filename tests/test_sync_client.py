"""Tests for productive.sync.client module."""

import threading
from unittest.mock import MagicMock

import pytest

from productive.lib.constants import LAST_SYNC_KEY
from productive.store.local import LocalStore
from productive.sync.client import SyncClient
from productive.sync.errors import ApiError, NetworkError, Timeout, Unauthenticated
from productive.sync.transport import Transport

STAMP = "2026-01-01T12:00:00.000Z"


@pytest.fixture
def local():
    store = LocalStore()
    store.set_token("token-123")
    return store


@pytest.fixture
def transport():
    transport = MagicMock(spec=Transport)
    transport.request.side_effect = lambda endpoint, body=None, method="POST": {
        "action": "synced", "data": body["data"], "timestamp": STAMP,
    }
    return transport


@pytest.fixture
def failures():
    return []


@pytest.fixture
def client(local, transport, failures):
    return SyncClient(
        local,
        transport,
        on_failure=lambda dt, reason: failures.append((dt, reason)),
        on_remote_updates=lambda types: None,
    )


def fill(local, *data_types):
    for dt in data_types:
        local.set_dataset(dt, {"dt": dt})


class TestSyncDataType:
    """One dataType at a time."""

    def test_skips_when_no_local_data(self, client, transport):
        assert client.sync_data_type("habits") is None
        transport.request.assert_not_called()

    def test_forced_sends_empty_payload(self, client, transport):
        client.sync_data_type("habits", force=True)
        endpoint, body = transport.request.call_args.args
        assert endpoint == "/data/sync"
        assert body == {"dataType": "habits", "data": {}, "lastSync": None}

    def test_synced_records_timestamp(self, client, local):
        fill(local, "crm")
        assert client.sync_data_type("crm") == "synced"
        assert client.last_sync("crm") == STAMP
        assert local.get_json(LAST_SYNC_KEY) == {"crm": STAMP}

    def test_sends_recorded_last_sync(self, client, local, transport):
        fill(local, "crm")
        client.sync_data_type("crm")
        client.sync_data_type("crm")
        assert transport.request.call_args.args[1]["lastSync"] == STAMP

    def test_updated_overwrites_local_and_notifies(self, client, local, transport):
        fill(local, "crm")
        remote = {"projects": [{"id": "p1"}]}
        transport.request.side_effect = None
        transport.request.return_value = {
            "action": "updated", "data": remote, "timestamp": "2026-01-01T13:00:00.000Z", "version": 4,
        }
        seen = []
        client.on_data_updated(lambda dt, payload: seen.append((dt, payload)))

        assert client.sync_data_type("crm") == "updated"
        assert local.get_dataset("crm") == remote
        assert client.last_sync("crm") == "2026-01-01T13:00:00.000Z"
        assert seen == [("crm", remote)]

    def test_failure_queues_pending(self, client, local, transport, failures):
        fill(local, "crm")
        transport.request.side_effect = ApiError("Internal server error", 500)
        assert client.sync_data_type("crm") is None
        assert client.pending == ["crm"]
        assert failures == [("crm", "Internal server error")]

    def test_unauthenticated_is_not_a_failure(self, client, local, transport, failures):
        fill(local, "crm")
        transport.request.side_effect = Unauthenticated()
        assert client.sync_data_type("crm") is None
        assert client.pending == []
        assert failures == []

    def test_malformed_response(self, client, local, transport):
        fill(local, "crm")
        transport.request.side_effect = None
        transport.request.return_value = {"action": "merged"}
        assert client.sync_data_type("crm") is None
        assert client.pending == ["crm"]


class TestSyncAll:
    """Full passes."""

    def test_failure_isolated_to_one_data_type(self, client, local, transport):
        """A timeout on crm leaves habits, calendar and settings synced."""
        fill(local, "habits", "crm", "calendar", "settings")

        def respond(endpoint, body=None, method="POST"):
            if body["dataType"] == "crm":
                raise Timeout(endpoint, 10)
            return {"action": "synced", "data": body["data"], "timestamp": STAMP}

        transport.request.side_effect = respond
        results = client.sync_all()

        assert results == {"habits": "synced", "crm": None, "calendar": "synced", "settings": "synced"}
        assert client.pending == ["crm"]
        assert set(client.status().last_sync_times) == {"habits", "calendar", "settings"}
        assert not client.sync_in_progress

    def test_no_credential_makes_no_calls(self, client, local, transport):
        local.clear_token()
        fill(local, "habits", "crm")
        assert client.sync_all() == {}
        transport.request.assert_not_called()
        assert client.pending == []

    def test_no_backend_is_inert(self, local):
        client = SyncClient(local, None)
        fill(local, "crm")
        assert client.sync_all() == {}
        assert client.sync_data_type("crm", force=True) is None

    def test_dropped_while_in_flight(self, client, local, transport):
        fill(local, "crm")
        client._in_flight = True
        assert client.sync_all() == {}
        transport.request.assert_not_called()

    def test_forced_runs_while_in_flight(self, client, local, transport):
        fill(local, "crm")
        client._in_flight = True
        results = client.manual_sync_all()
        assert results["crm"] == "synced"
        assert not client.sync_in_progress

    def test_flag_cleared_after_error(self, client, local, transport):
        fill(local, "crm")
        client.on_failure = MagicMock(side_effect=RuntimeError("boom"))
        transport.request.side_effect = NetworkError("down")
        with pytest.raises(RuntimeError):
            client.sync_all()
        assert not client.sync_in_progress


class TestPendingAndConnectivity:

    def test_sync_pending_retries(self, client, local, transport):
        fill(local, "crm")
        transport.request.side_effect = NetworkError("down")
        client.sync_data_type("crm")
        assert client.pending == ["crm"]

        transport.request.side_effect = lambda endpoint, body=None, method="POST": {
            "action": "synced", "data": body["data"], "timestamp": STAMP,
        }
        assert client.sync_pending() == ["crm"]
        assert client.pending == []

    def test_back_online_syncs_pending(self, client, local, transport):
        fill(local, "crm")
        client.set_online(False)
        transport.request.side_effect = NetworkError("down")
        client.sync_data_type("crm")
        transport.request.side_effect = lambda endpoint, body=None, method="POST": {
            "action": "created", "data": body["data"], "timestamp": STAMP,
        }
        client.set_online(True)
        assert client.pending == []
        assert client.last_sync("crm") == STAMP

    def test_status(self, client, local, transport):
        fill(local, "crm")
        client.sync_all()
        status = client.status().to_dict()
        assert status["isOnline"] is True
        assert status["syncInProgress"] is False
        assert status["pendingSyncs"] == []
        assert status["lastSyncTimes"] == {"crm": STAMP}
        assert status["nextSyncIn"] is None


class TestCheckForUpdates:

    def test_pulls_newer_remote(self, local, transport):
        local.set_json(LAST_SYNC_KEY, {"crm": "2026-01-01T00:00:00.000Z", "habits": "2026-02-01T00:00:00.000Z"})
        client = SyncClient(local, transport, on_remote_updates=lambda types: notified.extend(types))
        notified = []
        transport.request.side_effect = None
        transport.request.return_value = {
            "data": {
                "crm": {"data": {"projects": []}, "lastModified": "2026-01-05T00:00:00.000Z", "version": 3},
                "habits": {"data": {"habits": []}, "lastModified": "2026-01-05T00:00:00.000Z", "version": 2},
                "settings": {"data": {"theme": "dark"}, "lastModified": "2026-01-05T00:00:00.000Z", "version": 1},
            },
            "totalTypes": 3,
        }

        updated = client.check_for_updates()

        assert updated == ["crm", "settings"]
        assert notified == ["crm", "settings"]
        assert local.get_dataset("settings") == {"theme": "dark"}
        assert local.get_dataset("habits") is None
        transport.request.assert_called_once_with("/data", method="GET")

    def test_offline_does_nothing(self, client, transport):
        client.online = False
        assert client.check_for_updates() == []
        transport.request.assert_not_called()

    def test_error_logged(self, client, transport, caplog):
        transport.request.side_effect = NetworkError("down")
        assert client.check_for_updates() == []
        assert "Failed to check for updates" in caplog.text

    def test_bad_timestamp_skips_entry(self, local, transport, caplog):
        transport.request.side_effect = None
        transport.request.return_value = {
            "data": {
                "crm": {"data": {"projects": []}, "lastModified": "yesterday"},
                "settings": {"data": {"theme": "dark"}, "lastModified": "2026-01-05T00:00:00.000Z"},
            },
        }
        local.set_json(LAST_SYNC_KEY, {"crm": STAMP})
        client = SyncClient(local, transport, on_remote_updates=lambda types: None)

        assert client.check_for_updates() == ["settings"]
        assert local.get_dataset("crm") is None
        assert "bad lastModified 'yesterday'" in caplog.text


class TestPersistenceAndFlush:

    def test_last_sync_survives_restart(self, tmp_path, transport):
        local = LocalStore(tmp_path)
        local.set_token("t")
        fill(local, "crm")
        SyncClient(local, transport).sync_all()

        restarted = SyncClient(LocalStore(tmp_path), transport)
        assert restarted.last_sync("crm") == STAMP

    def test_malformed_last_sync_ignored(self, local, transport, caplog):
        local.set_item(LAST_SYNC_KEY, "{not json")
        client = SyncClient(local, transport)
        assert client.status().last_sync_times == {}
        assert "Malformed JSON" in caplog.text

    def test_flush_completes(self, client, local):
        fill(local, "crm")
        assert client.flush(budget=5) is True
        assert client.last_sync("crm") == STAMP

    def test_flush_gives_up_after_budget(self, client, local, transport):
        fill(local, "crm")
        release = threading.Event()

        def slow(endpoint, body=None, method="POST"):
            release.wait(5)
            return {"action": "synced", "data": body["data"], "timestamp": STAMP}

        transport.request.side_effect = slow
        try:
            assert client.flush(budget=0.05) is False
        finally:
            release.set()
