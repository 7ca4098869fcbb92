"""Tests for productive.store.local and productive.state modules."""

import pytest

from productive.lib.constants import AUTH_TOKEN_KEY
from productive.state import AppState
from productive.store.local import LocalStore, dataset_key


@pytest.fixture(params=["memory", "disk"])
def store(request, tmp_path):
    if request.param == "memory":
        return LocalStore()
    return LocalStore(tmp_path / "data")


class TestLocalStore:

    def test_dataset_key(self):
        assert dataset_key("crm") == "productiveCloud_crm"

    def test_dataset_roundtrip(self, store):
        store.set_dataset("habits", {"habits": [1, 2]})
        assert store.get_dataset("habits") == {"habits": [1, 2]}
        assert store.all_datasets() == {"habits": {"habits": [1, 2]}}

    def test_missing_is_none(self, store):
        assert store.get_dataset("calendar") is None

    def test_malformed_reads_as_absent(self, store, caplog):
        store.set_item(dataset_key("crm"), "{broken")
        assert store.get_dataset("crm") is None
        assert "[STORE] Malformed JSON" in caplog.text

    def test_token(self, store):
        assert store.get_token() is None
        store.set_token("abc")
        assert store.get_token() == "abc"
        assert AUTH_TOKEN_KEY in store.keys()
        store.clear_token()
        assert store.get_token() is None

    def test_remove_missing_is_noop(self, store):
        store.remove_item("nothing")

    def test_rejects_path_keys(self, tmp_path):
        store = LocalStore(tmp_path)
        with pytest.raises(ValueError):
            store.set_item("../escape", "x")

    def test_persists_across_instances(self, tmp_path):
        LocalStore(tmp_path).set_dataset("settings", {"theme": "dark"})
        assert LocalStore(tmp_path).get_dataset("settings") == {"theme": "dark"}


class TestAppState:

    def test_empty_defaults(self):
        state = AppState(LocalStore())
        assert state.crm.projects == []
        assert state.habits.habits == []
        assert state.settings == {}

    def test_malformed_dataset_gives_defaults(self):
        local = LocalStore()
        local.set_item(dataset_key("habits"), "not json")
        local.set_dataset("settings", ["not", "a", "dict"])
        state = AppState(local)
        assert state.habits.habits == []
        assert state.settings == {}

    def test_save_and_reload(self):
        local = LocalStore()
        state = AppState(local)
        state.crm.create_project("Website")
        state.habits.add_habit("Run")
        state.save()
        reloaded = AppState(local)
        assert reloaded.crm.projects[0].name == "Website"
        assert reloaded.habits.habits[0].name == "Run"

    def test_completed_project_keeps_progress_after_reload(self):
        local = LocalStore()
        state = AppState(local)
        project = state.crm.create_project("Website")
        state.crm.add_task(project.id, "Design")
        state.crm.add_task(project.id, "Build")
        state.crm.complete_project(project.id)
        state.save("crm")
        state.reload("crm")
        assert state.crm.projects[0].progress == 100
        assert state.crm.projects[0].status == "completed"

    def test_malformed_crm_tree_does_not_break_load(self):
        local = LocalStore()
        local.set_dataset("crm", {"projects": [{"id": "p", "tasks": ["oops"]}]})
        state = AppState(local)
        assert state.crm.projects[0].id == "p"
        assert state.crm.projects[0].tasks == []

    def test_reloads_on_remote_update(self):
        local = LocalStore()
        state = AppState(local)
        listeners = []

        class FakeClient:
            def on_data_updated(self, listener):
                listeners.append(listener)

        state.attach(FakeClient())
        local.set_dataset("crm", {"projects": [{"id": "p1", "name": "Remote"}]})
        listeners[0]("crm", None)
        assert state.crm.projects[0].name == "Remote"

    def test_unknown_data_type(self):
        with pytest.raises(ValueError):
            AppState(LocalStore()).payload("notes")
