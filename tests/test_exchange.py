"""Tests for productive.backup.exchange module."""

import json

import pytest

from productive.backup.exchange import (
    FORMAT_LEGACY,
    FORMAT_STRUCTURED,
    detect_format,
    export_bundle,
    import_bundle,
    read_import,
    write_export,
)
from productive.lib.validate import ValidationError
from productive.store.local import LocalStore


@pytest.fixture
def store():
    return LocalStore()


class TestExport:

    def test_structure(self, store):
        store.set_dataset("crm", {"projects": [], "timer": {"totalTime": 0, "savedSessions": []}})
        bundle = export_bundle(store)
        info = bundle["exportInfo"]
        assert info["app"] == "Productive Cloud"
        assert info["version"] == "2.0"
        assert info["totalModules"] == 2
        assert bundle["modules"]["crm"]["module"] == "Project CRM"
        assert bundle["modules"]["crm"]["version"] == "1.0"
        assert bundle["modules"]["habits"]["data"] == {"habits": [], "progress": {}}

    def test_file_roundtrip(self, store, tmp_path):
        store.set_dataset("habits", {"habits": [{"id": "h1", "name": "Run"}], "progress": {}})
        store.set_dataset("settings", {"theme": "dark"})
        path = write_export(store, tmp_path / "backup.json")

        fresh = LocalStore()
        assert read_import(fresh, path) == ["habits", "settings"]
        assert fresh.get_dataset("settings") == {"theme": "dark"}


class TestImport:

    def test_detect_format(self):
        assert detect_format({"exportInfo": {"version": "2.0"}, "modules": {}}) == FORMAT_STRUCTURED
        assert detect_format({"habits": [], "progress": {}}) == FORMAT_LEGACY
        assert detect_format({"exportInfo": {}}) == FORMAT_LEGACY

    def test_legacy(self, store):
        written = import_bundle(store, {
            "habits": [{"id": "h1", "name": "Run"}],
            "progress": {"2026-01-01": {"h1": True}},
            "theme": "light",
        })
        assert written == ["habits", "settings"]
        assert store.get_dataset("habits")["progress"] == {"2026-01-01": {"h1": True}}
        assert store.get_dataset("settings") == {"theme": "light"}

    def test_legacy_missing_progress_rejected(self, store):
        with pytest.raises(ValidationError):
            import_bundle(store, {"habits": []})
        assert store.get_dataset("habits") is None

    def test_structured_wrong_app_rejected(self, store):
        with pytest.raises(ValidationError):
            import_bundle(store, {
                "exportInfo": {"app": "Other", "version": "2.0"},
                "modules": {"habits": {"data": {}}},
            })

    def test_structured_requires_habits(self, store):
        with pytest.raises(ValidationError):
            import_bundle(store, {
                "exportInfo": {"app": "Productive Cloud", "version": "2.0"},
                "modules": {"crm": {"data": {}}},
            })

    def test_crm_normalised(self, store):
        import_bundle(store, {
            "exportInfo": {"app": "Productive Cloud", "version": "2.0"},
            "modules": {
                "habits": {"data": {"habits": [], "progress": {}}},
                "crm": {"data": {"projects": [{"progress": 40, "tasks": [
                    {"id": "t1", "name": "T", "status": "done",
                     "subtasks": [{"id": "s1", "name": "S", "nestedSubtasks": [{"id": "n1", "name": "N"}]}]},
                ]}]}},
            },
        })
        project = store.get_dataset("crm")["projects"][0]
        assert project["name"] == "Unnamed Project"
        assert project["status"] == "active"
        assert project["cost"] == 0
        assert project["notes"] == ""
        assert project["id"].startswith("project_")
        assert project["progress"] == 40
        assert project["tasks"][0]["subtasks"][0]["subtasks"][0]["id"] == "n1"

    def test_crm_bad_status_rejected(self, store):
        with pytest.raises(ValidationError):
            import_bundle(store, {
                "exportInfo": {"app": "Productive Cloud", "version": "2.0"},
                "modules": {
                    "habits": {"data": {}},
                    "crm": {"data": {"projects": [{"name": "P", "status": "paused"}]}},
                },
            })

    def test_invalid_json_file(self, store, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{nope")
        with pytest.raises(ValidationError):
            read_import(store, path)

    def test_missing_file(self, store, tmp_path):
        with pytest.raises(ValidationError):
            read_import(store, tmp_path / "absent.json")

    def test_export_is_valid_json(self, store, tmp_path):
        path = write_export(store, tmp_path / "out.json")
        assert json.loads(path.read_text())["exportInfo"]["totalModules"] == 1
