"""
Export/import of every local dataset as one JSON document.

Two formats are understood:

Structured (written by export_bundle):
    {"exportInfo": {"app": "Productive Cloud", "version": "2.0",
                    "exportDate": ..., "totalModules": n},
     "modules": {dataType: {"module": ..., "version": "1.0", "data": ...}}}

Legacy flat (read only):
    {"habits": [...], "progress": {...}, "user": ..., "theme": ...}

A document is structured when it carries exportInfo.version; anything else
is treated as legacy. Both are validated against their JSON Schema before
anything is written to the Local Store.
"""

import json
import logging
from pathlib import Path
from typing import Any

from productive.lib import validate
from productive.lib.constants import (
    DATA_TYPES,
    EXPORT_APP_NAME,
    EXPORT_FORMAT_VERSION,
    MODULE_FORMAT_VERSION,
    MODULE_NAMES,
)
from productive.lib.timestamps import now_iso
from productive.model.projects import CrmBook
from productive.model.tree import new_id
from productive.store.local import LocalStore

logger = logging.getLogger(__name__)

FORMAT_STRUCTURED = "2.0"
FORMAT_LEGACY = "legacy"


def export_bundle(store: LocalStore) -> dict:
    """Collect every present dataset into a structured export document."""
    datasets = store.all_datasets()
    # The structured format always carries a habits module
    datasets.setdefault("habits", {"habits": [], "progress": {}})

    modules = {}
    for data_type in DATA_TYPES:
        if data_type not in datasets:
            continue
        modules[data_type] = {
            "module": MODULE_NAMES[data_type],
            "version": MODULE_FORMAT_VERSION,
            "data": datasets[data_type],
        }

    bundle = {
        "exportInfo": {
            "app": EXPORT_APP_NAME,
            "version": EXPORT_FORMAT_VERSION,
            "exportDate": now_iso(),
            "totalModules": len(modules),
        },
        "modules": modules,
    }
    validate.validate(bundle, "export_v2")
    logger.info(f"[EXPORT] Exported {len(modules)} modules: {', '.join(modules)}")
    return bundle


def detect_format(document: Any) -> str:
    """FORMAT_STRUCTURED when exportInfo.version is present, else FORMAT_LEGACY."""
    if isinstance(document, dict):
        info = document.get("exportInfo")
        if isinstance(info, dict) and info.get("version"):
            return FORMAT_STRUCTURED
    return FORMAT_LEGACY


def normalize_crm(data: Any) -> dict:
    """Fill in every missing CRM project field the way older exports expect."""
    if not isinstance(data, dict):
        return CrmBook().to_payload()
    projects = []
    for raw in data.get("projects") or []:
        if not isinstance(raw, dict):
            continue
        stamp = now_iso()
        projects.append({
            **raw,
            "id": raw.get("id") or new_id("project"),
            "name": raw.get("name") or "Unnamed Project",
            "status": raw.get("status") or "active",
            "progress": raw.get("progress") or 0,
            "cost": raw.get("cost") or 0,
            "notes": raw.get("notes") or "",
            "tasks": raw.get("tasks") or [],
            "createdAt": raw.get("createdAt") or stamp,
            "updatedAt": raw.get("updatedAt") or stamp,
        })
    book = CrmBook.from_payload({**data, "projects": projects})
    return book.to_payload()


def import_bundle(store: LocalStore, document: Any) -> list[str]:
    """
    Validate an export document and write its datasets to the Local Store.

    Returns:
        The dataTypes written

    Raises:
        validate.ValidationError: document does not match its format's schema
    """
    fmt = detect_format(document)

    if fmt == FORMAT_STRUCTURED:
        validate.validate(document, "export_v2")
        datasets = {dt: module["data"] for dt, module in document["modules"].items()}
    else:
        validate.validate(document, "export_legacy")
        datasets = {"habits": {"habits": document["habits"], "progress": document["progress"]}}
        if document.get("theme"):
            datasets["settings"] = {"theme": document["theme"]}

    if "crm" in datasets:
        validate.validate(datasets["crm"], "crm")
        datasets["crm"] = normalize_crm(datasets["crm"])

    for data_type in DATA_TYPES:
        if data_type in datasets:
            store.set_dataset(data_type, datasets[data_type])

    written = [dt for dt in DATA_TYPES if dt in datasets]
    logger.info(f"[IMPORT] Imported {fmt} backup: {', '.join(written)}")
    return written


def write_export(store: LocalStore, path: Path) -> Path:
    """Export to a JSON file."""
    bundle = export_bundle(store)
    path = Path(path)
    path.write_text(json.dumps(bundle, indent=2), encoding="utf-8")
    return path


def read_import(store: LocalStore, path: Path) -> list[str]:
    """Import from a JSON file."""
    path = Path(path)
    if not path.exists():
        raise validate.ValidationError("import", f"File not found: {path}")
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise validate.ValidationError("import", f"Invalid JSON in {path}: {e}") from None
    return import_bundle(store, document)
