"""
Project CRM dataset: projects, their task trees and the work timer.

CrmBook owns the in-memory form of the "crm" dataset. Every task or subtask
mutation refreshes the owning project's progress. Status changes go through
the status machine in fsm.py.

Payload shape:
    {"projects": [...], "timer": {"totalTime": ms, "savedSessions": [...]}}
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from productive.lib.constants import PRIORITIES, PROJECT_STATUSES
from productive.lib.timestamps import format_ts, now_iso, utcnow
from productive.model import fsm
from productive.model.tree import (
    ModelError,
    NotFound,
    Project,
    WorkItem,
    find_by_id,
    insert_item,
    new_id,
    refresh_progress,
    remove_item,
    round_half_up,
    set_progress,
)

logger = logging.getLogger(__name__)

PROJECT_FIELDS = {
    "name": "name",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "cost": "cost",
    "notes": "notes",
    "start_date": "start_date",
    "end_date": "end_date",
}
ITEM_FIELDS = {"name", "description", "priority", "due_date"}


def _milliseconds(value) -> int:
    """Non-negative millisecond count; malformed values read as 0."""
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        logger.warning(f"[CRM] Ignoring malformed duration {value!r}")
        return 0


@dataclass
class TimerSession:
    """A saved stretch of timed work."""
    id: str
    name: str
    duration: int  # milliseconds
    date: str  # ISO timestamp the session was saved

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "duration": self.duration, "date": self.date}

    @classmethod
    def from_dict(cls, data: dict) -> "TimerSession":
        return cls(
            id=str(data.get("id") or new_id("session")),
            name=data.get("name") or "",
            duration=_milliseconds(data.get("duration")),
            date=data.get("date") or now_iso(),
        )


def format_duration(milliseconds: int) -> str:
    """Milliseconds as HH:MM:SS (hours are not capped at 24)."""
    total_seconds = max(0, int(milliseconds)) // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def _check_priority(priority: str) -> None:
    if priority not in PRIORITIES:
        raise ModelError(f"Invalid priority '{priority}', expected one of {', '.join(PRIORITIES)}")


class CrmBook:
    """Projects and timer sessions for one Local Store."""

    def __init__(
        self,
        projects: list[Project] | None = None,
        sessions: list[TimerSession] | None = None,
        total_time: int = 0,
    ):
        self.projects: list[Project] = projects or []
        self.sessions: list[TimerSession] = sessions or []
        self.total_time = total_time

    # Serialisation

    def to_payload(self) -> dict:
        return {
            "projects": [p.to_dict() for p in self.projects],
            "timer": {
                "totalTime": self.total_time,
                "savedSessions": [s.to_dict() for s in self.sessions],
            },
        }

    @classmethod
    def from_payload(cls, payload: dict | None) -> "CrmBook":
        """Build from a stored payload; None or a non-object gives an empty book."""
        if not isinstance(payload, dict):
            return cls()
        timer = payload.get("timer") if isinstance(payload.get("timer"), dict) else {}
        projects = payload.get("projects") if isinstance(payload.get("projects"), list) else []
        sessions = timer.get("savedSessions") if isinstance(timer.get("savedSessions"), list) else []
        return cls(
            projects=[Project.from_dict(p) for p in projects if isinstance(p, dict)],
            sessions=[TimerSession.from_dict(s) for s in sessions if isinstance(s, dict)],
            total_time=_milliseconds(timer.get("totalTime")),
        )

    # Projects

    def get_project(self, project_id: str) -> Project:
        for project in self.projects:
            if project.id == project_id:
                return project
        raise NotFound("Project", project_id)

    def create_project(self, name: str, **fields) -> Project:
        if not name or not name.strip():
            raise ModelError("Project name is required")
        stamp = now_iso()
        project = Project(id=new_id("project"), name=name.strip(), created_at=stamp, updated_at=stamp)
        self._apply_project_fields(project, fields)
        self.projects.append(project)
        logger.info(f"[CRM] Created project {project.id} '{project.name}'")
        return project

    def update_project(self, project_id: str, **fields) -> Project:
        project = self.get_project(project_id)
        progress = fields.pop("progress", None)
        self._apply_project_fields(project, fields)
        if progress is not None:
            set_progress(project, progress)
        project.updated_at = now_iso()
        return project

    def _apply_project_fields(self, project: Project, fields: dict) -> None:
        for key, value in fields.items():
            if key not in PROJECT_FIELDS:
                raise ModelError(f"Unknown project field: {key}")
            if key == "status" and value not in PROJECT_STATUSES:
                raise ModelError(f"Invalid project status '{value}'")
            if key == "priority":
                _check_priority(value)
            if key == "cost":
                value = float(value or 0)
                if value < 0:
                    raise ModelError("Project cost cannot be negative")
            setattr(project, PROJECT_FIELDS[key], value)

    def delete_project(self, project_id: str) -> None:
        project = self.get_project(project_id)
        self.projects.remove(project)
        logger.info(f"[CRM] Deleted project {project_id}")

    def complete_project(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        stamp = now_iso()
        project.status = "completed"
        project.progress = 100
        project.completed_at = stamp
        project.updated_at = stamp
        logger.info(f"[CRM] Completed project {project_id}")
        return project

    def stats(self) -> dict:
        counts = {status: 0 for status in PROJECT_STATUSES}
        for project in self.projects:
            counts[project.status] = counts.get(project.status, 0) + 1
        total_progress = sum(p.progress for p in self.projects)
        return {
            "total": len(self.projects),
            "active": counts["active"],
            "completed": counts["completed"],
            "planning": counts["planning"],
            "avgProgress": round_half_up(Decimal(total_progress) / len(self.projects)) if self.projects else 0,
            "totalEarnings": sum(p.cost for p in self.projects),
        }

    def filter_projects(self, status: str | None = None) -> list[Project]:
        """Projects with the given status; None or "all" returns every project."""
        if status in (None, "all"):
            return list(self.projects)
        return [p for p in self.projects if p.status == status]

    # Tasks and subtasks

    def _new_item(self, name: str, fields: dict) -> WorkItem:
        if not name or not name.strip():
            raise ModelError("Name is required")
        stamp = now_iso()
        item = WorkItem(id=new_id("task"), name=name.strip(), created_at=stamp, updated_at=stamp)
        self._apply_item_fields(item, fields)
        return item

    def _apply_item_fields(self, item: WorkItem, fields: dict) -> None:
        status = fields.pop("status", None)
        for key, value in fields.items():
            if key not in ITEM_FIELDS:
                raise ModelError(f"Unknown task field: {key}")
            if key == "priority":
                _check_priority(value)
            setattr(item, key, value)
        if status is not None and status != item.status:
            fsm.set_status(item, status)

    def _get_item(self, project: Project, item_id: str) -> WorkItem:
        item = find_by_id(project.tasks, item_id)
        if item is None:
            raise NotFound("Item", item_id)
        return item

    def _touched(self, project: Project) -> None:
        refresh_progress(project)
        project.updated_at = now_iso()

    def add_task(self, project_id: str, name: str, **fields) -> WorkItem:
        project = self.get_project(project_id)
        item = insert_item(project, self._new_item(name, fields))
        self._touched(project)
        return item

    def add_subtask(self, project_id: str, parent_id: str, name: str, **fields) -> WorkItem:
        """Add a subtask under a task or under any subtask at any depth."""
        project = self.get_project(project_id)
        item = insert_item(project, self._new_item(name, fields), parent_id=parent_id)
        self._touched(project)
        return item

    def update_item(self, project_id: str, item_id: str, **fields) -> WorkItem:
        project = self.get_project(project_id)
        item = self._get_item(project, item_id)
        self._apply_item_fields(item, dict(fields))
        item.updated_at = now_iso()
        self._touched(project)
        return item

    def update_task(self, project_id: str, task_id: str, **fields) -> WorkItem:
        project = self.get_project(project_id)
        if not any(t.id == task_id for t in project.tasks):
            raise NotFound("Task", task_id)
        return self.update_item(project_id, task_id, **fields)

    def delete_item(self, project_id: str, item_id: str) -> WorkItem:
        """Remove an item and its whole subtree."""
        project = self.get_project(project_id)
        removed = remove_item(project, item_id)
        self._touched(project)
        return removed

    def delete_task(self, project_id: str, task_id: str) -> WorkItem:
        project = self.get_project(project_id)
        if not any(t.id == task_id for t in project.tasks):
            raise NotFound("Task", task_id)
        return self.delete_item(project_id, task_id)

    def set_status(self, project_id: str, item_id: str, status: str) -> WorkItem:
        project = self.get_project(project_id)
        item = fsm.set_status(self._get_item(project, item_id), status)
        self._touched(project)
        return item

    # Timer sessions

    def save_session(self, duration_ms: int, name: str | None = None, when: datetime | None = None) -> TimerSession:
        """Append a timer session; duration must be positive."""
        if duration_ms <= 0:
            raise ModelError("Session duration must be positive")
        stamp = when or utcnow()
        session = TimerSession(
            id=new_id("session"),
            name=(name or "").strip() or f"Session {stamp.strftime('%H:%M:%S')}",
            duration=int(duration_ms),
            date=format_ts(stamp),
        )
        self.sessions.append(session)
        self.total_time += session.duration
        logger.info(f"[CRM] Saved timer session '{session.name}' ({format_duration(session.duration)})")
        return session

    def delete_session(self, session_id: str) -> None:
        for session in self.sessions:
            if session.id == session_id:
                self.sessions.remove(session)
                return
        raise NotFound("Session", session_id)

    def sessions_by_duration(self) -> list[TimerSession]:
        """Longest first."""
        return sorted(self.sessions, key=lambda s: s.duration, reverse=True)
