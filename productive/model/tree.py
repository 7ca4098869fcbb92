"""
Project / task / subtask tree.

A Task and a Subtask are the same node type (WorkItem): a Task is simply a
WorkItem held directly by a Project. Subtasks nest to any depth up to
MAX_SUBTASK_DEPTH levels below a task.

Tree invariants, checked on insertion:
- ids are unique across the whole project tree
- nesting never exceeds MAX_SUBTASK_DEPTH
- deleting a node deletes its whole subtree

Traversals (find, count, count completed) are one depth-first walk with a
predicate.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterator

from productive.lib.constants import (
    ITEM_STATUSES,
    MAX_SUBTASK_DEPTH,
    PRIORITIES,
    PROJECT_STATUSES,
)
from productive.lib.timestamps import now_iso

logger = logging.getLogger(__name__)

STATUS_DONE = "done"


class ModelError(Exception):
    """Base class for domain model errors."""


class NotFound(ModelError):
    """No node with the requested id."""

    def __init__(self, kind: str, node_id: str):
        self.kind = kind
        self.node_id = node_id
        super().__init__(f"{kind} not found: {node_id}")


class DuplicateId(ModelError):
    """An id already present in the project tree."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Duplicate id in project tree: {node_id}")


class NestingTooDeep(ModelError):
    """Insertion would nest subtasks beyond MAX_SUBTASK_DEPTH."""

    def __init__(self, depth: int):
        self.depth = depth
        super().__init__(f"Subtask nesting depth {depth} exceeds limit of {MAX_SUBTASK_DEPTH}")


def new_id(prefix: str = "item") -> str:
    """Millisecond clock plus random suffix, e.g. project_1700000000000_k3j9x0a1b."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


@dataclass
class WorkItem:
    """A task or subtask."""
    id: str
    name: str
    description: str = ""
    priority: str = "medium"  # low | medium | high
    status: str = "todo"  # todo | in-progress | done
    due_date: str | None = None
    subtasks: list["WorkItem"] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None

    @property
    def done(self) -> bool:
        return self.status == STATUS_DONE

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "dueDate": self.due_date,
            "subtasks": [s.to_dict() for s in self.subtasks],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.completed_at:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "WorkItem":
        """Build from serialised form; accepts the legacy nestedSubtasks key."""
        # Non-object children are dropped
        children = _as_list(data.get("subtasks")) + _as_list(data.get("nestedSubtasks"))
        children = [c for c in children if isinstance(c, dict)]

        priority = data.get("priority") or "medium"
        if priority not in PRIORITIES:
            logger.warning(f"[MODEL] Unknown priority '{priority}' on {data.get('id')}, using 'medium'")
            priority = "medium"
        status = data.get("status") or "todo"
        if status not in ITEM_STATUSES:
            logger.warning(f"[MODEL] Unknown status '{status}' on {data.get('id')}, using 'todo'")
            status = "todo"

        return cls(
            id=str(data.get("id") or new_id("task")),
            name=data.get("name") or "",
            description=data.get("description") or "",
            priority=priority,
            status=status,
            due_date=data.get("dueDate") or None,
            subtasks=[cls.from_dict(c) for c in children],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            completed_at=data.get("completedAt"),
        )


@dataclass
class Project:
    """A project and its task tree."""
    id: str
    name: str
    description: str = ""
    status: str = "planning"  # planning | active | completed
    priority: str = "medium"
    progress: int = 0  # 0-100, recomputed whenever the task tree changes
    cost: float = 0.0
    notes: str = ""
    start_date: str | None = None
    end_date: str | None = None
    tasks: list[WorkItem] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "progress": self.progress,
            "cost": self.cost,
            "notes": self.notes,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "tasks": [t.to_dict() for t in self.tasks],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.completed_at:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        """Build from serialised form, defaulting any missing field.

        Stored progress is kept as is; it is only recomputed when the task
        tree changes.
        """
        status = data.get("status") or "planning"
        if status not in PROJECT_STATUSES:
            logger.warning(f"[MODEL] Unknown project status '{status}', using 'planning'")
            status = "planning"
        try:
            cost = max(0.0, float(data.get("cost") or 0))
        except (TypeError, ValueError):
            cost = 0.0
        try:
            progress = min(100, max(0, int(data.get("progress") or 0)))
        except (TypeError, ValueError):
            progress = 0
        created = data.get("createdAt") or now_iso()

        return cls(
            id=str(data.get("id") or new_id("project")),
            name=data.get("name") or "",
            description=data.get("description") or "",
            status=status,
            priority=data.get("priority") if data.get("priority") in PRIORITIES else "medium",
            progress=progress,
            cost=cost,
            notes=data.get("notes") or "",
            start_date=data.get("startDate") or None,
            end_date=data.get("endDate") or None,
            tasks=[WorkItem.from_dict(t) for t in _as_list(data.get("tasks")) if isinstance(t, dict)],
            created_at=created,
            updated_at=data.get("updatedAt") or created,
            completed_at=data.get("completedAt"),
        )


# Traversal

def walk(nodes: list[WorkItem], predicate: Callable[[WorkItem], bool] | None = None) -> Iterator[WorkItem]:
    """Depth-first, pre-order walk yielding nodes that satisfy predicate."""
    for node in nodes:
        if predicate is None or predicate(node):
            yield node
        yield from walk(node.subtasks, predicate)


def find_by_id(nodes: list[WorkItem], node_id: str) -> WorkItem | None:
    """First node with the given id in depth-first order, or None."""
    return next(walk(nodes, lambda n: n.id == node_id), None)


def count_all(nodes: list[WorkItem]) -> int:
    return sum(1 for _ in walk(nodes))


def count_completed(nodes: list[WorkItem]) -> int:
    return sum(1 for _ in walk(nodes, lambda n: n.done))


def find_parent(nodes: list[WorkItem], node_id: str) -> tuple[list[WorkItem], WorkItem] | None:
    """The list that directly holds node_id, and the node itself."""
    for node in nodes:
        if node.id == node_id:
            return nodes, node
        found = find_parent(node.subtasks, node_id)
        if found is not None:
            return found
    return None


def depth_of(nodes: list[WorkItem], node_id: str, _depth: int = 0) -> int | None:
    """Depth of node_id below the top level (tasks are depth 0)."""
    for node in nodes:
        if node.id == node_id:
            return _depth
        found = depth_of(node.subtasks, node_id, _depth + 1)
        if found is not None:
            return found
    return None


def subtree_height(node: WorkItem) -> int:
    """Levels below node (0 for a leaf)."""
    if not node.subtasks:
        return 0
    return 1 + max(subtree_height(c) for c in node.subtasks)


# Progress

def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_project_progress(project: Project) -> int:
    """
    Percentage of done work items.

    Every task and every subtask at any depth is one unit. A project with no
    tasks reports 0.
    """
    total = count_all(project.tasks)
    if total == 0:
        return 0
    done = count_completed(project.tasks)
    return round_half_up(Decimal(100 * done) / Decimal(total))


def refresh_progress(project: Project) -> int:
    """Recompute and store project.progress when the project has tasks."""
    if project.tasks:
        project.progress = compute_project_progress(project)
    return project.progress


def set_progress(project: Project, value: int) -> None:
    """Manually set progress; only allowed while the project has no tasks."""
    if project.tasks:
        raise ModelError(f"Progress of project {project.id} is derived from its tasks")
    project.progress = min(100, max(0, int(value)))


# Structural edits

def insert_item(project: Project, item: WorkItem, parent_id: str | None = None) -> WorkItem:
    """
    Insert item (and its subtree) as a task, or under parent_id.

    Raises:
        NotFound: parent_id is not in the project
        DuplicateId: any id in item's subtree already exists in the project
        NestingTooDeep: the insertion would exceed MAX_SUBTASK_DEPTH
    """
    existing = {n.id for n in walk(project.tasks)}
    incoming = [n.id for n in walk([item])]
    for node_id in incoming:
        if node_id in existing:
            raise DuplicateId(node_id)
        existing.add(node_id)

    if parent_id is None:
        depth = subtree_height(item)
    else:
        parent_depth = depth_of(project.tasks, parent_id)
        if parent_depth is None:
            raise NotFound("Parent", parent_id)
        depth = parent_depth + 1 + subtree_height(item)
    if depth > MAX_SUBTASK_DEPTH:
        raise NestingTooDeep(depth)

    if parent_id is None:
        project.tasks.append(item)
    else:
        find_by_id(project.tasks, parent_id).subtasks.append(item)
    return item


def remove_item(project: Project, node_id: str) -> WorkItem:
    """Remove node_id and its subtree. Returns the removed node."""
    found = find_parent(project.tasks, node_id)
    if found is None:
        raise NotFound("Item", node_id)
    siblings, node = found
    siblings.remove(node)
    return node
