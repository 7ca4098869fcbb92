"""Domain model for the habits and crm datasets."""

from productive.model.tree import (
    ModelError,
    NotFound,
    DuplicateId,
    NestingTooDeep,
    WorkItem,
    Project,
    walk,
    find_by_id,
    count_all,
    count_completed,
    compute_project_progress,
    refresh_progress,
    set_progress,
)
from productive.model.fsm import InvalidTransition, StatusFSM, set_status
from productive.model.projects import CrmBook, TimerSession, format_duration
from productive.model.habits import Habit, HabitBook

__all__ = [
    "ModelError",
    "NotFound",
    "DuplicateId",
    "NestingTooDeep",
    "WorkItem",
    "Project",
    "walk",
    "find_by_id",
    "count_all",
    "count_completed",
    "compute_project_progress",
    "refresh_progress",
    "set_progress",
    "InvalidTransition",
    "StatusFSM",
    "set_status",
    "CrmBook",
    "TimerSession",
    "format_duration",
    "Habit",
    "HabitBook",
]
