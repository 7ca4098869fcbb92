"""
Habit tracker dataset.

Payload shape:
    {"habits": [{id, name, category, frequency, createdAt}, ...],
     "progress": {"YYYY-MM-DD": {habitId: bool}}}
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

from productive.lib.constants import MAX_HABITS, STREAK_LOOKBACK_DAYS
from productive.lib.timestamps import now_iso
from productive.model.tree import ModelError, NotFound, new_id, round_half_up

logger = logging.getLogger(__name__)


def date_key(day: date | datetime | str) -> str:
    """YYYY-MM-DD key used in the progress map."""
    if isinstance(day, str):
        return day[:10]
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


@dataclass
class Habit:
    id: str
    name: str
    category: str = "custom"
    frequency: str = "daily"
    created_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "frequency": self.frequency,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Habit":
        return cls(
            id=str(data.get("id") or new_id("habit")),
            name=data.get("name") or "",
            category=data.get("category") or "custom",
            frequency=data.get("frequency") or "daily",
            created_at=data.get("createdAt"),
        )


class HabitBook:
    """Habits and their per-day completion map."""

    def __init__(self, habits: list[Habit] | None = None, progress: dict[str, dict[str, bool]] | None = None):
        self.habits: list[Habit] = habits or []
        self.progress: dict[str, dict[str, bool]] = progress or {}

    def to_payload(self) -> dict:
        return {
            "habits": [h.to_dict() for h in self.habits],
            "progress": {day: dict(marks) for day, marks in self.progress.items()},
        }

    @classmethod
    def from_payload(cls, payload: dict | None) -> "HabitBook":
        if not isinstance(payload, dict):
            return cls()
        habits = [Habit.from_dict(h) for h in payload.get("habits") or [] if isinstance(h, dict)]
        progress = {}
        raw = payload.get("progress") if isinstance(payload.get("progress"), dict) else {}
        for day, marks in raw.items():
            # Older payloads stored a list of completed habit ids per day
            if isinstance(marks, list):
                marks = {habit_id: True for habit_id in marks}
            if isinstance(marks, dict):
                progress[day] = {str(k): bool(v) for k, v in marks.items()}
        return cls(habits, progress)

    def get_habit(self, habit_id: str) -> Habit:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        raise NotFound("Habit", habit_id)

    def add_habit(self, name: str, category: str = "custom", frequency: str = "daily") -> Habit:
        if not name or not name.strip():
            raise ModelError("Habit name is required")
        if len(self.habits) >= MAX_HABITS:
            raise ModelError(f"Maximum {MAX_HABITS} habits allowed")
        habit = Habit(id=new_id("habit"), name=name.strip(), category=category,
                      frequency=frequency, created_at=now_iso())
        self.habits.append(habit)
        logger.info(f"[HABITS] Added habit {habit.id} '{habit.name}'")
        return habit

    def remove_habit(self, habit_id: str) -> None:
        """Remove a habit and every progress mark it has."""
        self.habits.remove(self.get_habit(habit_id))
        for marks in self.progress.values():
            marks.pop(habit_id, None)
        self.progress = {day: marks for day, marks in self.progress.items() if marks}

    def toggle(self, habit_id: str, day: date | datetime | str, completed: bool) -> None:
        self.get_habit(habit_id)
        self.progress.setdefault(date_key(day), {})[habit_id] = bool(completed)

    def is_done(self, habit_id: str, day: date | datetime | str) -> bool:
        return bool(self.progress.get(date_key(day), {}).get(habit_id))

    def day_progress(self, day: date | datetime | str) -> int:
        """Percent of habits completed on day, clamped to 0-100."""
        if not self.habits:
            return 0
        done = sum(1 for v in self.progress.get(date_key(day), {}).values() if v)
        return min(100, max(0, round_half_up(Decimal(done * 100) / len(self.habits))))

    def streak(self, habit_id: str, until: date | datetime | None = None) -> int:
        """Consecutive completed days ending at until, looking back at most 30 days."""
        if until is None:
            until = date.today()
        if isinstance(until, datetime):
            until = until.date()
        count = 0
        for offset in range(STREAK_LOOKBACK_DAYS):
            if not self.is_done(habit_id, until - timedelta(days=offset)):
                break
            count += 1
        return count
