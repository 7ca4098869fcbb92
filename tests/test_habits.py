"""Tests for productive.model.habits module."""

from datetime import date, timedelta

import pytest

from productive.model.habits import HabitBook, date_key
from productive.model.tree import ModelError, NotFound


@pytest.fixture
def book():
    return HabitBook()


class TestHabits:

    def test_add_and_limit(self, book):
        for i in range(10):
            book.add_habit(f"Habit {i}")
        with pytest.raises(ModelError, match="Maximum 10"):
            book.add_habit("One too many")

    def test_name_required(self, book):
        with pytest.raises(ModelError):
            book.add_habit("")

    def test_remove_drops_progress(self, book):
        run = book.add_habit("Run")
        read = book.add_habit("Read")
        book.toggle(run.id, "2026-01-01", True)
        book.toggle(read.id, "2026-01-02", True)
        book.remove_habit(run.id)
        assert "2026-01-01" not in book.progress
        assert book.progress["2026-01-02"] == {read.id: True}

    def test_toggle_unknown_habit(self, book):
        with pytest.raises(NotFound):
            book.toggle("missing", "2026-01-01", True)


class TestProgress:

    def test_day_progress(self, book):
        habits = [book.add_habit(n) for n in ("Run", "Read", "Sleep")]
        day = date(2026, 1, 1)
        book.toggle(habits[0].id, day, True)
        book.toggle(habits[1].id, day, True)
        book.toggle(habits[2].id, day, False)
        assert book.day_progress(day) == 67

    def test_day_progress_rounds_half_up(self, book):
        habits = [book.add_habit(f"Habit {i}") for i in range(8)]
        book.toggle(habits[0].id, "2026-01-01", True)
        assert book.day_progress("2026-01-01") == 13

    def test_no_habits(self, book):
        assert book.day_progress("2026-01-01") == 0

    def test_clamped(self):
        book = HabitBook.from_payload({
            "habits": [{"id": "h1", "name": "Run"}],
            "progress": {"2026-01-01": {"h1": True, "old": True}},
        })
        assert book.day_progress("2026-01-01") == 100

    def test_streak(self, book):
        habit = book.add_habit("Run")
        today = date(2026, 5, 10)
        for offset in range(4):
            book.toggle(habit.id, today - timedelta(days=offset), True)
        book.toggle(habit.id, today - timedelta(days=5), True)
        assert book.streak(habit.id, today) == 4

    def test_streak_capped_at_lookback(self, book):
        habit = book.add_habit("Run")
        today = date(2026, 5, 10)
        for offset in range(45):
            book.toggle(habit.id, today - timedelta(days=offset), True)
        assert book.streak(habit.id, today) == 30

    def test_legacy_list_progress(self):
        book = HabitBook.from_payload({
            "habits": [{"id": "h1", "name": "Run"}],
            "progress": {"2026-01-01": ["h1"]},
        })
        assert book.is_done("h1", "2026-01-01")

    def test_date_key(self):
        assert date_key(date(2026, 1, 2)) == "2026-01-02"
        assert date_key("2026-01-02T10:00:00.000Z") == "2026-01-02"
