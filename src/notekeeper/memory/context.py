"""Context summary for agents: today/yesterday notes, pending TODOs, recent notes."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from notekeeper.memory.daily import DailyNoteStore
from notekeeper.memory.todos import TodoEngine

RECENT_NOTES_LIMIT = 5


class ContextAggregator:
    def __init__(self, daily: DailyNoteStore, todos: TodoEngine, workspace: Path) -> None:
        self.daily = daily
        self.todos = todos
        self.workspace = workspace

    def get_context(self) -> dict[str, Any]:
        today = self.daily.date_key()
        yesterday = self.daily.date_key(-1)
        pending = [t for t in self.todos.list(today)["todos"] if not t["done"]]

        return {
            "date": today,
            "todayExists": self.daily.read(today)["exists"],
            "yesterdayExists": self.daily.read(yesterday)["exists"],
            "pendingTodos": len(pending),
            "recentNotes": self.daily.list(RECENT_NOTES_LIMIT)["notes"],
            "workspace": str(self.workspace),
        }
