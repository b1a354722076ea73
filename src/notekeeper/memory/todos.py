"""TODO markers inside daily notes.

A TODO is any line whose trimmed form (after an optional `- ` or `* ` bullet)
starts with the pending marker `[ ]` or the done marker `[x]`. TODOs are
appended under a `## TODOs` heading and completed in place by swapping the
marker token.

Every mutation is a read-modify-write of the whole note with no locking: an
external writer touching the same note between our read and write loses its
update.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from notekeeper.memory.daily import DailyNoteStore

logger = logging.getLogger(__name__)

TODO_HEADING = "## TODOs"
_BULLETS = ("- ", "* ")


@dataclass
class TodoItem:
    text: str
    done: bool
    line: int
    raw: str

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "done": self.done, "line": self.line}


TodoMatcher = Callable[[TodoItem, str], bool]


def substring_match(item: TodoItem, query: str) -> bool:
    """First-pending-line-containing-query rule (loose, ambiguous with duplicates)."""
    return query in item.raw.strip()


def exact_match(item: TodoItem, query: str) -> bool:
    return item.text == query.strip()


MATCHERS: dict[str, TodoMatcher] = {
    "substring": substring_match,
    "exact": exact_match,
}


def _strip_bullet(text: str) -> str:
    for bullet in _BULLETS:
        if text.startswith(bullet):
            return text[len(bullet):].lstrip()
    return text


class TodoEngine:
    """List, add and complete TODO items in a daily note."""

    def __init__(
        self,
        daily: DailyNoteStore,
        pending_marker: str = "[ ]",
        done_marker: str = "[x]",
        matcher: TodoMatcher = substring_match,
    ) -> None:
        self.daily = daily
        self.pending_marker = pending_marker
        self.done_marker = done_marker
        self.matcher = matcher

    def parse_line(self, line: str, index: int) -> TodoItem | None:
        """Return the TODO on `line`, or None if it carries no marker."""
        body = _strip_bullet(line.strip())
        for marker, done in ((self.pending_marker, False), (self.done_marker, True)):
            if body.startswith(marker):
                return TodoItem(
                    text=body[len(marker):].strip(), done=done, line=index, raw=line
                )
        return None

    def parse(self, content: str) -> list[TodoItem]:
        items = []
        for index, line in enumerate(content.split("\n")):
            item = self.parse_line(line, index)
            if item is not None:
                items.append(item)
        return items

    def list(self, date: str | None = None) -> dict[str, Any]:
        date = date or self.daily.date_key()
        content = self.daily.read_raw(date)
        todos = [item.to_dict() for item in self.parse(content)] if content is not None else []
        return {"todos": todos, "date": date, "count": len(todos)}

    def add(self, todo: str, date: str | None = None) -> dict[str, Any]:
        """Append a pending TODO, creating the `## TODOs` heading if needed."""
        date = date or self.daily.date_key()
        content = self.daily.read_raw(date) or ""
        if TODO_HEADING not in content:
            content += f"\n{TODO_HEADING}\n"
        content += f"- {self.pending_marker} {todo}\n"

        result = self.daily.write_raw(date, content)
        if result.success:
            logger.info("Added TODO to %s: %s", date, todo)

        ack: dict[str, Any] = {"success": result.success, "date": date, "todo": todo}
        if result.error:
            ack["error"] = result.error
        return ack

    def complete(self, todo_text: str, date: str | None = None) -> dict[str, Any]:
        """Mark the first pending TODO matching `todo_text` as done."""
        date = date or self.daily.date_key()
        content = self.daily.read_raw(date)
        if content is None:
            return {"success": False, "error": "Daily note not found"}

        lines = content.split("\n")
        for index, line in enumerate(lines):
            item = self.parse_line(line, index)
            if item is None or item.done or not self.matcher(item, todo_text):
                continue
            lines[index] = line.replace(self.pending_marker, self.done_marker, 1)
            break
        else:
            return {"success": False, "error": "TODO not found", "todo": todo_text}

        result = self.daily.write_raw(date, "\n".join(lines))
        if result.success:
            logger.info("Completed TODO in %s: %s", date, todo_text)

        ack: dict[str, Any] = {"success": result.success, "todo": todo_text, "completed": True}
        if result.error:
            ack["error"] = result.error
        return ack
