"""Long-term memory log (MEMORY.md).

Append-only: every entry is written under a freshly emitted `## <category>`
heading, so the same category may appear many times.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from notekeeper.memory import textstore
from notekeeper.memory.clock import Clock, iso_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "General"
SEARCH_LIMIT = 20


class MemoryLog:
    """Read, append and search the long-term memory document."""

    def __init__(self, path: Path, clock: Clock = utc_now) -> None:
        self.path = path
        self._clock = clock

    def read(self) -> str:
        """Return the memory document, or an empty string if there is none."""
        return textstore.read(self.path) or ""

    def append(self, entry: str, category: str | None = None) -> dict[str, Any]:
        """Append `entry` under a new heading for `category`."""
        category = category or DEFAULT_CATEGORY
        timestamp = iso_timestamp(self._clock())
        content = self.read() + f"\n## {category}\n- **{timestamp}**: {entry}"

        result = textstore.write(self.path, content)
        if result.success:
            logger.info("Appended memory entry under '%s'", category)

        ack: dict[str, Any] = {
            "success": result.success,
            "entry": entry,
            "category": category,
            "timestamp": timestamp,
        }
        if result.error:
            ack["error"] = result.error
        return ack

    def search(self, query: str) -> dict[str, Any]:
        """Case-insensitive line search.

        `count` is the number of matching lines; `results` holds at most the
        first SEARCH_LIMIT of them.
        """
        if not query:
            return {"results": [], "message": "No query provided"}

        needle = query.lower()
        matches = [
            line.strip()
            for line in self.read().split("\n")
            if needle in line.lower() and line.strip()
        ]
        return {
            "query": query,
            "count": len(matches),
            "results": matches[:SEARCH_LIMIT],
        }
