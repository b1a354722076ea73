"""Per-day note files: <daily_note_dir>/YYYY-MM-DD.md."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from notekeeper.memory import textstore
from notekeeper.memory.clock import Clock, date_key, iso_timestamp, utc_now

logger = logging.getLogger(__name__)

DAILY_NOTE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}\.md$")
DEFAULT_LIST_LIMIT = 10


class DailyNoteStore:
    """One markdown document per calendar date."""

    def __init__(self, root: Path, clock: Clock = utc_now) -> None:
        self.root = root
        self._clock = clock

    def date_key(self, offset_days: int = 0) -> str:
        """Today's UTC date shifted by `offset_days`, as YYYY-MM-DD."""
        return date_key(self._clock(), offset_days)

    def path_for(self, date: str) -> Path:
        return self.root / f"{date}.md"

    def read_raw(self, date: str | None = None) -> str | None:
        """Return the note text for `date`, or None if the note does not exist."""
        return textstore.read(self.path_for(date or self.date_key()))

    def write_raw(self, date: str, content: str) -> textstore.WriteResult:
        return textstore.write(self.path_for(date), content)

    def read(self, date: str | None = None) -> dict[str, Any]:
        date = date or self.date_key()
        content = self.read_raw(date)
        return {"exists": content is not None, "date": date, "content": content}

    def append(self, entry: str, date: str | None = None) -> dict[str, Any]:
        """Append a timestamped bullet to the note for `date` (default today)."""
        date = date or self.date_key()
        timestamp = iso_timestamp(self._clock())
        content = (self.read_raw(date) or "") + f"- **{timestamp}**: {entry}\n"

        result = self.write_raw(date, content)
        if result.success:
            logger.info("Appended entry to daily note %s", date)

        ack: dict[str, Any] = {
            "success": result.success,
            "date": date,
            "entry": entry,
            "timestamp": timestamp,
        }
        if result.error:
            ack["error"] = result.error
        return ack

    def list(self, limit: int | None = None) -> dict[str, Any]:
        """List note dates, newest first (zero-padded keys sort as strings)."""
        limit = DEFAULT_LIST_LIMIT if limit is None else limit
        try:
            names = [p.name for p in self.root.iterdir()]
        except OSError as e:
            logger.debug("Cannot list %s: %s", self.root, e)
            return {"notes": [], "count": 0, "error": str(e)}

        notes = sorted((n for n in names if DAILY_NOTE_PATTERN.fullmatch(n)), reverse=True)
        notes = [n.removesuffix(".md") for n in notes[:limit]]
        return {"notes": notes, "count": len(notes)}
