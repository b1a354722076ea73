"""Safe UTF-8 text file access for all notekeeper documents.

Reads never raise: a missing file and an unreadable file both look absent to
callers of `read()`. `read_text()` keeps the distinction for callers that
want to surface real I/O errors. Writes create parent directories and report
failures as values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

logger = logging.getLogger(__name__)


@dataclass
class ReadResult:
    """Outcome of reading a document."""

    status: Literal["ok", "missing", "error"]
    text: str | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.status == "ok"


@dataclass
class WriteResult:
    """Outcome of writing a document."""

    success: bool
    error: str | None = None


def read_text(path: Path) -> ReadResult:
    """Read `path`, tagging the result as ok, missing or error."""
    try:
        return ReadResult("ok", text=path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return ReadResult("missing")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read %s: %s", path, e)
        return ReadResult("error", error=str(e))


def read(path: Path) -> str | None:
    """Return the content of `path`, or None if it is missing or unreadable."""
    return read_text(path).text


def write(path: Path, text: str) -> WriteResult:
    """Overwrite `path` with `text`, creating any missing parent directories."""
    try:
        # Encode before opening so a bad string never truncates the file
        data = text.encode("utf-8")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except (OSError, UnicodeEncodeError) as e:
        logger.warning("Failed to write %s: %s", path, e)
        return WriteResult(False, error=str(e))
    return WriteResult(True)
