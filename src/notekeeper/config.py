"""Configuration loading from environment variables, .env and notekeeper.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from dotenv import dotenv_values

_DEFAULT_WORKSPACE = Path.home() / ".notekeeper" / "workspace"
_CONFIG_FILENAME = "notekeeper.toml"
_MEMORY_FILENAME = "MEMORY.md"
_DAILY_DIRNAME = "memory"


@dataclass
class TodoConfig:
    """Marker tokens and completion matching for TODO lines."""

    pending_marker: str = "[ ]"
    done_marker: str = "[x]"
    match: str = "substring"


@dataclass
class ServerConfig:
    """Stdio server limits."""

    max_message_bytes: int = 1024 * 1024


@dataclass
class NotekeeperConfig:
    """Top-level configuration, passed explicitly to the server at startup."""

    workspace_root: Path = _DEFAULT_WORKSPACE
    memory_file: Path = _DEFAULT_WORKSPACE / _MEMORY_FILENAME
    daily_note_dir: Path = _DEFAULT_WORKSPACE / _DAILY_DIRNAME
    todos: TodoConfig = field(default_factory=TodoConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"

    @classmethod
    def for_workspace(cls, workspace: Path, **kwargs) -> NotekeeperConfig:
        """Build a config whose memory file and daily dir live under `workspace`."""
        return cls(
            workspace_root=workspace,
            memory_file=workspace / _MEMORY_FILENAME,
            daily_note_dir=workspace / _DAILY_DIRNAME,
            **kwargs,
        )


def _find_config_file(config_path: Path | None) -> dict:
    if config_path and config_path.exists():
        return tomllib.loads(config_path.read_text(encoding="utf-8"))
    # Search current dir and ~/.notekeeper/
    for candidate in [
        Path.cwd() / _CONFIG_FILENAME,
        Path.home() / ".notekeeper" / _CONFIG_FILENAME,
    ]:
        if candidate.exists():
            return tomllib.loads(candidate.read_text(encoding="utf-8"))
    return {}


def load_config(config_path: Path | None = None) -> NotekeeperConfig:
    """Load configuration from the environment, .env and optional notekeeper.toml.

    Priority: environment variables > .env in the working directory >
    notekeeper.toml > defaults. The .env file is read without touching
    os.environ.
    """
    file_data = _find_config_file(config_path)
    todo_data = file_data.get("todos", {})
    server_data = file_data.get("server", {})

    dotenv_file = Path.cwd() / ".env"
    env: dict[str, str | None] = dict(dotenv_values(dotenv_file)) if dotenv_file.exists() else {}
    env.update(os.environ)

    def lookup(key: str, default):
        value = env.get(key)
        return default if value is None else value

    workspace = Path(
        lookup("NOTEKEEPER_WORKSPACE", file_data.get("workspace", str(_DEFAULT_WORKSPACE)))
    ).expanduser()
    memory_file = lookup("NOTEKEEPER_MEMORY_FILE", file_data.get("memory_file"))
    daily_dir = lookup("NOTEKEEPER_DAILY_DIR", file_data.get("daily_dir"))

    return NotekeeperConfig(
        workspace_root=workspace,
        memory_file=(
            Path(memory_file).expanduser() if memory_file else workspace / _MEMORY_FILENAME
        ),
        daily_note_dir=Path(daily_dir).expanduser() if daily_dir else workspace / _DAILY_DIRNAME,
        todos=TodoConfig(
            pending_marker=lookup(
                "NOTEKEEPER_PENDING_MARKER", todo_data.get("pending_marker", "[ ]")
            ),
            done_marker=lookup("NOTEKEEPER_DONE_MARKER", todo_data.get("done_marker", "[x]")),
            match=lookup("NOTEKEEPER_TODO_MATCH", todo_data.get("match", "substring")),
        ),
        server=ServerConfig(
            max_message_bytes=int(
                lookup(
                    "NOTEKEEPER_MAX_MESSAGE_BYTES",
                    server_data.get("max_message_bytes", 1024 * 1024),
                )
            ),
        ),
        log_level=lookup("NOTEKEEPER_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
