"""Notekeeper wiring: builds the document stores from a config.

Responsibilities:
1. Resolve file locations and TODO markers from NotekeeperConfig
2. Share one clock between the memory log, daily notes and TODOs
3. Hand the components to the tool registry and protocol handler
"""

from __future__ import annotations

import logging

from notekeeper.config import NotekeeperConfig
from notekeeper.memory.clock import Clock, utc_now
from notekeeper.memory.context import ContextAggregator
from notekeeper.memory.daily import DailyNoteStore
from notekeeper.memory.log import MemoryLog
from notekeeper.memory.todos import MATCHERS, TodoEngine

logger = logging.getLogger(__name__)


class Notekeeper:
    """All notekeeper components for one workspace."""

    def __init__(self, config: NotekeeperConfig, clock: Clock = utc_now) -> None:
        self.config = config
        matcher = MATCHERS.get(config.todos.match)
        if matcher is None:
            raise ValueError(
                f"Unknown TODO matcher '{config.todos.match}'. Available: {list(MATCHERS)}"
            )

        self.memory = MemoryLog(config.memory_file, clock=clock)
        self.daily = DailyNoteStore(config.daily_note_dir, clock=clock)
        self.todos = TodoEngine(
            self.daily,
            pending_marker=config.todos.pending_marker,
            done_marker=config.todos.done_marker,
            matcher=matcher,
        )
        self.context = ContextAggregator(self.daily, self.todos, config.workspace_root)
        logger.debug(
            "Notekeeper ready (memory=%s, daily=%s)", config.memory_file, config.daily_note_dir
        )
