"""MCP tools for agent memory access.

Each tool pairs a pydantic input model with a callable over the notekeeper
components. Arguments are validated into the model before the call, so the
component methods only ever see well-typed values. The advertised
`inputSchema` is kept next to the model in the plain shape MCP clients expect.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

if TYPE_CHECKING:
    from notekeeper.core import Notekeeper

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class ToolError(Exception):
    """Base error raised inside the tool layer."""


class InvalidParams(ToolError):
    """Tool arguments do not satisfy the tool's input model."""


# ── Input models ──────────────────────────────────────────────


class ToolInput(BaseModel):
    """Strict base: no coercion of "3" to 3 or 5 to "5"."""

    model_config = ConfigDict(strict=True)


class NoInput(ToolInput):
    pass


class AddMemoryInput(ToolInput):
    entry: str = Field(..., description="Memory entry to add")
    category: Optional[str] = Field(default=None, description="Category (default: General)")


class SearchMemoryInput(ToolInput):
    query: str = Field(..., description="Search query")


class DateInput(ToolInput):
    # The pattern also keeps paths inside the daily note directory
    date: Optional[str] = Field(
        default=None, description="Date in YYYY-MM-DD format", pattern=DATE_PATTERN
    )


class AddDailyNoteInput(DateInput):
    entry: str = Field(..., description="Note entry to add")


class ListDailyNotesInput(ToolInput):
    limit: Optional[int] = Field(
        default=None, description="Max notes to return (default: 10)", ge=0
    )

    @field_validator("limit", mode="before")
    @classmethod
    def integral_float(cls, v: Any) -> Any:
        """JSON numbers like 3.0 are accepted as 3."""
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class AddTodoInput(DateInput):
    todo: str = Field(..., description="TODO text")


class CompleteTodoInput(DateInput):
    todo: str = Field(..., description="TODO text to complete")


def describe_validation_error(exc: ValidationError) -> str:
    """One line per failed field: 'limit: Input should be greater than or equal to 0'."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


# ── Tool registry ─────────────────────────────────────────────


@dataclass
class Tool:
    name: str
    description: str
    input_schema: dict[str, Any]
    input_model: type[ToolInput]
    func: Callable[[Any], Any]
    raw_text: bool = False

    def manifest(self) -> dict[str, Any]:
        return {"description": self.description, "inputSchema": self.input_schema}

    def call(self, arguments: dict[str, Any]) -> Any:
        try:
            params = self.input_model.model_validate(arguments)
        except ValidationError as e:
            raise InvalidParams(describe_validation_error(e)) from e
        return self.func(params)


def _string(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


_DATE_PROP = _string("Date in YYYY-MM-DD format")


def _schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict:
    schema: dict[str, Any] = {"type": "object", "properties": properties or {}}
    if required:
        schema["required"] = required
    return schema


def get_memory_tools(keeper: Notekeeper) -> dict[str, Tool]:
    """Return tool_name -> Tool for every operation exposed over tools/call."""
    memory, daily, todos, context = keeper.memory, keeper.daily, keeper.todos, keeper.context

    tools = [
        # Memory tools
        Tool(
            "get_memory",
            "Read the long-term memory file (MEMORY.md)",
            _schema(),
            NoInput,
            lambda p: memory.read(),
            raw_text=True,
        ),
        Tool(
            "add_memory",
            "Add an entry to long-term memory",
            _schema(
                {
                    "entry": _string("Memory entry to add"),
                    "category": _string("Category (default: General)"),
                },
                required=["entry"],
            ),
            AddMemoryInput,
            lambda p: memory.append(p.entry, p.category),
        ),
        Tool(
            "search_memory",
            "Search long-term memory for a query",
            _schema({"query": _string("Search query")}, required=["query"]),
            SearchMemoryInput,
            lambda p: memory.search(p.query),
        ),
        # Daily note tools
        Tool(
            "get_daily_note",
            "Read a daily note (defaults to today)",
            _schema({"date": _DATE_PROP}),
            DateInput,
            lambda p: daily.read(p.date),
        ),
        Tool(
            "add_daily_note",
            "Add an entry to the daily note",
            _schema({"entry": _string("Note entry to add"), "date": _DATE_PROP}, required=["entry"]),
            AddDailyNoteInput,
            lambda p: daily.append(p.entry, p.date),
        ),
        Tool(
            "list_daily_notes",
            "List available daily notes",
            _schema(
                {"limit": {"type": "number", "description": "Max notes to return (default: 10)"}}
            ),
            ListDailyNotesInput,
            lambda p: daily.list(p.limit),
        ),
        # TODO tools
        Tool(
            "get_todos",
            "Get TODO items from today's note",
            _schema({"date": _DATE_PROP}),
            DateInput,
            lambda p: todos.list(p.date),
        ),
        Tool(
            "add_todo",
            "Add a new TODO item",
            _schema({"todo": _string("TODO text"), "date": _DATE_PROP}, required=["todo"]),
            AddTodoInput,
            lambda p: todos.add(p.todo, p.date),
        ),
        Tool(
            "complete_todo",
            "Mark a TODO as complete",
            _schema(
                {"todo": _string("TODO text to complete"), "date": _DATE_PROP}, required=["todo"]
            ),
            CompleteTodoInput,
            lambda p: todos.complete(p.todo, p.date),
        ),
        # Context tools
        Tool(
            "get_context",
            "Get context summary for AI agents (today's note, todos, recent notes)",
            _schema(),
            NoInput,
            lambda p: context.get_context(),
        ),
    ]
    return {tool.name: tool for tool in tools}
