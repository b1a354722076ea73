"""Tests for the request handler and the stdio server loop."""

from __future__ import annotations

import io
import json

import pytest
from datetime import datetime, timezone
from pathlib import Path

from notekeeper.config import NotekeeperConfig
from notekeeper.core import Notekeeper
from notekeeper.server.handler import PROTOCOL_VERSION, ProtocolHandler
from notekeeper.server.protocol import Request
from notekeeper.server.stdio import StdioServer

NOW = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)

TOOL_NAMES = {
    "get_memory",
    "add_memory",
    "search_memory",
    "get_daily_note",
    "add_daily_note",
    "list_daily_notes",
    "get_todos",
    "add_todo",
    "complete_todo",
    "get_context",
}


@pytest.fixture
def keeper(tmp_path: Path) -> Notekeeper:
    return Notekeeper(NotekeeperConfig.for_workspace(tmp_path / "ws"), clock=lambda: NOW)


@pytest.fixture
def handler(keeper: Notekeeper) -> ProtocolHandler:
    return ProtocolHandler(keeper)


def call(handler: ProtocolHandler, name: str, arguments: dict | None = None, req_id=1) -> dict:
    params: dict = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return handler.handle(Request(method="tools/call", id=req_id, params=params))


def tool_text(response: dict) -> str:
    [block] = response["result"]["content"]
    assert block["type"] == "text"
    return block["text"]


def tool_json(response: dict):
    return json.loads(tool_text(response))


class TestLifecycle:
    def test_initialize(self, handler: ProtocolHandler):
        resp = handler.handle(Request(method="initialize", id=0))
        result = resp["result"]
        assert resp["id"] == 0
        assert result["protocolVersion"] == PROTOCOL_VERSION
        assert result["serverInfo"]["name"] == "notekeeper"
        tools = result["capabilities"]["tools"]
        assert set(tools) == TOOL_NAMES
        assert tools["add_todo"]["inputSchema"]["required"] == ["todo"]
        assert "required" not in tools["get_context"]["inputSchema"]
        assert tools["get_memory"]["description"]

    def test_initialized_notification_has_no_response(self, handler: ProtocolHandler):
        assert handler.handle(Request(method="notifications/initialized")) is None

    def test_tools_list(self, handler: ProtocolHandler):
        resp = handler.handle(Request(method="tools/list", id=2))
        tools = resp["result"]["tools"]
        assert {t["name"] for t in tools} == TOOL_NAMES
        assert all("inputSchema" in t for t in tools)

    def test_unknown_method(self, handler: ProtocolHandler):
        resp = handler.handle(Request(method="resources/list", id=3))
        assert resp["error"] == {"code": -32600, "message": "Unknown method"}
        assert resp["id"] == 3


class TestToolsCall:
    def test_unknown_tool(self, handler: ProtocolHandler):
        resp = call(handler, "delete_everything")
        assert resp["error"]["code"] == -32601
        assert resp["error"]["message"] == "Unknown tool: delete_everything"

    def test_missing_tool_name(self, handler: ProtocolHandler):
        resp = handler.handle(Request(method="tools/call", id=4, params={}))
        assert resp["error"]["code"] == -32601

    def test_get_memory_empty(self, handler: ProtocolHandler):
        assert tool_text(call(handler, "get_memory")) == "(No memory file found)"

    def test_get_memory_is_raw_text(self, handler: ProtocolHandler):
        added = tool_json(call(handler, "add_memory", {"entry": "Likes tea", "category": "Prefs"}))
        assert added["success"] is True
        text = tool_text(call(handler, "get_memory", {}))
        assert text == f"\n## Prefs\n- **{added['timestamp']}**: Likes tea"

    def test_results_are_pretty_printed(self, handler: ProtocolHandler):
        text = tool_text(call(handler, "list_daily_notes", {"limit": 2}))
        assert text.startswith("{\n  ")

    def test_search_memory(self, handler: ProtocolHandler):
        call(handler, "add_memory", {"entry": "Project Apollo kickoff"})
        result = tool_json(call(handler, "search_memory", {"query": "apollo"}))
        assert result["count"] == 1
        assert result["results"][0].endswith("Project Apollo kickoff")

    def test_search_memory_empty_query(self, handler: ProtocolHandler):
        result = tool_json(call(handler, "search_memory", {"query": ""}))
        assert result == {"results": [], "message": "No query provided"}

    def test_daily_notes(self, handler: ProtocolHandler):
        before = tool_json(call(handler, "get_daily_note", {"date": "2023-12-31"}))
        assert before == {"exists": False, "date": "2023-12-31", "content": None}

        call(handler, "add_daily_note", {"entry": "new year's eve", "date": "2023-12-31"})
        call(handler, "add_daily_note", {"entry": "today"})
        after = tool_json(call(handler, "get_daily_note", {"date": "2023-12-31"}))
        assert after["exists"] is True
        assert "new year's eve" in after["content"]

        listed = tool_json(call(handler, "list_daily_notes"))
        assert listed == {"notes": ["2024-01-01", "2023-12-31"], "count": 2}

    def test_get_context(self, handler: ProtocolHandler, tmp_path: Path):
        call(handler, "add_todo", {"todo": "pending"})
        context = tool_json(call(handler, "get_context"))
        assert context["date"] == "2024-01-01"
        assert context["todayExists"] is True
        assert context["pendingTodos"] == 1
        assert context["workspace"] == str(tmp_path / "ws")

    def test_complete_todo_without_note(self, handler: ProtocolHandler, keeper: Notekeeper):
        result = tool_json(call(handler, "complete_todo", {"todo": "x", "date": "2020-02-02"}))
        assert result == {"success": False, "error": "Daily note not found"}
        assert not keeper.daily.path_for("2020-02-02").exists()


class TestArgumentValidation:
    @pytest.mark.parametrize(
        "name,arguments",
        [
            ("add_memory", {}),
            ("add_memory", {"entry": 5}),
            ("add_memory", {"entry": None}),
            ("add_memory", {"entry": "x", "category": ["Prefs"]}),
            ("search_memory", {}),
            ("add_todo", {"todo": "x", "date": "01/02/2024"}),
            ("get_daily_note", {"date": "../../etc/passwd"}),
            ("list_daily_notes", {"limit": -1}),
            ("list_daily_notes", {"limit": 2.5}),
            ("list_daily_notes", {"limit": "3"}),
            ("list_daily_notes", {"limit": True}),
        ],
    )
    def test_invalid_params(self, handler: ProtocolHandler, name: str, arguments: dict):
        resp = call(handler, name, arguments)
        assert resp["error"]["code"] == -32602

    def test_arguments_must_be_object(self, handler: ProtocolHandler):
        resp = handler.handle(
            Request(method="tools/call", id=1, params={"name": "get_todos", "arguments": [1]})
        )
        assert resp["error"]["code"] == -32602

    def test_integral_float_limit_accepted(self, handler: ProtocolHandler):
        assert tool_json(call(handler, "list_daily_notes", {"limit": 3.0}))["notes"] == []

    def test_error_names_the_field(self, handler: ProtocolHandler):
        resp = call(handler, "list_daily_notes", {"limit": -1})
        assert resp["error"]["message"].startswith("limit: ")

    def test_schemas_match_input_models(self, handler: ProtocolHandler):
        for tool in handler.tools.values():
            fields = tool.input_model.model_fields
            required = sorted(name for name, f in fields.items() if f.is_required())
            assert set(tool.input_schema["properties"]) == set(fields), tool.name
            assert sorted(tool.input_schema.get("required", [])) == required, tool.name

    def test_unencodable_entry_reports_write_failure(self, handler: ProtocolHandler):
        result = tool_json(call(handler, "add_memory", {"entry": "\ud800"}))
        assert result["success"] is False
        assert result["error"]

    def test_unexpected_error_is_internal_error(self, handler: ProtocolHandler, monkeypatch):
        def boom(date=None):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(handler.keeper.todos, "list", boom)
        resp = call(handler, "get_todos")
        assert resp["error"]["code"] == -32603
        assert "disk on fire" in resp["error"]["message"]


def run_server(handler: ProtocolHandler, payload: str, max_bytes: int = 1024 * 1024) -> list[dict]:
    stdout = io.BytesIO()
    server = StdioServer(handler, io.BytesIO(payload.encode("utf-8")), stdout, max_bytes)
    server.serve()
    return [json.loads(line) for line in stdout.getvalue().decode("utf-8").splitlines()]


def frame(req_id, method: str, params: dict | None = None) -> str:
    msg: dict = {"jsonrpc": "2.0", "method": method}
    if req_id is not None:
        msg["id"] = req_id
    if params is not None:
        msg["params"] = params
    return json.dumps(msg) + "\n\n"


class TestStdioServer:
    def test_end_to_end_todo_flow(self, handler: ProtocolHandler):
        day = {"date": "2024-01-01"}
        payload = (
            frame(1, "initialize", {"protocolVersion": PROTOCOL_VERSION})
            + frame(None, "notifications/initialized")
            + frame(2, "tools/call", {"name": "add_todo", "arguments": {"todo": "write report", **day}})
            + frame(3, "tools/call", {"name": "get_todos", "arguments": day})
            + frame(
                4, "tools/call", {"name": "complete_todo", "arguments": {"todo": "write report", **day}}
            )
            + frame(5, "tools/call", {"name": "get_todos", "arguments": day})
        )
        responses = run_server(handler, payload)

        assert [r["id"] for r in responses] == [1, 2, 3, 4, 5]
        assert responses[0]["result"]["protocolVersion"] == PROTOCOL_VERSION

        todos = tool_json(responses[2])["todos"]
        assert len(todos) == 1
        assert todos[0]["text"] == "write report"
        assert todos[0]["done"] is False

        completed = tool_json(responses[3])
        assert completed["success"] is True
        assert completed["completed"] is True

        [todo] = tool_json(responses[4])["todos"]
        assert todo["done"] is True

    def test_multiline_message(self, handler: ProtocolHandler):
        body = json.dumps({"jsonrpc": "2.0", "id": 9, "method": "initialize"}, indent=2)
        responses = run_server(handler, body + "\n\n")
        assert len(responses) == 1
        assert responses[0]["id"] == 9

    def test_plain_ndjson_without_blank_lines(self, handler: ProtocolHandler):
        payload = (
            json.dumps({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
            + "\n"
            + json.dumps({"jsonrpc": "2.0", "id": 2, "method": "initialize"})
            + "\n"
        )
        responses = run_server(handler, payload)
        assert [r["id"] for r in responses] == [1, 2]

    def test_malformed_json_then_continues(self, handler: ProtocolHandler):
        payload = "{this is not json\n\n" + frame(7, "initialize")
        responses = run_server(handler, payload)
        assert len(responses) == 2
        assert responses[0]["id"] is None
        assert responses[0]["error"]["code"] == -32700
        assert responses[0]["error"]["message"].startswith("Invalid JSON: ")
        assert responses[1]["id"] == 7

    def test_leftover_buffer_flushed_at_eof(self, handler: ProtocolHandler):
        responses = run_server(handler, "{\"id\": 1,\n")
        assert responses[0]["error"]["code"] == -32700

    def test_oversized_request(self, handler: ProtocolHandler):
        big = json.dumps(
            {
                "id": 1,
                "method": "tools/call",
                "params": {"name": "add_memory", "arguments": {"entry": ["x" * 30] * 8}},
            },
            indent=2,
        )
        responses = run_server(handler, big + "\n\n" + frame(2, "initialize"), max_bytes=100)
        assert len(responses) == 2
        assert responses[0] == {
            "jsonrpc": "2.0",
            "id": None,
            "error": {"code": -32600, "message": "Request too large"},
        }
        assert responses[1]["id"] == 2
        assert "result" in responses[1]

    def test_oversized_single_line(self, handler: ProtocolHandler):
        big = json.dumps({"id": 1, "method": "tools/call", "params": {"entry": "x" * 500}})
        ndjson = json.dumps({"jsonrpc": "2.0", "id": 2, "method": "initialize"})
        responses = run_server(handler, big + "\n" + ndjson + "\n", max_bytes=100)
        assert [r.get("error", {}).get("code") for r in responses] == [-32600, None]
        assert responses[1]["id"] == 2

    def test_deeply_nested_json_does_not_stop_server(self, handler: ProtocolHandler):
        payload = "[" * 100000 + "\n\n" + frame(2, "initialize")
        responses = run_server(handler, payload)
        assert len(responses) == 2
        assert responses[0]["error"]["code"] == -32700
        assert responses[1]["id"] == 2

    def test_malformed_line_then_ndjson_requests(self, handler: ProtocolHandler):
        payload = (
            "{bad\n"
            + json.dumps({"jsonrpc": "2.0", "id": 2, "method": "initialize"})
            + "\n"
            + json.dumps({"jsonrpc": "2.0", "id": 3, "method": "initialize"})
            + "\n"
        )
        responses = run_server(handler, payload)
        assert [r["id"] for r in responses] == [None, 2, 3]
        assert responses[0]["error"]["code"] == -32700

    def test_lone_surrogate_is_echoed_safely(self, handler: ProtocolHandler):
        payload = (
            frame(1, "tools/call", {"name": "search_memory", "arguments": {"query": "\ud800"}})
            + frame(2, "tools/call", {"name": "no_such_\udfff"})
            + frame("\ud800", "initialize")
        )
        responses = run_server(handler, payload)
        assert [r["id"] for r in responses] == [1, 2, "\ud800"]
        assert tool_json(responses[0])["query"] == "\ud800"
        assert responses[1]["error"]["message"] == "Unknown tool: no_such_\udfff"

    def test_handler_crash_is_internal_error(self, handler: ProtocolHandler, monkeypatch):
        def boom(req):
            raise RuntimeError("handler bug")

        monkeypatch.setattr(handler, "handle", boom)
        [resp] = run_server(handler, frame(5, "initialize"))
        assert resp["id"] == 5
        assert resp["error"]["code"] == -32603
        assert "handler bug" in resp["error"]["message"]

    def test_unknown_method_over_stdio(self, handler: ProtocolHandler):
        [resp] = run_server(handler, frame(11, "prompts/list"))
        assert resp == {
            "jsonrpc": "2.0",
            "id": 11,
            "error": {"code": -32600, "message": "Unknown method"},
        }
