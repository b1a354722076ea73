"""JSON-RPC 2.0 protocol: message types + framing/parse/format (no I/O).

Handles the MCP stdio protocol:
- Frame: stdin lines -> complete request texts
- Parse: request text -> typed Request
- Format: result/error -> single-line JSON strings for stdout
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


# ── Parsed message types (stdin -> server) ────────────────────


@dataclass
class Request:
    """A JSON-RPC request or notification (notifications carry no id)."""

    method: str
    id: Any = None
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return self.method.startswith("notifications/")


class ProtocolError(Exception):
    """A frame that cannot be turned into a Request."""

    def __init__(self, code: int, message: str, req_id: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.req_id = req_id


# ── Parsing (frame -> typed request) ──────────────────────────


def parse_request(text: str) -> Request:
    """Parse one frame into a Request.

    Raises ProtocolError with PARSE_ERROR for malformed JSON and
    INVALID_REQUEST for JSON that is not a request object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(PARSE_ERROR, f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise ProtocolError(PARSE_ERROR, "Invalid JSON: nesting too deep") from e

    if not isinstance(data, dict):
        raise ProtocolError(INVALID_REQUEST, "Invalid Request")

    req_id = data.get("id")
    method = data.get("method")
    if not isinstance(method, str):
        raise ProtocolError(INVALID_REQUEST, "Invalid Request", req_id)

    params = data.get("params")
    if params is None:
        params = {}
    elif not isinstance(params, dict):
        raise ProtocolError(INVALID_PARAMS, "params must be an object", req_id)

    return Request(method=method, id=req_id, params=params)


COMPLETE = "complete"
PARTIAL = "partial"
INVALID = "invalid"


def scan_json(text: str) -> str:
    """Classify newline-terminated `text` as COMPLETE, PARTIAL or INVALID.

    Lines are joined with newlines, and no JSON token (string included) may
    span a newline, so only an "Expecting ..." error at the very end of the
    text can be cured by more lines. Anything else is INVALID for good.
    """
    try:
        json.loads(text)
    except json.JSONDecodeError as e:
        at_end = e.pos >= len(text.rstrip())
        return PARTIAL if at_end and e.msg.startswith("Expecting") else INVALID
    except RecursionError:
        return INVALID
    return COMPLETE


def _is_object_line(line: str) -> bool:
    try:
        return isinstance(json.loads(line), dict)
    except (json.JSONDecodeError, RecursionError):
        return False


# ── Framing (stdin lines -> frames) ───────────────────────────


class FrameBuffer:
    """Accumulate input lines into request frames.

    A blank line ends the buffered frame. A buffer that already parses as
    complete JSON is released at once, so one-request-per-line clients work
    too, and so is a buffer that can never become valid JSON.

    After a frame is dropped as oversized or released as invalid, the buffer
    resynchronizes: following lines are discarded until a blank line, or
    until a line that is a complete JSON object on its own. One bad request
    therefore gets exactly one error response.
    """

    def __init__(self, max_bytes: int = 1024 * 1024) -> None:
        self.max_bytes = max_bytes
        self._lines: list[str] = []
        self._size = 0
        self._resyncing = False

    def feed(self, line: str) -> str | None:
        """Add one line; return a finished frame or None.

        Raises ProtocolError(INVALID_REQUEST) when the frame grows past
        max_bytes.
        """
        if not line.strip():
            self._resyncing = False
            return self.flush()

        size = len(line.encode("utf-8"))
        if self._resyncing:
            if size <= self.max_bytes and _is_object_line(line):
                self._resyncing = False
                return line.rstrip("\r\n") + "\n"
            return None

        self._lines.append(line.rstrip("\r\n") + "\n")
        self._size += size
        if self._size > self.max_bytes:
            self._reset()
            self._resyncing = True
            raise ProtocolError(INVALID_REQUEST, "Request too large")

        frame = "".join(self._lines)
        state = scan_json(frame)
        if state == PARTIAL:
            return None
        self._reset()
        # The released frame is answered with a parse error by the caller
        self._resyncing = state == INVALID
        return frame

    def flush(self) -> str | None:
        """Release whatever is buffered (blank line or EOF)."""
        frame = "".join(self._lines)
        self._reset()
        return frame if frame.strip() else None

    def _reset(self) -> None:
        self._lines = []
        self._size = 0


# ── Formatting (server -> stdout) ─────────────────────────────


def jsonrpc_result(req_id: Any, result: Any) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": req_id, "result": result}


def jsonrpc_error(req_id: Any, code: int, message: str) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": req_id,
        "error": {"code": code, "message": message},
    }


def text_content(text: str) -> dict[str, Any]:
    """Wrap text as an MCP tool result with a single text content block."""
    return {"content": [{"type": "text", "text": text}]}


def pretty_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def format_message(message: dict[str, Any]) -> str:
    """Serialize a response as one ASCII-only JSON line (no trailing newline).

    Non-ASCII text, lone surrogates included, is written as \\uXXXX escapes,
    so the line always encodes to UTF-8.
    """
    return json.dumps(message)
