"""Request handler: dispatch JSON-RPC methods and tools/call to the memory tools."""

from __future__ import annotations

import logging
from typing import Any

from notekeeper import __version__
from notekeeper.core import Notekeeper
from notekeeper.server.protocol import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    Request,
    jsonrpc_error,
    jsonrpc_result,
    pretty_json,
    text_content,
)
from notekeeper.tools.memory_tools import InvalidParams, get_memory_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "notekeeper"
PROTOCOL_VERSION = "2024-11-05"
EMPTY_MEMORY_TEXT = "(No memory file found)"


class ProtocolHandler:
    """Turn one Request into at most one JSON-RPC response."""

    def __init__(self, keeper: Notekeeper) -> None:
        self.keeper = keeper
        self.tools = get_memory_tools(keeper)

    def handle(self, req: Request) -> dict[str, Any] | None:
        logger.debug("<- %s (id=%s)", req.method, req.id)

        # Notifications get no response
        if req.is_notification:
            if req.method == "notifications/initialized":
                logger.info("Client initialized")
            return None

        if req.method == "initialize":
            return jsonrpc_result(req.id, self._initialize())

        if req.method == "tools/list":
            tools = [{"name": name, **tool.manifest()} for name, tool in self.tools.items()]
            return jsonrpc_result(req.id, {"tools": tools})

        if req.method == "tools/call":
            return self._call_tool(req)

        return jsonrpc_error(req.id, INVALID_REQUEST, "Unknown method")

    def _initialize(self) -> dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {
                "tools": {name: tool.manifest() for name, tool in self.tools.items()},
            },
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    def _call_tool(self, req: Request) -> dict[str, Any]:
        tool_name = req.params.get("name")
        args = req.params.get("arguments") or {}

        tool = self.tools.get(tool_name) if isinstance(tool_name, str) else None
        if tool is None:
            return jsonrpc_error(req.id, METHOD_NOT_FOUND, f"Unknown tool: {tool_name}")
        if not isinstance(args, dict):
            return jsonrpc_error(req.id, INVALID_PARAMS, "arguments must be an object")

        try:
            result = tool.call(args)
        except InvalidParams as e:
            return jsonrpc_error(req.id, INVALID_PARAMS, str(e))
        except Exception as e:
            logger.exception("Tool %s failed", tool_name)
            return jsonrpc_error(req.id, INTERNAL_ERROR, f"Internal error: {e}")

        if tool.raw_text:
            return jsonrpc_result(req.id, text_content(result or EMPTY_MEMORY_TEXT))
        return jsonrpc_result(req.id, text_content(pretty_json(result)))
