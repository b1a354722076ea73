"""Stdio transport: one request at a time, one response line per request."""

from __future__ import annotations

import logging
from typing import BinaryIO

from notekeeper.server.handler import ProtocolHandler
from notekeeper.server.protocol import (
    INTERNAL_ERROR,
    FrameBuffer,
    ProtocolError,
    format_message,
    jsonrpc_error,
    parse_request,
)

logger = logging.getLogger(__name__)


class StdioServer:
    """Read frames from `stdin`, dispatch them, write responses to `stdout`."""

    def __init__(
        self,
        handler: ProtocolHandler,
        stdin: BinaryIO,
        stdout: BinaryIO,
        max_message_bytes: int = 1024 * 1024,
    ) -> None:
        self.handler = handler
        self._stdin = stdin
        self._stdout = stdout
        self._frames = FrameBuffer(max_message_bytes)
        # Longer reads are over the limit anyway
        self._read_size = max_message_bytes + 1

    def serve(self) -> None:
        """Run until stdin reaches EOF."""
        logger.info("Server started")
        while True:
            raw = self._stdin.readline(self._read_size)
            if not raw:
                break
            if not raw.endswith(b"\n") and len(raw) >= self._read_size:
                self._skip_rest_of_line()
            line = raw.decode("utf-8", errors="replace")
            try:
                frame = self._frames.feed(line)
            except ProtocolError as e:
                logger.warning("Dropped frame: %s", e.message)
                self._send(jsonrpc_error(e.req_id, e.code, e.message))
                continue
            if frame is not None:
                self.process_frame(frame)

        leftover = self._frames.flush()
        if leftover is not None:
            self.process_frame(leftover)
        logger.info("Server stopped (stdin closed)")

    def process_frame(self, frame: str) -> None:
        try:
            req = parse_request(frame)
        except ProtocolError as e:
            logger.warning("Bad request: %s", e.message)
            self._send(jsonrpc_error(e.req_id, e.code, e.message))
            return

        try:
            response = self.handler.handle(req)
        except Exception as e:
            logger.exception("Handler error for %s", req.method)
            response = jsonrpc_error(req.id, INTERNAL_ERROR, f"Internal error: {e}")
        if response is not None:
            self._send(response)

    def _skip_rest_of_line(self) -> None:
        """Consume the remainder of an overlong physical line without keeping it."""
        while True:
            chunk = self._stdin.readline(self._read_size)
            if not chunk or chunk.endswith(b"\n"):
                return

    def _send(self, message: dict) -> None:
        self._stdout.write((format_message(message) + "\n").encode("utf-8"))
        self._stdout.flush()
