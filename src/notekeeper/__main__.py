"""Entry point: python -m notekeeper [serve|context]

- No args / "serve": MCP stdio server (JSON-RPC on stdin/stdout)
- "context":         Print today's context summary as JSON and exit
"""

from __future__ import annotations

import logging
import sys

from notekeeper.config import load_config


def _setup_logging(level: str) -> None:
    # stdout carries JSON-RPC, so logs go to stderr
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _run_serve() -> None:
    """MCP stdio server mode."""
    config = load_config()
    _setup_logging(config.log_level)

    from notekeeper.core import Notekeeper
    from notekeeper.server.handler import ProtocolHandler
    from notekeeper.server.stdio import StdioServer

    logging.getLogger(__name__).info("Workspace: %s", config.workspace_root)
    handler = ProtocolHandler(Notekeeper(config))
    server = StdioServer(
        handler,
        sys.stdin.buffer,
        sys.stdout.buffer,
        max_message_bytes=config.server.max_message_bytes,
    )
    try:
        server.serve()
    except KeyboardInterrupt:
        pass


def _run_context() -> None:
    config = load_config()
    _setup_logging(config.log_level)

    from notekeeper.core import Notekeeper
    from notekeeper.server.protocol import pretty_json

    print(pretty_json(Notekeeper(config).context.get_context()))


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else "serve"

    if cmd == "serve":
        _run_serve()
    elif cmd == "context":
        _run_context()
    else:
        print("Usage: python -m notekeeper [serve|context]")
        print("  serve    MCP stdio server (default)")
        print("  context  Print today's context summary")
        sys.exit(1)


if __name__ == "__main__":
    main()
