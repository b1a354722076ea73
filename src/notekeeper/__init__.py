"""notekeeper: memory, daily notes and TODOs for AI agents over MCP stdio."""

__version__ = "1.0.0"
