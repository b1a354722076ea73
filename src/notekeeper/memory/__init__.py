"""Plain-text memory: long-term log, daily notes, inline TODOs.

Layout:
    <workspace>/
    ├── MEMORY.md                      # Long-term memory, append-only sections
    └── memory/
        └── 2024-01-01.md             # Daily notes with a ## TODOs section

Nothing is cached between calls; every operation re-reads the files, so
edits made outside the server are always visible.
"""
