"""Directories pruned during file discovery.

HARDCODED_DIRS are never traversed. DEFAULT_SKIP_DIRS are the build outputs
and dependency trees skipped unless a search overrides ``skip_dirs``.
"""

from __future__ import annotations

HARDCODED_DIRS: frozenset[str] = frozenset(
    (
        # VCS internals
        ".git",
        ".svn",
        ".hg",
    )
)

DEFAULT_SKIP_DIRS: frozenset[str] = frozenset(
    (
        # JavaScript/Node.js
        "node_modules",
        "dist",
        ".next",
        # Python
        "__pycache__",
        ".venv",
        "venv",
        # Go
        "vendor",
        # Rust
        "target",
        # Generic build output
        "build",
        # Swift
        ".build",
    )
)

