"""Tests for core/excludes.py module."""

from __future__ import annotations

from callscope.core.excludes import DEFAULT_SKIP_DIRS, HARDCODED_DIRS


class TestHardcodedDirs:
    def test_contains_vcs_directories(self) -> None:
        assert {".git", ".svn", ".hg"} <= HARDCODED_DIRS

    def test_disjoint_from_default_skips(self) -> None:
        """VCS dirs are pruned unconditionally, not through the overridable set."""
        assert not (HARDCODED_DIRS & DEFAULT_SKIP_DIRS)


class TestDefaultSkipDirs:
    def test_contains_dependency_trees(self) -> None:
        assert "node_modules" in DEFAULT_SKIP_DIRS
        assert "vendor" in DEFAULT_SKIP_DIRS

    def test_contains_build_outputs_of_supported_languages(self) -> None:
        # Rust, Swift, generic
        assert {"target", ".build", "build", "dist"} <= DEFAULT_SKIP_DIRS

    def test_contains_python_environments(self) -> None:
        assert {"__pycache__", ".venv", "venv"} <= DEFAULT_SKIP_DIRS
