"""Tests for parsing/treesitter.py module."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest

from callscope.core.errors import ErrorCode, ParseError
from callscope.parsing.packs import RUST_PACK, TYPESCRIPT_PACK
from callscope.parsing.treesitter import TreeSitterParser


class TestGetLanguage:
    def test_language_cached_per_pack(self) -> None:
        parser = TreeSitterParser()
        assert parser.get_language(RUST_PACK) is parser.get_language(RUST_PACK)

    def test_tsx_and_ts_load_different_languages(self) -> None:
        parser = TreeSitterParser()
        ts = parser.get_language(TYPESCRIPT_PACK, "index.ts")
        tsx = parser.get_language(TYPESCRIPT_PACK, "App.tsx")
        assert ts is not tsx

    def test_missing_grammar_raises(self) -> None:
        """Given a grammar module that is not installed, loading fails loudly."""
        # Given
        pack = dataclasses.replace(
            RUST_PACK,
            grammar_module="tree_sitter_not_installed_anywhere",
            grammar_package="tree-sitter-not-installed",
        )

        # When / Then
        with pytest.raises(ParseError) as exc_info:
            TreeSitterParser().get_language(pack)
        assert exc_info.value.code is ErrorCode.PARSE_GRAMMAR_UNAVAILABLE
        assert "tree-sitter-not-installed" in exc_info.value.message


class TestParse:
    def test_parse_from_content(self) -> None:
        parsed = TreeSitterParser().parse(Path("main.rs"), RUST_PACK, b"fn main() {}\n")
        assert parsed.root_node.type == "source_file"
        assert parsed.source == b"fn main() {}\n"
        assert parsed.total_nodes > 1
        assert not parsed.has_errors

    def test_parse_reads_file(self, tmp_path: Path) -> None:
        path = tmp_path / "lib.rs"
        path.write_text("fn lib() {}\n")
        parsed = TreeSitterParser().parse(path, RUST_PACK)
        assert parsed.source == b"fn lib() {}\n"
        assert parsed.path == path

    def test_invalid_syntax_recovers_with_error_count(self) -> None:
        parsed = TreeSitterParser().parse(Path("broken.rs"), RUST_PACK, b"fn main( { foo(); \n")
        assert parsed.has_errors
        assert parsed.error_count > 0

    def test_unreadable_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ParseError) as exc_info:
            TreeSitterParser().parse(tmp_path / "missing.rs", RUST_PACK)
        assert exc_info.value.code is ErrorCode.PARSE_FILE_UNREADABLE

    def test_empty_file(self) -> None:
        parsed = TreeSitterParser().parse(Path("empty.rs"), RUST_PACK, b"")
        assert parsed.root_node.child_count == 0
        assert not parsed.has_errors
