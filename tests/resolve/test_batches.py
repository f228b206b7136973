"""Tests for the references, call hierarchy and whole-document batches."""

from __future__ import annotations

from pathlib import Path

import pytest

from callscope.lsp.types import DocumentSymbol, Location, Position, Range, SymbolInformation, SymbolKind
from callscope.parsing.packs import PYTHON_PACK, RUST_PACK
from callscope.resolve.documents import collect_document_symbols, collect_inlay_hints
from callscope.resolve.hierarchy import collect_call_hierarchy
from callscope.resolve.models import FailureKind
from callscope.resolve.references import find_all_references, iter_symbol_positions


@pytest.fixture
def main_rs(rust_project: Path) -> Path:
    return rust_project / "src" / "main.rs"


@pytest.fixture
def batch_kwargs(fast_config, no_sleep_policy):
    def make(factory) -> dict:
        return {"config": fast_config, "session_factory": factory, "policy": no_sleep_policy}

    return make


def _range(line: int, character: int) -> Range:
    pos = Position(line=line, character=character)
    return Range(start=pos, end=pos)


class TestIterSymbolPositions:
    def test_nested_symbols_depth_first(self) -> None:
        symbols = [
            DocumentSymbol(
                name="Counter",
                kind=SymbolKind.CLASS,
                range=_range(0, 0),
                selection_range=_range(0, 6),
                children=[
                    DocumentSymbol(
                        name="bump", kind=SymbolKind.METHOD, range=_range(1, 4), selection_range=_range(1, 8)
                    ),
                ],
            ),
            SymbolInformation(
                name="helper",
                kind=SymbolKind.FUNCTION,
                location=Location(uri="file:///a.py", range=_range(5, 4)),
            ),
            SymbolInformation(
                name="VERSION",
                kind=SymbolKind.CONSTANT,
                location=Location(uri="file:///a.py", range=_range(9, 0)),
            ),
        ]
        positions = list(iter_symbol_positions(symbols, frozenset({SymbolKind.METHOD, SymbolKind.FUNCTION})))
        assert positions == [("bump", SymbolKind.METHOD, 1, 8), ("helper", SymbolKind.FUNCTION, 5, 4)]


class TestFindAllReferences:
    def test_references_for_callable_symbols(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        """Functions and methods are queried; structs and fields are not."""
        # When
        report = find_all_references(RUST_PACK, rust_project, [main_rs], **batch_kwargs(sessions()))

        # Then
        assert [(r.name, r.line, r.character) for r in report.items] == [("main", 0, 3), ("bump", 3, 7)]
        for entry in report.items:
            assert [loc.range.start.line for loc in entry.references] == [entry.line, entry.line + 10]
            assert entry.failure is None
        assert report.files_processed == 1

    def test_symbols_failure_skips_file(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        factory = sessions(("--error-on", "textDocument/documentSymbol"))
        report = find_all_references(RUST_PACK, rust_project, [main_rs], **batch_kwargs(factory))
        assert report.items == []
        assert report.files_processed == 1

    def test_reference_failure_recorded(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        factory = sessions(("--error-on", "textDocument/references"))
        report = find_all_references(RUST_PACK, rust_project, [main_rs], **batch_kwargs(factory))
        assert len(report.failed) == 2
        assert report.items[0].failure.kind is FailureKind.PROTOCOL
        assert report.items[0].references == ()


class TestCollectCallHierarchy:
    def test_rust_targets_come_from_syntax(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        """Given a Rust file, the declared function is prepared at its name."""
        # When
        report = collect_call_hierarchy(RUST_PACK, rust_project, [main_rs], **batch_kwargs(sessions()))

        # Then
        (entry,) = report.items
        assert (entry.name, entry.line, entry.character) == ("main", 0, 3)
        assert [item.name for item in entry.items] == ["target"]
        assert [call.from_.name for call in entry.incoming] == ["caller"]
        assert entry.outgoing == ()
        assert entry.failure is None

    def test_symbol_targets_without_declaration_rules(self, sessions, batch_kwargs, rust_project) -> None:
        app = rust_project / "app.py"
        app.write_text("def main():\n    run()\n")
        report = collect_call_hierarchy(PYTHON_PACK, rust_project, [app], **batch_kwargs(sessions()))
        assert [e.name for e in report.items] == ["main", "bump", "count"]

    def test_expansion_failure_recorded(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        factory = sessions(("--error-on", "callHierarchy/incomingCalls"))
        report = collect_call_hierarchy(RUST_PACK, rust_project, [main_rs], **batch_kwargs(factory))
        (entry,) = report.items
        assert entry.failure is not None
        assert entry.failure.kind is FailureKind.PROTOCOL
        assert len(entry.items) == 1


class TestDocumentBatches:
    def test_document_symbols(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        report = collect_document_symbols(RUST_PACK, rust_project, [main_rs], **batch_kwargs(sessions()))
        (entry,) = report.items
        assert [s.name for s in entry.symbols] == ["main", "Counter"]

    def test_inlay_hints_cover_whole_file(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        report = collect_inlay_hints(RUST_PACK, rust_project, [main_rs], **batch_kwargs(sessions()))
        (entry,) = report.items
        (hint,) = entry.hints
        assert hint.text == ": i32"
        assert (hint.position.line, hint.position.character) == (0, 0)

    def test_inlay_hints_failure(self, sessions, batch_kwargs, rust_project, main_rs) -> None:
        factory = sessions(("--error-on", "textDocument/inlayHint"))
        report = collect_inlay_hints(RUST_PACK, rust_project, [main_rs], **batch_kwargs(factory))
        assert len(report.failed) == 1
        assert report.items[0].hints == ()

    def test_inlay_hints_retried_after_content_modified(
        self, sessions, batch_kwargs, rust_project, main_rs, recorded_sleeps
    ) -> None:
        """Given a server refusing twice with "content modified", the third attempt returns hints."""
        # Given
        factory = sessions(("--content-modified", "textDocument/inlayHint", "2"))

        # When
        report = collect_inlay_hints(RUST_PACK, rust_project, [main_rs], **batch_kwargs(factory))

        # Then
        (entry,) = report.items
        assert entry.failure is None
        assert [h.text for h in entry.hints] == [": i32"]
        assert recorded_sleeps == [0.05, 0.25]

    def test_inlay_hints_content_modified_until_attempts_run_out(
        self, sessions, batch_kwargs, rust_project, main_rs, recorded_sleeps
    ) -> None:
        factory = sessions(("--content-modified", "textDocument/inlayHint", "3"))
        report = collect_inlay_hints(RUST_PACK, rust_project, [main_rs], **batch_kwargs(factory))
        (entry,) = report.items
        assert entry.failure is not None
        assert entry.failure.kind is FailureKind.PROTOCOL
        assert entry.failure.rpc_code == -32801
        assert recorded_sleeps == [0.05, 0.25]
