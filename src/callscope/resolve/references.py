"""References for every callable symbol the server reports in each file."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

from callscope.config.models import CallScopeConfig
from callscope.core.logging import get_logger
from callscope.lsp.types import CALLABLE_KINDS, DocumentSymbol, SymbolInformation
from callscope.parsing.packs import LanguagePack
from callscope.parsing.treesitter import TreeSitterParser
from callscope.resolve.batch import BatchSession, SessionFactory, batch_run, iter_open_documents
from callscope.resolve.models import BatchReport, SymbolReferences
from callscope.resolve.retry import RetryPolicy

log = get_logger("resolve.references")


def iter_symbol_positions(
    symbols: Iterable[DocumentSymbol | SymbolInformation],
    kinds: frozenset[int],
) -> Iterator[tuple[str, int, int, int]]:
    """Yield (name, kind, line, character) for matching symbols, depth first."""
    for symbol in symbols:
        if isinstance(symbol, SymbolInformation):
            if symbol.kind in kinds:
                start = symbol.location.range.start
                yield symbol.name, symbol.kind, start.line, start.character
            continue
        if symbol.kind in kinds:
            start = symbol.selection_range.start
            yield symbol.name, symbol.kind, start.line, start.character
        yield from iter_symbol_positions(symbol.children, kinds)


def find_all_references(
    pack: LanguagePack,
    workspace_root: Path,
    files: Iterable[Path],
    *,
    config: CallScopeConfig | None = None,
    session_factory: SessionFactory | None = None,
    parser: TreeSitterParser | None = None,
    policy: RetryPolicy | None = None,
) -> BatchReport[SymbolReferences]:
    """Query textDocument/references at each function, method and constructor."""
    report: BatchReport[SymbolReferences] = BatchReport()
    parser = parser or TreeSitterParser()
    batch = BatchSession(
        pack, workspace_root, config=config, session_factory=session_factory, policy=policy
    )
    with batch_run(batch, report):
        for doc in iter_open_documents(batch, files, parser=parser, diagnostics=report.diagnostics):
            report.files_processed += 1
            listing = batch.query(doc, lambda s: s.document_symbols(doc.path), backoff=False)
            if listing.failure is not None:
                log.info("symbols_unavailable", path=str(doc.path), error=listing.failure.message)
                continue
            for name, kind, line, character in iter_symbol_positions(listing.result or [], CALLABLE_KINDS):
                outcome = batch.query(
                    doc,
                    lambda s, line=line, character=character: s.references(doc.path, line, character),
                )
                report.items.append(
                    SymbolReferences(
                        file_path=doc.path,
                        name=name,
                        kind=kind,
                        line=line,
                        character=character,
                        references=tuple(outcome.result or ()),
                        failure=outcome.failure,
                    )
                )

    log.info("references_collected", language=pack.name, **report.summary())
    return report
