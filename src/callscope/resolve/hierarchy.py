"""Incoming and outgoing calls for every callable in each file.

Query positions come from syntax when the pack knows its declaration node
kinds (Rust, Go, Swift); otherwise from the server's document symbols.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from callscope.config.models import CallScopeConfig
from callscope.core.logging import get_logger
from callscope.lsp.session import LspSession
from callscope.lsp.types import HIERARCHY_KINDS, CallHierarchyItem
from callscope.parsing.packs import LanguagePack
from callscope.parsing.treesitter import TreeSitterParser
from callscope.parsing.walker import iter_declarations
from callscope.resolve.batch import (
    BatchSession,
    OpenDocument,
    SessionFactory,
    batch_run,
    iter_open_documents,
)
from callscope.resolve.models import BatchReport, HierarchyEntry, ResolutionFailure
from callscope.resolve.references import iter_symbol_positions
from callscope.resolve.retry import RetryPolicy

log = get_logger("resolve.hierarchy")


def _targets(batch: BatchSession, doc: OpenDocument) -> list[tuple[str, int, int]]:
    if batch.pack.declaration_rules:
        return [
            (decl.name, decl.name_span.start_line, decl.name_span.start_character)
            for decl in iter_declarations(doc.parsed)
        ]
    listing = batch.query(doc, lambda s: s.document_symbols(doc.path), backoff=False)
    if listing.failure is not None:
        log.info("symbols_unavailable", path=str(doc.path), error=listing.failure.message)
        return []
    return [
        (name, line, character)
        for name, _kind, line, character in iter_symbol_positions(listing.result or [], HIERARCHY_KINDS)
    ]


def _expand(
    batch: BatchSession, doc: OpenDocument, items: list[CallHierarchyItem]
) -> tuple[list, list, ResolutionFailure | None]:
    incoming: list = []
    outgoing: list = []
    for item in items:
        inc = batch.query(doc, lambda s, item=item: s.incoming_calls(item), backoff=False)
        if inc.failure is not None:
            return incoming, outgoing, inc.failure
        incoming.extend(inc.result or [])
        out = batch.query(doc, lambda s, item=item: s.outgoing_calls(item), backoff=False)
        if out.failure is not None:
            return incoming, outgoing, out.failure
        outgoing.extend(out.result or [])
    return incoming, outgoing, None


def collect_call_hierarchy(
    pack: LanguagePack,
    workspace_root: Path,
    files: Iterable[Path],
    *,
    config: CallScopeConfig | None = None,
    session_factory: SessionFactory | None = None,
    parser: TreeSitterParser | None = None,
    policy: RetryPolicy | None = None,
) -> BatchReport[HierarchyEntry]:
    report: BatchReport[HierarchyEntry] = BatchReport()
    parser = parser or TreeSitterParser()
    batch = BatchSession(
        pack, workspace_root, config=config, session_factory=session_factory, policy=policy
    )
    with batch_run(batch, report):
        for doc in iter_open_documents(batch, files, parser=parser, diagnostics=report.diagnostics):
            report.files_processed += 1
            for name, line, character in _targets(batch, doc):

                def prepare(s: LspSession, line: int = line, character: int = character) -> list:
                    return s.prepare_call_hierarchy(doc.path, line, character)

                prepared = batch.query(doc, prepare)
                items = list(prepared.result or [])
                failure = prepared.failure
                incoming: list = []
                outgoing: list = []
                if failure is None and items:
                    incoming, outgoing, failure = _expand(batch, doc, items)
                report.items.append(
                    HierarchyEntry(
                        file_path=doc.path,
                        name=name,
                        line=line,
                        character=character,
                        items=tuple(items),
                        incoming=tuple(incoming),
                        outgoing=tuple(outgoing),
                        failure=failure,
                    )
                )

    log.info("call_hierarchy_collected", language=pack.name, **report.summary())
    return report
