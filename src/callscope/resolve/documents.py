"""Whole-document queries: symbol outlines and inlay hints."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from callscope.config.models import CallScopeConfig
from callscope.core.logging import get_logger
from callscope.parsing.packs import LanguagePack
from callscope.parsing.treesitter import TreeSitterParser
from callscope.resolve.batch import (
    BatchSession,
    SessionFactory,
    batch_run,
    iter_open_documents,
    whole_file_range,
)
from callscope.resolve.models import BatchReport, FileInlayHints, FileSymbols
from callscope.resolve.retry import RetryPolicy

log = get_logger("resolve.documents")


def collect_document_symbols(
    pack: LanguagePack,
    workspace_root: Path,
    files: Iterable[Path],
    *,
    config: CallScopeConfig | None = None,
    session_factory: SessionFactory | None = None,
    parser: TreeSitterParser | None = None,
    policy: RetryPolicy | None = None,
) -> BatchReport[FileSymbols]:
    report: BatchReport[FileSymbols] = BatchReport()
    parser = parser or TreeSitterParser()
    batch = BatchSession(
        pack, workspace_root, config=config, session_factory=session_factory, policy=policy
    )
    with batch_run(batch, report):
        for doc in iter_open_documents(batch, files, parser=parser, diagnostics=report.diagnostics):
            report.files_processed += 1
            outcome = batch.query(doc, lambda s: s.document_symbols(doc.path))
            report.items.append(
                FileSymbols(
                    file_path=doc.path,
                    symbols=tuple(outcome.result or ()),
                    failure=outcome.failure,
                )
            )

    log.info("document_symbols_collected", language=pack.name, **report.summary())
    return report


def collect_inlay_hints(
    pack: LanguagePack,
    workspace_root: Path,
    files: Iterable[Path],
    *,
    config: CallScopeConfig | None = None,
    session_factory: SessionFactory | None = None,
    parser: TreeSitterParser | None = None,
    policy: RetryPolicy | None = None,
) -> BatchReport[FileInlayHints]:
    """Inlay hints over each file's full range.

    An empty first answer and a "content modified" refusal are both retried
    with the policy's delays.
    """
    report: BatchReport[FileInlayHints] = BatchReport()
    parser = parser or TreeSitterParser()
    batch = BatchSession(
        pack, workspace_root, config=config, session_factory=session_factory, policy=policy
    )
    with batch_run(batch, report):
        for doc in iter_open_documents(batch, files, parser=parser, diagnostics=report.diagnostics):
            report.files_processed += 1
            range_ = whole_file_range(doc.parsed)
            outcome = batch.query(doc, lambda s: s.inlay_hints(doc.path, range_))
            report.items.append(
                FileInlayHints(
                    file_path=doc.path,
                    hints=tuple(outcome.result or ()),
                    failure=outcome.failure,
                )
            )

    log.info("inlay_hints_collected", language=pack.name, **report.summary())
    return report
