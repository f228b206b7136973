"""Call sites paired with their definitions.

One language server per run; files in input order; for every call site
the narrowed anchor's start position goes to ``textDocument/definition``.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from callscope.config.models import CallScopeConfig
from callscope.core.logging import get_logger
from callscope.files.discovery import FileSearchConfig, find_language_files
from callscope.parsing.packs import LanguagePack
from callscope.parsing.treesitter import TreeSitterParser
from callscope.parsing.walker import iter_calls
from callscope.resolve.batch import BatchSession, SessionFactory, batch_run, iter_open_documents
from callscope.resolve.models import CallTargetReport, CallWithTarget, Unresolved, resolution_from
from callscope.resolve.retry import RetryPolicy

log = get_logger("resolve.calls")


class CallResolver:
    """Resolves every call site of a file set through one language server.

    Usage::

        resolver = CallResolver(RUST_PACK, project_root)
        report = resolver.resolve(files)
        for call in report.resolved:
            ...
    """

    def __init__(
        self,
        pack: LanguagePack,
        workspace_root: Path,
        *,
        config: CallScopeConfig | None = None,
        session_factory: SessionFactory | None = None,
        parser: TreeSitterParser | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.pack = pack
        self.workspace_root = workspace_root
        self.config = config or CallScopeConfig()
        self._session_factory = session_factory
        self._parser = parser or TreeSitterParser()
        self._policy = policy

    def resolve(self, files: Iterable[Path]) -> CallTargetReport:
        """Resolve the call sites of ``files``.

        Raises:
            LaunchError: The server could not be started or restarted.
            BatchAbortedError: The server failed more often than the restart budget
                allows. Carries the partial report.
        """
        report = CallTargetReport()
        batch = BatchSession(
            self.pack,
            self.workspace_root,
            config=self.config,
            session_factory=self._session_factory,
            policy=self._policy,
        )
        with batch_run(batch, report):
            for doc in iter_open_documents(
                batch, files, parser=self._parser, diagnostics=report.diagnostics
            ):
                report.files_processed += 1
                for site in iter_calls(doc.parsed):
                    outcome = batch.query(
                        doc,
                        lambda session, site=site: session.definition(doc.path, site.line, site.character),
                    )
                    report.items.append(
                        CallWithTarget(
                            file_path=doc.path,
                            call_site=site,
                            resolution=(
                                Unresolved() if outcome.failure else resolution_from(outcome.result)
                            ),
                            failure=outcome.failure,
                            attempts=outcome.attempts,
                        )
                    )

        log.info("calls_resolved", language=self.pack.name, **report.summary())
        return report


def find_all_call_targets(
    pack: LanguagePack,
    workspace_root: Path,
    search: FileSearchConfig | None = None,
    config: CallScopeConfig | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> CallTargetReport:
    """Discover the pack's files under ``workspace_root`` and resolve their calls."""
    config = config or CallScopeConfig()
    search = search or FileSearchConfig.from_config(config.discovery)
    files = find_language_files(workspace_root, pack, search)
    resolver = CallResolver(pack, workspace_root, config=config, session_factory=session_factory)
    return resolver.resolve(files)
