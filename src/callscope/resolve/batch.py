"""Per-file iteration shared by every resolver batch.

A ``BatchSession`` owns the language server for one run. It opens each
file in input order, hands it to the batch, and closes it again. Per-file
problems become ``FileDiagnostic`` records. Per-query errors become
``ResolutionFailure`` records; after a transport failure the server is
restarted (bounded by ``max_session_restarts``) and the current document
reopened, so the remaining sites and files still get answers.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Any

from callscope.config.models import CallScopeConfig
from callscope.core.errors import (
    BatchAbortedError,
    CallScopeError,
    ErrorCode,
    ParseError,
    ProtocolError,
    SessionStateError,
    TransportError,
)
from callscope.core.logging import bind_session_context, clear_session_context, get_logger
from callscope.core.progress import advance_file
from callscope.lsp.servers import resolve_server
from callscope.lsp.session import LspSession, SessionState
from callscope.lsp.types import Position, Range
from callscope.parsing.packs import LanguagePack
from callscope.parsing.treesitter import ParsedFile, TreeSitterParser
from callscope.resolve.models import BatchReport, DiagnosticReason, FileDiagnostic, ResolutionFailure
from callscope.resolve.retry import RetryPolicy, query_with_backoff

log = get_logger("resolve.batch")

SessionFactory = Callable[[], LspSession]


@dataclass
class OpenDocument:
    """A parsed file currently announced to the server."""

    path: Path
    parsed: ParsedFile
    text: str
    language_id: str
    first_query: bool = True


@dataclass(frozen=True, slots=True)
class QueryOutcome[T]:
    result: T | None
    attempts: int
    failure: ResolutionFailure | None = None


def default_session_factory(
    pack: LanguagePack, workspace_root: Path, config: CallScopeConfig
) -> SessionFactory:
    server = resolve_server(pack, config.servers)

    def factory() -> LspSession:
        return LspSession(server, workspace_root, language_id=pack.language_id, config=config.session)

    return factory


class BatchSession:
    """The language server of one batch run, restarted after transport failures."""

    def __init__(
        self,
        pack: LanguagePack,
        workspace_root: Path,
        *,
        config: CallScopeConfig | None = None,
        session_factory: SessionFactory | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.pack = pack
        self.workspace_root = workspace_root
        self.config = config or CallScopeConfig()
        self.policy = policy or RetryPolicy.from_config(self.config.retry)
        self._factory = session_factory or default_session_factory(pack, workspace_root, self.config)
        self._session: LspSession | None = None
        self._discarded = 0
        self.restarts = 0

    @property
    def session(self) -> LspSession:
        if self._session is None:
            raise SessionStateError.not_ready("query", SessionState.NOT_STARTED.value)
        return self._session

    @property
    def discarded_responses(self) -> int:
        current = len(self._session.discarded_responses) if self._session is not None else 0
        return self._discarded + current

    def start(self) -> None:
        self._session = self._factory()
        bind_session_context(
            language=self.pack.name,
            server=self._session.server.command,
            workspace_root=self.workspace_root,
        )
        try:
            self._session.start()
        except CallScopeError:
            clear_session_context()
            raise

    def stop(self) -> None:
        if self._session is not None:
            self._discarded += len(self._session.discarded_responses)
            self._session.stop()
            self._session = None
        clear_session_context()

    def __enter__(self) -> BatchSession:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

    def restart(self, cause: TransportError) -> None:
        """Replace a failed session with a fresh one.

        Raises:
            TransportError: ``cause`` itself, once the restart budget is spent.
        """
        budget = self.config.retry.max_session_restarts
        if self.restarts >= budget:
            log.error("session_restart_budget_exhausted", restarts=self.restarts, error=str(cause))
            raise cause
        self.restarts += 1
        log.warning("session_restart", attempt=self.restarts, budget=budget, error=str(cause))
        self.stop()
        self.start()

    def open(self, doc: OpenDocument) -> None:
        """Announce ``doc``, restarting the server if the pipe is gone."""
        while True:
            if self.session.state is SessionState.STOPPED:
                self.restart(TransportError.closed())
            try:
                self.session.open_document(doc.path, doc.text, language_id=doc.language_id)
                doc.first_query = True
                return
            except TransportError as e:
                self.restart(e)

    def close(self, doc: OpenDocument) -> None:
        session = self._session
        if session is None or session.state is not SessionState.READY or not session.is_open(doc.path):
            return
        try:
            session.close_document(doc.path)
        except TransportError as e:
            # Session is now STOPPED; the next open restarts it.
            log.warning("document_close_failed", path=str(doc.path), error=str(e))

    def query[T](
        self,
        doc: OpenDocument,
        fn: Callable[[LspSession], T],
        *,
        backoff: bool = True,
    ) -> QueryOutcome[T]:
        """Run one query for ``doc``, recording protocol and transport failures.

        With ``backoff`` the first query in the document is retried while it
        returns nothing; the document's first-query flag is consumed either way.
        """
        first = doc.first_query and backoff
        if backoff:
            doc.first_query = False
        session = self.session
        try:
            result, attempts = query_with_backoff(
                lambda: fn(session), first_in_file=first, policy=self.policy
            )
        except ProtocolError as e:
            log.info("query_protocol_error", path=str(doc.path), error=str(e))
            return QueryOutcome(None, 1, ResolutionFailure.from_error(e))
        except TransportError as e:
            log.warning("query_transport_error", path=str(doc.path), error=str(e))
            failure = ResolutionFailure.from_error(e)
            self.restart(e)
            self.open(doc)
            return QueryOutcome(None, 1, failure)
        return QueryOutcome(result, attempts)


@contextmanager
def batch_run(batch: BatchSession, report: BatchReport[Any]) -> Iterator[BatchSession]:
    """Start ``batch`` for one run and stamp its counters on ``report`` at the end.

    Raises:
        BatchAbortedError: The restart budget ran out mid-run. The error
            carries ``report`` with every item collected until then.
    """
    started = time.perf_counter()
    try:
        with batch:
            try:
                yield batch
            except TransportError as e:
                raise BatchAbortedError.from_failure(e, report) from e
    finally:
        report.discarded_responses = batch.discarded_responses
        report.session_restarts = batch.restarts
        report.elapsed_s = time.perf_counter() - started


def _has_ambiguous_name(path: Path, root: Path) -> bool:
    try:
        rel = path.resolve().relative_to(root.resolve())
    except ValueError:
        rel = path
    return " " in rel.as_posix()


def iter_open_documents(
    batch: BatchSession,
    files: Iterable[Path],
    *,
    parser: TreeSitterParser,
    diagnostics: list[FileDiagnostic],
) -> Iterator[OpenDocument]:
    """Parse, open, yield and close each file in input order.

    Files that cannot be used are recorded in ``diagnostics`` and skipped.
    The document is closed when the consumer asks for the next one, or when
    the generator is closed early.
    """
    pack = batch.pack
    for path in files:
        advance_file(path)
        if _has_ambiguous_name(path, batch.workspace_root):
            diagnostics.append(
                FileDiagnostic(path, DiagnosticReason.AMBIGUOUS_NAME, "path contains a space")
            )
            log.info("file_skipped", path=str(path), reason=DiagnosticReason.AMBIGUOUS_NAME.value)
            continue

        try:
            parsed = parser.parse(path, pack)
        except ParseError as e:
            if e.code == ErrorCode.PARSE_GRAMMAR_UNAVAILABLE:
                raise
            reason = (
                DiagnosticReason.UNREADABLE
                if e.code == ErrorCode.PARSE_FILE_UNREADABLE
                else DiagnosticReason.PARSE_FAILED
            )
            diagnostics.append(FileDiagnostic(path, reason, e.message))
            log.warning("file_skipped", path=str(path), reason=reason.value, error=e.message)
            continue

        doc = OpenDocument(
            path=path,
            parsed=parsed,
            text=parsed.source.decode("utf-8", errors="replace"),
            language_id=pack.language_id_for(path),
        )
        try:
            batch.open(doc)
        except SessionStateError as e:
            diagnostics.append(FileDiagnostic(path, DiagnosticReason.OPEN_FAILED, e.message))
            log.warning("file_skipped", path=str(path), reason="open_failed", error=e.message)
            continue

        try:
            yield doc
        finally:
            batch.close(doc)


def whole_file_range(parsed: ParsedFile) -> Range:
    """LSP range covering every line of ``parsed``."""
    end_line = parsed.root_node.end_point[0] + 1
    return Range(start=Position(line=0, character=0), end=Position(line=end_line, character=0))
