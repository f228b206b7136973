"""Lifecycle of one language server subprocess.

States::

    NOT_STARTED --start()--> STARTING --handshake--> READY --stop()--> STOPPED
                                  \\---- failure: teardown -------------/

Documents are opened and queried only in READY. A transport failure while
READY tears the process down and leaves the session STOPPED; the error
propagates so the caller can decide whether to start a fresh session.
``stop()`` is idempotent and always ends with the process gone.
"""

from __future__ import annotations

import os
import subprocess
import threading
import time
from enum import StrEnum
from pathlib import Path
from types import TracebackType
from typing import IO, Any

from callscope.config.models import SessionConfig
from callscope.core.errors import (
    CallScopeError,
    InternalError,
    LaunchError,
    ParseError,
    ProtocolError,
    SessionStateError,
    TransportError,
)
from callscope.core.logging import get_logger
from callscope.lsp.client import DiscardedResponse, JsonRpcConnection
from callscope.lsp.framing import MessageReader, MessageWriter, PipeSource
from callscope.lsp.servers import ServerSpec, is_server_available
from callscope.lsp.types import (
    CallHierarchyIncomingCall,
    CallHierarchyItem,
    CallHierarchyOutgoingCall,
    DocumentSymbol,
    InlayHint,
    Location,
    Range,
    SymbolInformation,
    parse_call_hierarchy_items,
    parse_document_symbols,
    parse_incoming_calls,
    parse_inlay_hints,
    parse_locations,
    parse_outgoing_calls,
    path_to_uri,
)

log = get_logger("lsp.session")


class SessionState(StrEnum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    READY = "ready"
    STOPPED = "stopped"


def _client_capabilities() -> dict[str, Any]:
    return {
        "textDocument": {
            "synchronization": {"didSave": False, "dynamicRegistration": False},
            "definition": {"linkSupport": True},
            "references": {},
            "documentSymbol": {"hierarchicalDocumentSymbolSupport": True},
            "callHierarchy": {"dynamicRegistration": False},
            "inlayHint": {"dynamicRegistration": False},
        },
        "window": {"workDoneProgress": False},
        "workspace": {"configuration": True},
    }


def _drain_stderr(stream: IO[bytes], server: str) -> None:
    for raw in iter(stream.readline, b""):
        line = raw.decode("utf-8", errors="replace").rstrip()
        if line:
            log.debug("server_stderr", server=server, stream="stderr", line=line)


class LspSession:
    """One language server process, its framed pipes and its open documents.

    Usage::

        with LspSession(RUST_PACK.server, root, language_id="rust") as session:
            session.open_document(path)
            targets = session.definition(path, line, character)
            session.close_document(path)
    """

    def __init__(
        self,
        server: ServerSpec,
        workspace_root: Path,
        *,
        language_id: str = "",
        config: SessionConfig | None = None,
    ) -> None:
        self._server = server
        self._root = workspace_root.resolve()
        self._language_id = language_id
        self._config = config or SessionConfig()
        self._state = SessionState.NOT_STARTED
        self._proc: subprocess.Popen[bytes] | None = None
        self._conn: JsonRpcConnection | None = None
        self._stderr_thread: threading.Thread | None = None
        self._open_docs: set[str] = set()
        self._capabilities: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def workspace_root(self) -> Path:
        return self._root

    @property
    def server(self) -> ServerSpec:
        return self._server

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def server_capabilities(self) -> dict[str, Any]:
        return self._capabilities

    @property
    def open_documents(self) -> frozenset[str]:
        return frozenset(self._open_docs)

    @property
    def connection(self) -> JsonRpcConnection | None:
        return self._conn

    @property
    def discarded_responses(self) -> list[DiscardedResponse]:
        return list(self._conn.discarded_responses) if self._conn is not None else []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> dict[str, Any]:
        """Spawn the server and run the initialize handshake.

        Returns:
            The server's initialize result.

        Raises:
            LaunchError: Binary missing, spawn failure or rejected handshake.
            TransportError: The server broke the stream during the handshake.
        """
        if self._state is not SessionState.NOT_STARTED:
            raise SessionStateError.not_ready("start", self._state.value)

        if not is_server_available(self._server):
            self._state = SessionState.STOPPED
            raise LaunchError.not_found(self._server.command, self._server.install_hint)

        self._state = SessionState.STARTING
        try:
            self._spawn()
            result = self._handshake()
        except BaseException as e:
            log.debug("session_start_failed", server=self._server.command, error=str(e))
            try:
                self._teardown()
            except Exception as teardown_err:  # noqa: BLE001
                # The start failure takes precedence
                log.warning("server_teardown_failed", server=self._server.command, error=str(teardown_err))
            self._state = SessionState.STOPPED
            raise

        if self._config.settle_sec > 0:
            time.sleep(self._config.settle_sec)
        self._state = SessionState.READY
        log.info("session_ready", server=self._server.command, root=str(self._root), pid=self.pid)
        return result

    def _spawn(self) -> None:
        argv = self._server.argv
        log.debug("server_spawn", argv=argv, cwd=str(self._root))
        try:
            self._proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(self._root),
            )
        except OSError as e:
            raise LaunchError.spawn_failed(
                self._server.command, e.strerror or str(e), self._server.install_hint
            ) from e

        if self._proc.stdin is None or self._proc.stdout is None or self._proc.stderr is None:
            raise InternalError.unexpected("server pipes were not created", command=self._server.command)

        self._stderr_thread = threading.Thread(
            target=_drain_stderr,
            args=(self._proc.stderr, self._server.command),
            name=f"{self._server.command}-stderr",
            daemon=True,
        )
        self._stderr_thread.start()

        reader = MessageReader(PipeSource(self._proc.stdout.fileno()))
        writer = MessageWriter(self._proc.stdin)
        self._conn = JsonRpcConnection(reader, writer, name=self._server.command)
        self._conn.add_notification_handler(self._on_notification)

    def _handshake(self) -> dict[str, Any]:
        assert self._conn is not None
        root_uri = path_to_uri(self._root)
        params = {
            "processId": os.getpid(),
            "clientInfo": {"name": "callscope"},
            "rootUri": root_uri,
            "rootPath": str(self._root),
            "workspaceFolders": [{"uri": root_uri, "name": self._root.name}],
            "capabilities": _client_capabilities(),
        }
        try:
            result = self._conn.request("initialize", params, self._config.initialize_timeout_sec)
        except ProtocolError as e:
            raise LaunchError.handshake_failed(self._server.command, e.message) from e
        if not isinstance(result, dict):
            raise LaunchError.handshake_failed(self._server.command, "initialize result is not an object")
        self._capabilities = result.get("capabilities") or {}
        self._conn.send_notification("initialized", {})
        return result

    def stop(self) -> None:
        """Shut the server down. Idempotent; a second call does nothing."""
        if self._state is SessionState.STOPPED:
            return
        exited_cleanly = False
        try:
            if self._state is SessionState.READY:
                exited_cleanly = self._graceful_shutdown()
        finally:
            self._teardown(grace_sec=self._config.terminate_timeout_sec if exited_cleanly else 0.0)
            self._state = SessionState.STOPPED
            log.debug("session_stopped", server=self._server.command)

    def _graceful_shutdown(self) -> bool:
        """shutdown request + exit notification. True when both went through."""
        assert self._conn is not None
        try:
            for uri in sorted(self._open_docs):
                self._conn.send_notification("textDocument/didClose", {"textDocument": {"uri": uri}})
            self._open_docs.clear()
            self._conn.request("shutdown", None, self._config.shutdown_timeout_sec)
            self._conn.send_notification("exit")
        except CallScopeError as e:
            log.warning("server_shutdown_unclean", server=self._server.command, error=str(e))
            return False
        return True

    def _teardown(self, grace_sec: float = 0.0) -> None:
        """End the process and release its pipes.

        Waits up to ``grace_sec`` for a voluntary exit, then terminates, then
        kills. A process that already exited counts as stopped.
        """
        self._open_docs.clear()
        proc = self._proc
        if proc is None:
            return
        self._proc = None

        if proc.stdin is not None:
            try:
                proc.stdin.close()
            except OSError as e:
                log.debug("pipe_close_failed", server=self._server.command, error=str(e))

        try:
            proc.wait(timeout=grace_sec)
        except subprocess.TimeoutExpired:
            proc.terminate()
            try:
                proc.wait(timeout=self._config.terminate_timeout_sec)
            except subprocess.TimeoutExpired:
                log.warning("server_kill", server=self._server.command, pid=proc.pid)
                proc.kill()
                proc.wait()

        if proc.stdout is not None:
            proc.stdout.close()
        if self._stderr_thread is not None:
            self._stderr_thread.join(timeout=1.0)
            # A grandchild may still hold stderr open; leave the daemon thread to it.
            if not self._stderr_thread.is_alive() and proc.stderr is not None:
                proc.stderr.close()
            self._stderr_thread = None

        log.debug("server_exited", server=self._server.command, returncode=proc.returncode)

    def __enter__(self) -> LspSession:
        if self._state is SessionState.NOT_STARTED:
            self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()

    def __del__(self) -> None:
        if getattr(self, "_state", SessionState.STOPPED) is not SessionState.STOPPED:
            try:
                self.stop()
            except Exception as e:  # noqa: BLE001
                log.warning("session_stop_in_del_failed", error=str(e))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def open_document(self, path: Path, text: str | None = None, *, language_id: str | None = None) -> str:
        """Announce a document with textDocument/didOpen (version 1). Idempotent.

        Returns:
            The document URI.
        """
        self._require_ready("open document")
        uri = path_to_uri(path)
        if uri in self._open_docs:
            return uri
        if text is None:
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise ParseError.file_unreadable(str(path), e.strerror or str(e)) from e
        self._send_notification(
            "textDocument/didOpen",
            {
                "textDocument": {
                    "uri": uri,
                    "languageId": language_id or self._language_id,
                    "version": 1,
                    "text": text,
                }
            },
        )
        self._open_docs.add(uri)
        return uri

    def close_document(self, path: Path) -> None:
        self._require_ready("close document")
        uri = self._require_open(path)
        self._send_notification("textDocument/didClose", {"textDocument": {"uri": uri}})
        self._open_docs.discard(uri)

    def is_open(self, path: Path) -> bool:
        return path_to_uri(path) in self._open_docs

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def request(self, method: str, params: Any = None, timeout: float | None = None) -> Any:
        """Send one request and wait for its result (READY only)."""
        self._require_ready(method)
        assert self._conn is not None
        try:
            return self._conn.request(method, params, timeout or self._config.request_timeout_sec)
        except TransportError:
            self._fail()
            raise

    def _text_position(self, path: Path, line: int, character: int) -> dict[str, Any]:
        uri = self._require_open(path)
        return {"textDocument": {"uri": uri}, "position": {"line": line, "character": character}}

    def definition(self, path: Path, line: int, character: int) -> list[Location]:
        method = "textDocument/definition"
        params = self._text_position(path, line, character)
        return parse_locations(self.request(method, params), method)

    def references(
        self, path: Path, line: int, character: int, *, include_declaration: bool = True
    ) -> list[Location]:
        method = "textDocument/references"
        params = self._text_position(path, line, character)
        params["context"] = {"includeDeclaration": include_declaration}
        return parse_locations(self.request(method, params), method)

    def document_symbols(self, path: Path) -> list[DocumentSymbol | SymbolInformation]:
        uri = self._require_open(path)
        result = self.request("textDocument/documentSymbol", {"textDocument": {"uri": uri}})
        return parse_document_symbols(result)

    def prepare_call_hierarchy(self, path: Path, line: int, character: int) -> list[CallHierarchyItem]:
        params = self._text_position(path, line, character)
        return parse_call_hierarchy_items(self.request("textDocument/prepareCallHierarchy", params))

    def incoming_calls(self, item: CallHierarchyItem) -> list[CallHierarchyIncomingCall]:
        result = self.request("callHierarchy/incomingCalls", {"item": item.to_wire()})
        return parse_incoming_calls(result)

    def outgoing_calls(self, item: CallHierarchyItem) -> list[CallHierarchyOutgoingCall]:
        result = self.request("callHierarchy/outgoingCalls", {"item": item.to_wire()})
        return parse_outgoing_calls(result)

    def inlay_hints(self, path: Path, range_: Range) -> list[InlayHint]:
        uri = self._require_open(path)
        params = {"textDocument": {"uri": uri}, "range": range_.model_dump()}
        return parse_inlay_hints(self.request("textDocument/inlayHint", params))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_ready(self, operation: str) -> None:
        if self._state is not SessionState.READY:
            raise SessionStateError.not_ready(operation, self._state.value)

    def _require_open(self, path: Path) -> str:
        uri = path_to_uri(path)
        if uri not in self._open_docs:
            raise SessionStateError.document_not_open(uri)
        return uri

    def _send_notification(self, method: str, params: Any) -> None:
        assert self._conn is not None
        try:
            self._conn.send_notification(method, params)
        except TransportError:
            self._fail()
            raise

    def _fail(self) -> None:
        """Tear down after a transport failure; the caller re-raises the original error."""
        log.warning("session_transport_failure", server=self._server.command)
        try:
            self._teardown()
        except Exception as e:  # noqa: BLE001
            log.warning("server_teardown_failed", server=self._server.command, error=str(e))
        finally:
            self._state = SessionState.STOPPED

    def _on_notification(self, method: str, params: Any) -> None:
        if method in ("window/logMessage", "window/showMessage") and isinstance(params, dict):
            log.debug("server_message", server=self._server.command, message=params.get("message"))
