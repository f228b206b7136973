"""JSON-RPC 2.0 connection over a framed byte stream.

One request is in flight at a time. ``wait_response`` reads messages until
the response with the awaited ID shows up; on the way it:

1. Answers server-initiated requests (id + method) immediately, so the
   server never blocks waiting on us
2. Hands notifications (method only) to registered handlers
3. Records responses for any other ID in ``discarded_responses``. Under the
   single-in-flight discipline these are leftovers from an earlier request
   that timed out, so they are logged and dropped.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from callscope.core.errors import ErrorCode, ProtocolError, TransportError
from callscope.core.logging import get_logger
from callscope.lsp.framing import MessageReader, MessageWriter

log = get_logger("lsp.client")

NotificationHandler = Callable[[str, Any], None]


@dataclass(frozen=True, slots=True)
class DiscardedResponse:
    """A response that arrived while a different request ID was awaited."""

    request_id: Any
    awaited_id: int
    is_error: bool


class JsonRpcConnection:
    """Request/response correlation over a ``MessageReader``/``MessageWriter`` pair."""

    def __init__(self, reader: MessageReader, writer: MessageWriter, *, name: str = "lsp") -> None:
        self._reader = reader
        self._writer = writer
        self._name = name
        self._next_id = 1
        self._outstanding: dict[int, str] = {}
        self._handlers: list[NotificationHandler] = []
        self.discarded_responses: list[DiscardedResponse] = []

    @property
    def outstanding_ids(self) -> frozenset[int]:
        return frozenset(self._outstanding)

    @property
    def last_request_id(self) -> int:
        return self._next_id - 1

    def add_notification_handler(self, handler: NotificationHandler) -> None:
        self._handlers.append(handler)

    def send_request(self, method: str, params: Any = None) -> int:
        """Send a request and return its ID. IDs start at 1 and never repeat."""
        request_id = self._next_id
        self._next_id += 1
        msg: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            msg["params"] = params
        self._outstanding[request_id] = method
        self._writer.write(msg)
        log.debug("rpc_request", server=self._name, id=request_id, method=method)
        return request_id

    def send_notification(self, method: str, params: Any = None) -> None:
        msg: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            msg["params"] = params
        self._writer.write(msg)
        log.debug("rpc_notification", server=self._name, method=method)

    def wait_response(self, request_id: int, timeout: float | None = None) -> Any:
        """Read until the response for ``request_id`` arrives and return its result.

        Raises:
            ProtocolError: The server answered with an error payload.
            TransportError: The stream failed, or ``timeout`` expired.
        """
        method = self._outstanding.get(request_id, "?")
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransportError.timeout(timeout or 0.0, request_id)
            try:
                msg = self._reader.read_message(remaining)
            except TransportError as e:
                if e.code == ErrorCode.TRANSPORT_TIMEOUT:
                    raise TransportError.timeout(timeout or 0.0, request_id) from e
                raise

            has_id = "id" in msg
            has_method = "method" in msg

            if has_id and has_method:
                self._answer_server_request(msg)
            elif has_id:
                if msg["id"] != request_id:
                    self._discard(msg, request_id)
                    continue
                self._outstanding.pop(request_id, None)
                if "error" in msg:
                    error = msg["error"] if isinstance(msg["error"], dict) else {}
                    log.debug("rpc_error", server=self._name, id=request_id, error=error)
                    raise ProtocolError.from_response(method, error)
                log.debug("rpc_response", server=self._name, id=request_id, method=method)
                return msg.get("result")
            elif has_method:
                self._dispatch_notification(msg)
            else:
                log.warning("rpc_unrecognized_message", server=self._name, keys=sorted(msg))

    def request(self, method: str, params: Any = None, timeout: float | None = None) -> Any:
        return self.wait_response(self.send_request(method, params), timeout)

    def _discard(self, msg: dict[str, Any], awaited_id: int) -> None:
        other_id = msg["id"]
        if isinstance(other_id, int):
            self._outstanding.pop(other_id, None)
        self.discarded_responses.append(
            DiscardedResponse(request_id=other_id, awaited_id=awaited_id, is_error="error" in msg)
        )
        log.warning(
            "rpc_response_discarded",
            server=self._name,
            id=other_id,
            awaited_id=awaited_id,
        )

    def _dispatch_notification(self, msg: dict[str, Any]) -> None:
        method = msg["method"]
        params = msg.get("params")
        log.debug("rpc_server_notification", server=self._name, method=method)
        for handler in self._handlers:
            handler(method, params)

    def _answer_server_request(self, msg: dict[str, Any]) -> None:
        method = msg["method"]
        req_id = msg["id"]
        result: Any = None
        if method == "workspace/configuration":
            params = msg.get("params") or {}
            items = params.get("items", []) if isinstance(params, dict) else []
            result = [{} for _ in items]
        self._writer.write({"jsonrpc": "2.0", "id": req_id, "result": result})
        log.debug("rpc_server_request_answered", server=self._name, id=req_id, method=method)
