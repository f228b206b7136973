"""Tests for lsp/client.py JSON-RPC correlation."""

from __future__ import annotations

import io
from typing import Any

import pytest

from callscope.core.errors import ErrorCode, ProtocolError, TransportError
from callscope.lsp.client import JsonRpcConnection
from callscope.lsp.framing import MessageReader, MessageWriter, StreamSource, encode_message


def scripted(*incoming: dict[str, Any]) -> tuple[JsonRpcConnection, io.BytesIO]:
    """Connection whose server side replays ``incoming``; writes land in the returned buffer."""
    data = b"".join(encode_message(msg) for msg in incoming)
    out = io.BytesIO()
    conn = JsonRpcConnection(MessageReader(StreamSource(io.BytesIO(data))), MessageWriter(out), name="test")
    return conn, out


def sent_messages(out: io.BytesIO) -> list[dict[str, Any]]:
    data = out.getvalue()
    reader = MessageReader(StreamSource(io.BytesIO(data)))
    messages = []
    while True:
        try:
            messages.append(reader.read_message())
        except TransportError:
            return messages


class TestRequestIds:
    def test_ids_start_at_one_and_increase(self) -> None:
        conn, out = scripted()
        assert conn.send_request("a") == 1
        assert conn.send_request("b", {"x": 1}) == 2
        assert conn.last_request_id == 2
        assert conn.outstanding_ids == {1, 2}
        sent = sent_messages(out)
        assert [m["id"] for m in sent] == [1, 2]
        assert "params" not in sent[0]
        assert sent[1]["params"] == {"x": 1}

    def test_notification_has_no_id(self) -> None:
        conn, out = scripted()
        conn.send_notification("initialized", {})
        (msg,) = sent_messages(out)
        assert "id" not in msg
        assert msg["method"] == "initialized"


class TestWaitResponse:
    def test_returns_matching_result(self) -> None:
        conn, _ = scripted({"jsonrpc": "2.0", "id": 1, "result": {"ok": True}})
        assert conn.request("initialize", {}) == {"ok": True}
        assert conn.outstanding_ids == frozenset()

    def test_null_result(self) -> None:
        conn, _ = scripted({"jsonrpc": "2.0", "id": 1, "result": None})
        assert conn.request("shutdown") is None

    def test_mismatched_response_is_discarded(self) -> None:
        """Given a stale response for another ID first, it is recorded and skipped."""
        # Given
        conn, _ = scripted(
            {"jsonrpc": "2.0", "id": 99, "result": "stale"},
            {"jsonrpc": "2.0", "id": 1, "result": "fresh"},
        )

        # When
        result = conn.request("textDocument/definition", {})

        # Then
        assert result == "fresh"
        assert len(conn.discarded_responses) == 1
        discarded = conn.discarded_responses[0]
        assert discarded.request_id == 99
        assert discarded.awaited_id == 1
        assert not discarded.is_error

    def test_error_response_raises_protocol_error(self) -> None:
        conn, _ = scripted({"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "no such method"}})
        with pytest.raises(ProtocolError) as exc_info:
            conn.request("textDocument/inlayHint", {})
        assert exc_info.value.code is ErrorCode.PROTOCOL_ERROR_RESPONSE
        assert exc_info.value.rpc_code == -32601
        assert exc_info.value.rpc_message == "no such method"
        assert "textDocument/inlayHint" in exc_info.value.message

    def test_eof_before_response_raises_transport_error(self) -> None:
        conn, _ = scripted()
        with pytest.raises(TransportError) as exc_info:
            conn.request("textDocument/definition", {})
        assert exc_info.value.code is ErrorCode.TRANSPORT_CLOSED

    def test_notifications_reach_handlers(self) -> None:
        conn, _ = scripted(
            {"jsonrpc": "2.0", "method": "window/logMessage", "params": {"type": 3, "message": "indexing"}},
            {"jsonrpc": "2.0", "id": 1, "result": []},
        )
        seen: list[tuple[str, Any]] = []
        conn.add_notification_handler(lambda method, params: seen.append((method, params)))
        assert conn.request("textDocument/references", {}) == []
        assert seen == [("window/logMessage", {"type": 3, "message": "indexing"})]


class TestServerRequests:
    def test_configuration_request_answered_per_item(self) -> None:
        """workspace/configuration gets one empty object per requested item."""
        # Given
        conn, out = scripted(
            {
                "jsonrpc": "2.0",
                "id": "srv-1",
                "method": "workspace/configuration",
                "params": {"items": [{"section": "a"}, {"section": "b"}]},
            },
            {"jsonrpc": "2.0", "id": 1, "result": "done"},
        )

        # When
        result = conn.request("textDocument/definition", {})

        # Then
        assert result == "done"
        answer = sent_messages(out)[1]
        assert answer == {"jsonrpc": "2.0", "id": "srv-1", "result": [{}, {}]}
        assert conn.discarded_responses == []

    def test_other_server_requests_answered_with_null(self) -> None:
        conn, out = scripted(
            {"jsonrpc": "2.0", "id": 5, "method": "window/workDoneProgress/create", "params": {"token": "t"}},
            {"jsonrpc": "2.0", "id": 1, "result": None},
        )
        conn.request("initialize", {})
        answer = sent_messages(out)[1]
        assert answer == {"jsonrpc": "2.0", "id": 5, "result": None}
