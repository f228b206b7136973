"""Tests for lsp/framing.py module.

Covers:
- encode_message() header and body
- MessageReader over in-memory streams and pipes
- Every transport failure kind: closed, truncated, malformed, invalid payload, timeout
- MessageWriter broken pipe
"""

from __future__ import annotations

import io
import json
import os

import pytest

from callscope.core.errors import ErrorCode, TransportError
from callscope.lsp.framing import (
    MessageReader,
    MessageWriter,
    PipeSource,
    StreamSource,
    encode_message,
)


def reader_for(data: bytes) -> MessageReader:
    return MessageReader(StreamSource(io.BytesIO(data)))


class _SilentSource:
    """A source that never produces data before its timeout."""

    def read_chunk(self, timeout: float | None) -> bytes | None:  # noqa: ARG002
        return None


class TestEncodeMessage:
    def test_header_counts_body_bytes(self) -> None:
        """Content-Length is the UTF-8 byte length, not the character count."""
        data = encode_message({"text": "é"})
        header, _, body = data.partition(b"\r\n\r\n")
        assert header == f"Content-Length: {len(body)}".encode()
        assert json.loads(body) == {"text": "é"}
        assert len(body) > len('{"text":"é"}')

    def test_compact_body(self) -> None:
        data = encode_message({"a": 1, "b": [1, 2]})
        assert data.endswith(b'{"a":1,"b":[1,2]}')


class TestMessageReader:
    def test_reads_one_message(self) -> None:
        msg = {"jsonrpc": "2.0", "id": 1, "result": None}
        assert reader_for(encode_message(msg)).read_message() == msg

    def test_reads_back_to_back_messages(self) -> None:
        first = {"jsonrpc": "2.0", "method": "window/logMessage", "params": {"message": "hi"}}
        second = {"jsonrpc": "2.0", "id": 1, "result": [1]}
        reader = reader_for(encode_message(first) + encode_message(second))
        assert reader.read_message() == first
        assert reader.read_message() == second

    def test_tolerates_extra_headers_and_case(self) -> None:
        body = b'{"id":3}'
        data = (
            b"content-length: " + str(len(body)).encode() + b"\r\n"
            b"Content-Type: application/vscode-jsonrpc; charset=utf-8\r\n\r\n" + body
        )
        assert reader_for(data).read_message() == {"id": 3}

    def test_zero_length_body_is_invalid_payload(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            reader_for(b"Content-Length: 0\r\n\r\n").read_message()
        assert exc_info.value.code is ErrorCode.TRANSPORT_INVALID_PAYLOAD

    def test_empty_stream_is_closed(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            reader_for(b"").read_message()
        assert exc_info.value.code is ErrorCode.TRANSPORT_CLOSED

    def test_short_body_is_truncated(self) -> None:
        """Given a header promising 500 bytes and 10 delivered, the read fails as truncated."""
        # Given
        reader = reader_for(b"Content-Length: 500\r\n\r\n" + b"x" * 10)

        # When
        with pytest.raises(TransportError) as exc_info:
            reader.read_message()

        # Then
        assert exc_info.value.code is ErrorCode.TRANSPORT_TRUNCATED
        assert exc_info.value.details["expected"] == 500
        assert exc_info.value.details["received"] == 10

    def test_eof_inside_headers_is_truncated(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            reader_for(b"Content-Len").read_message()
        assert exc_info.value.code is ErrorCode.TRANSPORT_TRUNCATED

    @pytest.mark.parametrize(
        "data",
        [
            b"Content-Type: text/plain\r\n\r\n{}",
            b"garbage\r\n\r\n{}",
            b"Content-Length: ten\r\n\r\n{}",
            b"Content-Length: -4\r\n\r\n{}",
        ],
    )
    def test_malformed_headers(self, data: bytes) -> None:
        with pytest.raises(TransportError) as exc_info:
            reader_for(data).read_message()
        assert exc_info.value.code is ErrorCode.TRANSPORT_MALFORMED

    @pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b"\xff\xfe\xfd"])
    def test_invalid_payload(self, body: bytes) -> None:
        data = f"Content-Length: {len(body)}\r\n\r\n".encode() + body
        with pytest.raises(TransportError) as exc_info:
            reader_for(data).read_message()
        assert exc_info.value.code is ErrorCode.TRANSPORT_INVALID_PAYLOAD

    def test_timeout(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            MessageReader(_SilentSource()).read_message(timeout=0.05)
        assert exc_info.value.code is ErrorCode.TRANSPORT_TIMEOUT
        assert exc_info.value.retryable


class TestPipeSource:
    def test_reads_from_pipe(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            os.write(write_fd, encode_message({"id": 7, "result": "ok"}))
            reader = MessageReader(PipeSource(read_fd))
            assert reader.read_message(timeout=1.0) == {"id": 7, "result": "ok"}
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def test_two_messages_in_one_write(self) -> None:
        """Both messages are served from the reader's own buffer."""
        read_fd, write_fd = os.pipe()
        try:
            os.write(write_fd, encode_message({"id": 1}) + encode_message({"id": 2}))
            reader = MessageReader(PipeSource(read_fd))
            assert reader.read_message(timeout=1.0) == {"id": 1}
            assert reader.buffered > 0
            assert reader.read_message(timeout=1.0) == {"id": 2}
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def test_idle_pipe_times_out(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            with pytest.raises(TransportError) as exc_info:
                MessageReader(PipeSource(read_fd)).read_message(timeout=0.05)
            assert exc_info.value.code is ErrorCode.TRANSPORT_TIMEOUT
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def test_closed_writer_is_eof(self) -> None:
        read_fd, write_fd = os.pipe()
        os.close(write_fd)
        try:
            with pytest.raises(TransportError) as exc_info:
                MessageReader(PipeSource(read_fd)).read_message(timeout=1.0)
            assert exc_info.value.code is ErrorCode.TRANSPORT_CLOSED
        finally:
            os.close(read_fd)


class TestMessageWriter:
    def test_writes_framed_message(self) -> None:
        out = io.BytesIO()
        written = MessageWriter(out).write({"jsonrpc": "2.0", "method": "initialized", "params": {}})
        assert written == len(out.getvalue())
        assert reader_for(out.getvalue()).read_message()["method"] == "initialized"

    def test_closed_stream_is_broken_pipe(self) -> None:
        out = io.BytesIO()
        out.close()
        with pytest.raises(TransportError) as exc_info:
            MessageWriter(out).write({"jsonrpc": "2.0", "method": "exit"})
        assert exc_info.value.code is ErrorCode.TRANSPORT_BROKEN_PIPE
