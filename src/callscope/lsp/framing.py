"""Content-Length framing for JSON-RPC over stdio.

Each message on the wire looks like::

    Content-Length: 52\\r\\n
    \\r\\n
    {"jsonrpc":"2.0","id":1,"method":"initialize","params":{}}

The reader keeps its own byte buffer on top of a ``ByteSource``. For pipes
this is a raw fd read after ``select``, because Python's BufferedReader may
pull several messages into a buffer that ``select`` cannot see, and a read
would then wait on data that already arrived.
"""

from __future__ import annotations

import json
import os
import select
import time
from typing import IO, Any, Protocol

from callscope.core.errors import TransportError

_CHUNK_SIZE = 65536


def encode_message(payload: dict[str, Any]) -> bytes:
    """Frame one JSON-RPC payload: compact UTF-8 body behind a length header."""
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


class ByteSource(Protocol):
    def read_chunk(self, timeout: float | None) -> bytes | None:
        """Return new bytes, ``b""`` at EOF, or None when ``timeout`` expires."""
        ...


class PipeSource:
    """Raw file descriptor reads with ``select`` for timeouts (POSIX pipes)."""

    def __init__(self, fd: int) -> None:
        self._fd = fd

    def read_chunk(self, timeout: float | None) -> bytes | None:
        ready, _, _ = select.select([self._fd], [], [], timeout)
        if not ready:
            return None
        try:
            return os.read(self._fd, _CHUNK_SIZE)
        except OSError:
            return b""


class StreamSource:
    """File-like object source. Blocking; ``timeout`` is ignored."""

    def __init__(self, stream: IO[bytes]) -> None:
        self._stream = stream
        self._read = getattr(stream, "read1", stream.read)

    def read_chunk(self, timeout: float | None) -> bytes | None:  # noqa: ARG002
        return self._read(_CHUNK_SIZE)


class MessageReader:
    """Decodes framed messages one at a time from a ``ByteSource``."""

    def __init__(self, source: ByteSource) -> None:
        self._source = source
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def read_message(self, timeout: float | None = None) -> dict[str, Any]:
        """Read exactly one framed message.

        Args:
            timeout: Seconds to wait for the whole message. None waits forever.

        Raises:
            TransportError: closed, truncated, malformed, invalid payload or timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        content_length = self._read_headers(deadline, timeout)
        body = self._read_exactly(content_length, deadline, timeout)
        return _decode_body(body)

    def _fill(self, deadline: float | None, timeout: float | None) -> bool:
        """Append one chunk to the buffer. False at EOF."""
        remaining = None
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TransportError.timeout(timeout or 0.0)
        chunk = self._source.read_chunk(remaining)
        if chunk is None:
            raise TransportError.timeout(timeout or 0.0)
        if not chunk:
            return False
        self._buffer.extend(chunk)
        return True

    def _read_headers(self, deadline: float | None, timeout: float | None) -> int:
        headers: dict[str, str] = {}
        consumed = b""
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                if self._fill(deadline, timeout):
                    continue
                if not consumed and not self._buffer:
                    raise TransportError.closed()
                raise TransportError.truncated_header(consumed + bytes(self._buffer))

            raw = bytes(self._buffer[: newline + 1])
            del self._buffer[: newline + 1]
            consumed += raw
            try:
                line = raw.decode("ascii").rstrip("\r\n")
            except UnicodeDecodeError as e:
                raise TransportError.malformed(f"non-ASCII header line: {raw!r}") from e

            if line == "":
                break
            name, sep, value = line.partition(":")
            if not sep or not name.strip():
                raise TransportError.malformed(f"bad header line: {line!r}")
            headers[name.strip().lower()] = value.strip()

        raw_length = headers.get("content-length")
        if raw_length is None:
            raise TransportError.malformed("missing Content-Length header")
        try:
            length = int(raw_length)
        except ValueError as e:
            raise TransportError.malformed(f"invalid Content-Length: {raw_length!r}") from e
        if length < 0:
            raise TransportError.malformed(f"negative Content-Length: {length}")
        return length

    def _read_exactly(self, n: int, deadline: float | None, timeout: float | None) -> bytes:
        while len(self._buffer) < n:
            if not self._fill(deadline, timeout):
                raise TransportError.truncated(expected=n, received=len(self._buffer))
        data = bytes(self._buffer[:n])
        del self._buffer[:n]
        return data


def _decode_body(body: bytes) -> dict[str, Any]:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TransportError.invalid_payload(f"body is not UTF-8: {e}") from e
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise TransportError.invalid_payload(f"body is not JSON: {e}") from e
    if not isinstance(payload, dict):
        raise TransportError.invalid_payload(f"expected a JSON object, got {type(payload).__name__}")
    return payload


class MessageWriter:
    """Writes framed messages to a binary stream, flushing after each."""

    def __init__(self, stream: IO[bytes]) -> None:
        self._stream = stream

    def write(self, payload: dict[str, Any]) -> int:
        data = encode_message(payload)
        try:
            self._stream.write(data)
            self._stream.flush()
        except (OSError, ValueError) as e:
            # ValueError: write to a closed file object
            raise TransportError.broken_pipe(str(e)) from e
        return len(data)
