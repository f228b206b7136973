"""callscope error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Parsing
- 80xx: Language server launch
- 81xx: Language server transport
- 82xx: Language server protocol
- 83xx: Language server session state
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_UNKNOWN_LANGUAGE = 2005
    CONFIG_INVALID_PATTERN = 2006
    CONFIG_PROJECT_NOT_FOUND = 2007

    # Parsing (3xxx)
    PARSE_GRAMMAR_UNAVAILABLE = 3001
    PARSE_FILE_UNREADABLE = 3002
    PARSE_FAILED = 3003

    # Language server launch (80xx)
    SERVER_NOT_FOUND = 8001
    SERVER_SPAWN_FAILED = 8002
    SERVER_HANDSHAKE_FAILED = 8003

    # Language server transport (81xx)
    TRANSPORT_CLOSED = 8101
    TRANSPORT_TRUNCATED = 8102
    TRANSPORT_MALFORMED = 8103
    TRANSPORT_INVALID_PAYLOAD = 8104
    TRANSPORT_TIMEOUT = 8105
    TRANSPORT_BROKEN_PIPE = 8106

    # Language server protocol (82xx)
    PROTOCOL_ERROR_RESPONSE = 8201
    PROTOCOL_INVALID_RESPONSE = 8202

    # Language server session state (83xx)
    SESSION_NOT_READY = 8301
    SESSION_DOCUMENT_NOT_OPEN = 8302

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class CallScopeError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'TRANSPORT_CLOSED')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CallScopeError):
    """Configuration-related errors. Raised before any session starts."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def unknown_language(cls, name: str, supported: list[str]) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_UNKNOWN_LANGUAGE,
            message=f"Unsupported language: '{name}'. Supported languages: {', '.join(supported)}",
            details={"language": name, "supported": supported},
        )

    @classmethod
    def invalid_pattern(cls, kind: str, pattern: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_PATTERN,
            message=f"Invalid {kind} pattern '{pattern}': {reason}",
            details={"kind": kind, "pattern": pattern, "reason": reason},
        )

    @classmethod
    def project_not_found(cls, path: str, reason: str = "does not exist") -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PROJECT_NOT_FOUND,
            message=f"Project path {reason}: {path}",
            details={"path": path, "reason": reason},
        )


class ParseError(CallScopeError):
    """Errors producing a syntax tree for a file."""

    @classmethod
    def grammar_unavailable(cls, language: str, package: str) -> "ParseError":
        return cls(
            code=ErrorCode.PARSE_GRAMMAR_UNAVAILABLE,
            message=f"Grammar for {language} is not installed. Install it with: pip install {package}",
            details={"language": language, "package": package},
        )

    @classmethod
    def file_unreadable(cls, path: str, reason: str) -> "ParseError":
        return cls(
            code=ErrorCode.PARSE_FILE_UNREADABLE,
            message=f"Failed to read file {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def parse_failed(cls, path: str) -> "ParseError":
        return cls(
            code=ErrorCode.PARSE_FAILED,
            message=f"Parser produced no tree for {path}",
            details={"path": path},
        )


class LaunchError(CallScopeError):
    """The language server could not be started. Fatal for that language's batch."""

    @classmethod
    def not_found(cls, command: str, install_hint: str) -> "LaunchError":
        return cls(
            code=ErrorCode.SERVER_NOT_FOUND,
            message=f"Language server '{command}' is not available. {install_hint}",
            details={"command": command, "install_hint": install_hint},
        )

    @classmethod
    def spawn_failed(cls, command: str, reason: str, install_hint: str = "") -> "LaunchError":
        return cls(
            code=ErrorCode.SERVER_SPAWN_FAILED,
            message=f"Failed to start language server '{command}': {reason}. {install_hint}".rstrip(),
            details={"command": command, "reason": reason, "install_hint": install_hint},
        )

    @classmethod
    def handshake_failed(cls, command: str, reason: str) -> "LaunchError":
        return cls(
            code=ErrorCode.SERVER_HANDSHAKE_FAILED,
            message=f"Language server '{command}' failed to initialize: {reason}",
            details={"command": command, "reason": reason},
        )


class TransportError(CallScopeError):
    """Framing or pipe failure. Fatal to the owning session."""

    @classmethod
    def closed(cls) -> "TransportError":
        return cls(
            code=ErrorCode.TRANSPORT_CLOSED,
            message="Language server closed its output stream",
            retryable=True,
        )

    @classmethod
    def truncated(cls, expected: int, received: int) -> "TransportError":
        return cls(
            code=ErrorCode.TRANSPORT_TRUNCATED,
            message=f"Stream ended after {received} of {expected} bytes",
            retryable=True,
            details={"expected": expected, "received": received},
        )

    @classmethod
    def truncated_header(cls, partial: bytes) -> "TransportError":
        return cls(
            code=ErrorCode.TRANSPORT_TRUNCATED,
            message="Stream ended inside a header block",
            retryable=True,
            details={"partial": partial.decode("ascii", errors="replace")},
        )

    @classmethod
    def malformed(cls, reason: str) -> "TransportError":
        return cls(
            code=ErrorCode.TRANSPORT_MALFORMED,
            message=f"Malformed frame: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def invalid_payload(cls, reason: str) -> "TransportError":
        return cls(
            code=ErrorCode.TRANSPORT_INVALID_PAYLOAD,
            message=f"Undecodable payload: {reason}",
            details={"reason": reason},
        )

    @classmethod
    def timeout(cls, waited_sec: float, request_id: int | None = None) -> "TransportError":
        what = f"request {request_id}" if request_id is not None else "message"
        return cls(
            code=ErrorCode.TRANSPORT_TIMEOUT,
            message=f"No {what} received within {waited_sec:.1f}s",
            retryable=True,
            details={"waited_sec": waited_sec, "request_id": request_id},
        )

    @classmethod
    def broken_pipe(cls, reason: str) -> "TransportError":
        return cls(
            code=ErrorCode.TRANSPORT_BROKEN_PIPE,
            message=f"Failed to write to language server: {reason}",
            retryable=True,
            details={"reason": reason},
        )


@dataclass(frozen=True, slots=True)
class BatchAbortedError(TransportError):
    """A batch run gave up after its session failed more often than allowed.

    Carries the transport failure's code and message, plus the partial
    ``report`` of everything collected before the run was abandoned.
    """

    report: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_failure(cls, cause: TransportError, report: Any) -> "BatchAbortedError":
        items = len(getattr(report, "items", ()))
        return cls(
            code=cause.code,
            message=f"{cause.message} (run aborted after {items} result(s))",
            retryable=False,
            details={**cause.details, "items_collected": items},
            report=report,
        )


class ProtocolError(CallScopeError):
    """Structured error response for one request. Non-fatal."""

    @property
    def rpc_code(self) -> int:
        return int(self.details.get("rpc_code", -1))

    @property
    def rpc_message(self) -> str:
        return str(self.details.get("rpc_message", ""))

    @classmethod
    def from_response(cls, method: str, error: dict[str, Any]) -> "ProtocolError":
        rpc_code = error.get("code", -1)
        rpc_message = error.get("message", "Unknown error")
        return cls(
            code=ErrorCode.PROTOCOL_ERROR_RESPONSE,
            message=f"{method} failed (code {rpc_code}): {rpc_message}",
            details={
                "method": method,
                "rpc_code": rpc_code,
                "rpc_message": rpc_message,
                "data": error.get("data"),
            },
        )

    @classmethod
    def invalid_response(cls, method: str, reason: str) -> "ProtocolError":
        return cls(
            code=ErrorCode.PROTOCOL_INVALID_RESPONSE,
            message=f"{method} returned an invalid response: {reason}",
            details={"method": method, "reason": reason},
        )


class SessionStateError(CallScopeError):
    """Operation issued in a session state that does not allow it."""

    @classmethod
    def not_ready(cls, operation: str, state: str) -> "SessionStateError":
        return cls(
            code=ErrorCode.SESSION_NOT_READY,
            message=f"Cannot {operation}: session is {state}",
            details={"operation": operation, "state": state},
        )

    @classmethod
    def document_not_open(cls, uri: str) -> "SessionStateError":
        return cls(
            code=ErrorCode.SESSION_DOCUMENT_NOT_OPEN,
            message=f"Document is not open: {uri}",
            details={"uri": uri},
        )


class InternalError(CallScopeError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
