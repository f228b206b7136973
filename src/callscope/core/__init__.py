"""Core module exports."""

from callscope.core.errors import (
    CallScopeError,
    ConfigError,
    ErrorCode,
    InternalError,
    LaunchError,
    ParseError,
    ProtocolError,
    SessionStateError,
    TransportError,
)
from callscope.core.logging import (
    bind_session_context,
    clear_run_id,
    clear_session_context,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from callscope.core.progress import advance_file, batch_progress, pluralize, status

__all__ = [
    # Errors
    "CallScopeError",
    "ConfigError",
    "ErrorCode",
    "InternalError",
    "LaunchError",
    "ParseError",
    "ProtocolError",
    "SessionStateError",
    "TransportError",
    # Logging
    "bind_session_context",
    "clear_run_id",
    "clear_session_context",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "set_run_id",
    # Progress
    "advance_file",
    "batch_progress",
    "pluralize",
    "status",
]
