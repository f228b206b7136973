"""structlog setup for callscope.

Every record carries the run id. While a batch holds a language server, it
also carries the batch's language, server command and workspace root, so
lines from a long run (and from its restarted sessions) can be told apart.
Console output folds those fields into a short ``[language:server]`` prefix;
JSON output keeps them as fields.

Records from stdlib loggers go through the same processors, so one handler
per configured output renders everything.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog
from structlog.contextvars import bind_contextvars, get_contextvars, unbind_contextvars

if TYPE_CHECKING:
    from callscope.config.models import LoggingConfig, LogOutputConfig

_SESSION_KEYS = ("language", "server", "workspace_root")


# =========================================================================
# Context
# =========================================================================


def set_run_id(run_id: str | None = None) -> str:
    """Bind the run id for this invocation, generating one if none is given."""
    rid = run_id or uuid4().hex[:12]
    bind_contextvars(run_id=rid)
    return rid


def get_run_id() -> str | None:
    return get_contextvars().get("run_id")


def clear_run_id() -> None:
    unbind_contextvars("run_id")


def bind_session_context(*, language: str, server: str, workspace_root: Path) -> None:
    """Attach the running batch's language server to every following record."""
    bind_contextvars(language=language, server=server, workspace_root=str(workspace_root))


def clear_session_context() -> None:
    unbind_contextvars(*_SESSION_KEYS)


def session_context() -> dict[str, Any]:
    ctx = get_contextvars()
    return {key: ctx[key] for key in _SESSION_KEYS if key in ctx}


# =========================================================================
# Processors and handlers
# =========================================================================


def _level(name: str) -> int:
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def _session_prefix(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.pop("workspace_root", None)
    tag = ":".join(str(v) for v in (event_dict.pop("language", None), event_dict.pop("server", None)) if v)
    if tag:
        event_dict["event"] = f"[{tag}] {event_dict.get('event', '')}"
    return event_dict


class ConsoleSuppressingFilter(logging.Filter):
    """Holds console records back while a live progress line owns the terminal."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from callscope.core.progress import is_console_suppressed

        return not is_console_suppressed()


def _handler_for(output: LogOutputConfig, pre_chain: list[structlog.types.Processor]) -> logging.Handler:
    handler: logging.Handler
    if output.destination in ("stderr", "stdout"):
        stream = sys.stderr if output.destination == "stderr" else sys.stdout
        handler = logging.StreamHandler(stream)
        handler.addFilter(ConsoleSuppressingFilter())
        colors = stream.isatty()
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        colors = False

    renderer: list[structlog.types.Processor]
    if output.format == "json":
        renderer = [structlog.processors.JSONRenderer()]
    else:
        renderer = [_session_prefix, structlog.dev.ConsoleRenderer(colors=colors, pad_event_to=0, pad_level=False)]
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderer],
            foreign_pre_chain=pre_chain,
        )
    )
    return handler


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "WARNING",
) -> None:
    """Route structlog and stdlib logging to the configured outputs.

    Without ``config``, a single stderr output at ``level`` is used, in JSON
    when ``json_format`` is set. Replaces any handlers from an earlier call.
    """
    from callscope.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )
    root_level = _level(config.level)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(root_level)

    for output in config.outputs:
        handler = _handler_for(output, pre_chain)
        handler.setLevel(_level(output.level or config.level))
        root.addHandler(handler)


def get_log_file_path() -> Path | None:
    """The first file output currently configured, if any."""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
