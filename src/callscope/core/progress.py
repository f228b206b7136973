"""Terminal feedback for project batches.

Status lines go to stderr through rich. While a batch runs on a terminal, a
live line names the file being worked on and how far through the file list
the run is (``Resolving calls [3/12] src/main.rs``), and console log records
are held back so they do not tear that line. Off a terminal, the batch
prints one plain line when it starts.

The resolvers call ``advance_file`` for every file they open; outside
``batch_progress`` that is a no-op, so library use stays silent.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from rich.status import Status
    from structlog.stdlib import BoundLogger

_console = Console(stderr=True)

_MARKS = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_state = threading.local()


def _get_logger() -> BoundLogger:
    from callscope.core.logging import get_logger

    return get_logger("progress")


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def is_console_suppressed() -> bool:
    return getattr(_state, "suppressed", False)


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Hold console log records back. File outputs still receive them."""
    previous = is_console_suppressed()
    _state.suppressed = True
    try:
        yield
    finally:
        _state.suppressed = previous


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    _console.print(f"{' ' * indent}{_MARKS.get(style, '')}{message}", highlight=False)
    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """``pluralize(1, "file")`` is ``"1 file"``; any other count takes ``plural`` (default: ``singular + "s"``)."""
    word = singular if count == 1 else (plural or singular + "s")
    return f"{count} {word}"


class FileProgress:
    """Position of a running batch in its file list."""

    def __init__(self, label: str, total: int | None, live: Status | None = None) -> None:
        self.label = label
        self.total = total
        self.done = 0
        self.current: Path | None = None
        self._live = live

    def describe(self) -> str:
        if self.current is None:
            return self.label
        count = f"{self.done}/{self.total}" if self.total is not None else str(self.done)
        return f"{self.label} [{count}] {self.current.name}"

    def advance(self, path: Path) -> None:
        self.done += 1
        self.current = path
        if self._live is not None:
            self._live.update(f"[cyan]{self.describe()}[/cyan]")
        _get_logger().debug("file_started", path=str(path), index=self.done, total=self.total)


@contextmanager
def batch_progress(label: str, total: int | None = None) -> Iterator[FileProgress]:
    """Show progress for one batch over ``total`` files until the block exits."""
    if _is_tty():
        with suppress_console_logs(), _console.status(f"[cyan]{label}[/cyan]", spinner="dots") as live:
            tracker = FileProgress(label, total, live)
            _state.active = tracker
            try:
                yield tracker
            finally:
                _state.active = None
    else:
        suffix = f" ({pluralize(total, 'file')})" if total is not None else ""
        _console.print(f"{label}{suffix}...", highlight=False)
        tracker = FileProgress(label, total)
        _state.active = tracker
        try:
            yield tracker
        finally:
            _state.active = None


def advance_file(path: Path) -> None:
    """Move the running batch's progress on to ``path``."""
    tracker: FileProgress | None = getattr(_state, "active", None)
    if tracker is not None:
        tracker.advance(path)
