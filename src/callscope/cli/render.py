"""Plain-text rendering of batch results."""

from __future__ import annotations

from pathlib import Path

from callscope.lsp.types import (
    CallHierarchyItem,
    DocumentSymbol,
    InlayHint,
    Location,
    SymbolInformation,
    SymbolKind,
    uri_to_path,
)
from callscope.parsing.walker import CallSite, SourceRange
from callscope.resolve.models import (
    CallWithTarget,
    FileInlayHints,
    FileSymbols,
    HierarchyEntry,
    SymbolReferences,
)


def _display_column(line: bytes, byte_column: int) -> int:
    return len(line[:byte_column].decode("utf-8", errors="replace"))


def _single_line(span: SourceRange) -> bool:
    return span.start_line == span.end_line


def _underline(line: bytes, span: SourceRange, mark: str) -> str:
    start = _display_column(line, span.start_column)
    end = _display_column(line, span.end_column)
    return " " * start + mark * max(end - start, 1)


def format_call_site(site: CallSite, source_lines: list[bytes], index: int) -> list[str]:
    """Source line with ``^`` under the call and ``~`` under the anchor.

    Calls spanning several lines get a one-line position summary instead.
    """
    call, anchor = site.call_span, site.anchor_span
    line_no = call.start_line
    if (
        _single_line(call)
        and _single_line(anchor)
        and anchor.start_line == line_no
        and line_no < len(source_lines)
    ):
        raw = source_lines[line_no]
        prefix = f"{line_no + 1}: "
        indent = " " * len(prefix)
        return [
            prefix + raw.decode("utf-8", errors="replace"),
            f"{indent}{_underline(raw, call, '^')} call",
            f"{indent}{_underline(raw, anchor, '~')} goto definition",
        ]
    return [
        f"Call #{index}: line {line_no + 1} (multi-line, spans "
        f"{call.start_line + 1}:{call.start_column} to {call.end_line + 1}:{call.end_column})"
    ]


def _position(path: Path, line: int, character: int) -> str:
    return f"{path}:{line + 1}:{character + 1}"


def _location(location: Location) -> str:
    start = location.range.start
    return _position(location.path, start.line, start.character)


def format_call_target(call: CallWithTarget) -> list[str]:
    site = call.call_site
    origin = _position(call.file_path, site.call_span.start_line, site.call_span.start_column)
    if call.failure is not None:
        return [f"Call {origin} failed: {call.failure.message}"]
    return [f"Call {origin} targets {_location(loc)}" for loc in call.locations]


def format_references(entry: SymbolReferences) -> list[str]:
    head = (
        f"{SymbolKind.label(entry.kind)} {entry.name} at "
        f"{_position(entry.file_path, entry.line, entry.character)}"
    )
    if entry.failure is not None:
        return [f"{head}: failed ({entry.failure.message})"]
    lines = [f"{head}: {len(entry.references)} reference(s)"]
    lines.extend(f"    {_location(loc)}" for loc in entry.references)
    return lines


def _item(item: CallHierarchyItem) -> str:
    start = item.selection_range.start
    return f"{item.name} ({_position(uri_to_path(item.uri), start.line, start.character)})"


def format_hierarchy(entry: HierarchyEntry) -> list[str]:
    head = f"{entry.name} at {_position(entry.file_path, entry.line, entry.character)}"
    if entry.failure is not None:
        return [f"{head}: failed ({entry.failure.message})"]
    if not entry.items:
        return [f"{head}: no call hierarchy item"]
    lines = [head]
    lines.extend(f"    <- {_item(call.from_)}" for call in entry.incoming)
    lines.extend(f"    -> {_item(call.to)}" for call in entry.outgoing)
    return lines


def _symbol_lines(symbol: DocumentSymbol | SymbolInformation, depth: int) -> list[str]:
    pad = "  " * depth
    if isinstance(symbol, SymbolInformation):
        start = symbol.location.range.start
        return [f"{pad}{SymbolKind.label(symbol.kind)} {symbol.name} {start.line + 1}:{start.character + 1}"]
    start = symbol.selection_range.start
    lines = [f"{pad}{SymbolKind.label(symbol.kind)} {symbol.name} {start.line + 1}:{start.character + 1}"]
    for child in symbol.children:
        lines.extend(_symbol_lines(child, depth + 1))
    return lines


def format_symbols(entry: FileSymbols) -> list[str]:
    if entry.failure is not None:
        return [f"{entry.file_path}: failed ({entry.failure.message})"]
    lines = [f"{entry.file_path}:"]
    for symbol in entry.symbols:
        lines.extend(_symbol_lines(symbol, 1))
    return lines


def _hint(hint: InlayHint) -> str:
    return f"  {hint.position.line + 1}:{hint.position.character + 1} {hint.text}"


def format_inlay_hints(entry: FileInlayHints) -> list[str]:
    if entry.failure is not None:
        return [f"{entry.file_path}: failed ({entry.failure.message})"]
    return [f"{entry.file_path}: {len(entry.hints)} hint(s)", *(_hint(h) for h in entry.hints)]
