"""Pre-order call site enumeration over a parsed tree.

``iter_calls`` re-walks from the root on every invocation and yields
owned ``CallSite`` values, so results stay valid after the tree is dropped.
Nested calls (a call inside another call's arguments) are reported
independently, in the order a depth-first, left-to-right walk reaches them.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from callscope.parsing.treesitter import ParsedFile


@dataclass(frozen=True, slots=True)
class SourceRange:
    """Byte and line/column span copied out of a tree node.

    Lines and columns are 0-based; ``start_column`` counts bytes, while
    ``start_character`` counts UTF-16 code units as LSP positions require.
    """

    start_byte: int
    end_byte: int
    start_line: int
    start_column: int
    end_line: int
    end_column: int
    start_character: int

    def contains(self, other: SourceRange) -> bool:
        return self.start_byte <= other.start_byte and other.end_byte <= self.end_byte

    @property
    def length(self) -> int:
        return self.end_byte - self.start_byte

    @classmethod
    def from_node(cls, node: Any, source: bytes) -> SourceRange:
        line, column = node.start_point
        end_line, end_column = node.end_point
        return cls(
            start_byte=node.start_byte,
            end_byte=node.end_byte,
            start_line=line,
            start_column=column,
            end_line=end_line,
            end_column=end_column,
            start_character=utf16_column(source, node.start_byte, column),
        )


def utf16_column(source: bytes, offset: int, byte_column: int) -> int:
    """Convert a byte column to a UTF-16 code unit column."""
    prefix = source[offset - byte_column : offset]
    if prefix.isascii():
        return byte_column
    return len(prefix.decode("utf-8", errors="replace").encode("utf-16-le")) // 2


@dataclass(frozen=True, slots=True)
class CallSite:
    """One call expression and the sub-node used as its query anchor."""

    call_span: SourceRange
    anchor_span: SourceRange
    call_kind: str
    anchor_kind: str
    anchor_text: str

    def __post_init__(self) -> None:
        if not self.call_span.contains(self.anchor_span):
            raise ValueError(
                f"anchor {self.anchor_span.start_byte}..{self.anchor_span.end_byte} "
                f"outside call {self.call_span.start_byte}..{self.call_span.end_byte}"
            )

    @property
    def line(self) -> int:
        return self.anchor_span.start_line

    @property
    def character(self) -> int:
        return self.anchor_span.start_character


@dataclass(frozen=True, slots=True)
class DeclarationSite:
    """A callable declaration and its name node."""

    decl_span: SourceRange
    name_span: SourceRange
    decl_kind: str
    name: str


def _node_text(node: Any, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _preorder(tree: Any) -> Iterator[Any]:
    cursor = tree.walk()
    while True:
        yield cursor.node
        if cursor.goto_first_child():
            continue
        while not cursor.goto_next_sibling():
            if not cursor.goto_parent():
                return


def iter_calls(parsed: ParsedFile) -> Iterator[CallSite]:
    """Yield every call site of ``parsed`` in pre-order."""
    pack = parsed.pack
    kinds = pack.call_node_kinds
    source = parsed.source
    for node in _preorder(parsed.tree):
        if node.type not in kinds:
            continue
        anchor = pack.narrow_anchor(node)
        yield CallSite(
            call_span=SourceRange.from_node(node, source),
            anchor_span=SourceRange.from_node(anchor, source),
            call_kind=node.type,
            anchor_kind=anchor.type,
            anchor_text=_node_text(anchor, source),
        )


def iter_declarations(parsed: ParsedFile) -> Iterator[DeclarationSite]:
    """Yield callable declarations that have a name node, in pre-order."""
    pack = parsed.pack
    kinds = pack.declaration_kinds
    if not kinds:
        return
    source = parsed.source
    for node in _preorder(parsed.tree):
        if node.type not in kinds:
            continue
        name = pack.declaration_anchor(node)
        if name is None:
            continue
        yield DeclarationSite(
            decl_span=SourceRange.from_node(node, source),
            name_span=SourceRange.from_node(name, source),
            decl_kind=node.type,
            name=_node_text(name, source),
        )
