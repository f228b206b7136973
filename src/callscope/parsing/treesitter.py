"""Tree-sitter parsing for call discovery.

Grammars are loaded lazily from the pack's grammar distribution and cached
per (module, loader function), so ``.ts`` and ``.tsx`` files share one
module but get different languages.

Parsing never fails on invalid syntax: tree-sitter recovers, and the error
count is recorded on the result for diagnostics.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tree_sitter

from callscope.core.errors import ParseError
from callscope.core.logging import get_logger
from callscope.parsing.packs import LanguagePack

log = get_logger("parsing.treesitter")


@dataclass
class ParsedFile:
    """A parsed source file. Owns the bytes the tree's offsets refer to."""

    path: Path
    pack: LanguagePack
    source: bytes
    tree: Any  # tree_sitter.Tree
    total_nodes: int
    error_count: int

    @property
    def root_node(self) -> Any:
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        return self.error_count > 0


@dataclass
class TreeSitterParser:
    """
    Tree-sitter parser for the languages in ``PACKS``.

    Usage::

        parser = TreeSitterParser()
        parsed = parser.parse(Path("src/main.rs"), RUST_PACK)
    """

    _parser: Any = field(default=None, repr=False)
    _languages: dict[tuple[str, str], Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self._parser = tree_sitter.Parser()
        self._languages = {}

    def get_language(self, pack: LanguagePack, path: Path | str | None = None) -> Any:
        """Get or load the tree-sitter Language for a pack (and file, for tsx).

        Raises:
            ParseError: If the grammar distribution is not installed.
        """
        func_name = pack.language_func_for(path) if path is not None else pack.language_func
        key = (pack.grammar_module, func_name)
        if key in self._languages:
            return self._languages[key]

        try:
            mod = importlib.import_module(pack.grammar_module)
            lang_fn = getattr(mod, func_name)
        except (ImportError, AttributeError) as err:
            raise ParseError.grammar_unavailable(pack.display_name, pack.grammar_package) from err

        lang = tree_sitter.Language(lang_fn())
        self._languages[key] = lang
        log.debug("grammar_loaded", module=pack.grammar_module, func=func_name)
        return lang

    def parse(self, path: Path, pack: LanguagePack, content: bytes | None = None) -> ParsedFile:
        """
        Parse a file with Tree-sitter.

        Args:
            path: Path to file (selects the grammar variant)
            pack: Language of the file
            content: File content as bytes. If None, reads from path.

        Raises:
            ParseError: Grammar missing or file unreadable.
        """
        if content is None:
            try:
                content = path.read_bytes()
            except OSError as e:
                raise ParseError.file_unreadable(str(path), e.strerror or str(e)) from e

        self._parser.language = self.get_language(pack, path)
        tree = self._parser.parse(content)
        if tree is None:
            raise ParseError.parse_failed(str(path))

        total_nodes, error_count = _count_nodes(tree)
        if error_count:
            log.debug("parse_recovered", path=str(path), error_count=error_count)

        return ParsedFile(
            path=path,
            pack=pack,
            source=content,
            tree=tree,
            total_nodes=total_nodes,
            error_count=error_count,
        )


def _count_nodes(tree: Any) -> tuple[int, int]:
    total = 0
    errors = 0
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        total += 1
        if node.type == "ERROR" or node.is_missing:
            errors += 1
        stack.extend(node.children)
    return total, errors
