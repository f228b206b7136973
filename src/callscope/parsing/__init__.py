"""Syntax side: language packs, tree-sitter parsing and call site walking."""

from callscope.parsing.packs import PACKS, LanguagePack, get_pack, get_pack_for_path
from callscope.parsing.treesitter import ParsedFile, TreeSitterParser
from callscope.parsing.walker import (
    CallSite,
    DeclarationSite,
    SourceRange,
    iter_calls,
    iter_declarations,
)

__all__ = [
    "PACKS",
    "CallSite",
    "DeclarationSite",
    "LanguagePack",
    "ParsedFile",
    "SourceRange",
    "TreeSitterParser",
    "get_pack",
    "get_pack_for_path",
    "iter_calls",
    "iter_declarations",
]
