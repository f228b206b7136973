"""LanguagePack: single source of truth for per-language call discovery config.

Every language callscope supports has exactly ONE LanguagePack that
consolidates:
- Grammar install metadata (package, module, loader function)
- File detection (regex over the file name)
- Which syntax node kinds are calls, and how to narrow a call to the node
  whose position is sent to the language server
- Which node kinds declare callables (for call hierarchy)
- The language server launch command and LSP languageId

The PACKS registry is the canonical lookup: ``PACKS["rust"]``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING

from callscope.core.errors import ConfigError
from callscope.lsp.servers import ServerSpec

if TYPE_CHECKING:
    from tree_sitter import Node

# =========================================================================
# Dataclasses
# =========================================================================


@dataclass(frozen=True)
class AnchorRule:
    """Where the callee name sits below a call node.

    ``member_path`` is the chain of child kinds leading from the call node
    through a member access to the method name, e.g.
    ``navigation_expression -> navigation_suffix -> simple_identifier``.
    ``head_kinds`` are direct children that already are the callee name
    (plain ``foo(...)`` calls).
    """

    call_kinds: frozenset[str]
    member_path: tuple[str, ...] = ()
    head_kinds: frozenset[str] = frozenset()


@dataclass(frozen=True)
class DeclarationRule:
    """A node kind that declares a callable, and the kinds of its name child."""

    node_kind: str
    name_kinds: frozenset[str]


@dataclass(frozen=True)
class LanguagePack:
    """Complete call discovery configuration for a single language."""

    # -- Identity --
    name: str  # CLI name ("rust", "typescript", ...)
    display_name: str

    # -- Grammar install --
    grammar_package: str  # PyPI package ("tree-sitter-rust")
    grammar_module: str  # Python import ("tree_sitter_rust")
    language_func: str = "language"
    # Per-extension loader override (".tsx" -> "language_tsx")
    extension_language_funcs: dict[str, str] = field(default_factory=dict)

    # -- File detection --
    file_pattern: str = ""
    extensions: tuple[str, ...] = ()

    # -- Calls --
    call_node_kinds: frozenset[str] = frozenset()
    anchor_rule: AnchorRule | None = None
    declaration_rules: tuple[DeclarationRule, ...] = ()

    # -- Language server --
    server: ServerSpec = field(default_factory=lambda: ServerSpec(command=""))
    language_id: str = ""
    extension_language_ids: dict[str, str] = field(default_factory=dict)

    @cached_property
    def _file_regex(self) -> re.Pattern[str]:
        return re.compile(self.file_pattern)

    def file_regex(self) -> re.Pattern[str]:
        return self._file_regex

    def matches_file(self, name: str) -> bool:
        """True when a file name (not a full path) belongs to this language."""
        return self._file_regex.search(name) is not None

    def language_func_for(self, path: Path | str) -> str:
        suffix = Path(path).suffix.lower()
        return self.extension_language_funcs.get(suffix, self.language_func)

    def language_id_for(self, path: Path | str) -> str:
        suffix = Path(path).suffix.lower()
        return self.extension_language_ids.get(suffix, self.language_id)

    def narrow_anchor(self, node: Node) -> Node:
        """Reduce a call node to the node whose start is sent to the server.

        Total: returns ``node`` itself when the language has no rule, when the
        rule does not cover this call kind, or when no name node is found.
        """
        rule = self.anchor_rule
        if rule is None or node.type not in rule.call_kinds:
            return node
        for child in node.children:
            if rule.member_path and child.type == rule.member_path[0]:
                found = _follow_path(child, rule.member_path[1:])
                if found is not None:
                    return found
            elif child.type in rule.head_kinds:
                return child
        return node

    def declaration_anchor(self, node: Node) -> Node | None:
        """Name node of a callable declaration, or None if ``node`` declares none."""
        for rule in self.declaration_rules:
            if node.type == rule.node_kind:
                for child in node.children:
                    if child.type in rule.name_kinds:
                        return child
                return None
        return None

    @property
    def declaration_kinds(self) -> frozenset[str]:
        return frozenset(rule.node_kind for rule in self.declaration_rules)


def _follow_path(node: Node, path: tuple[str, ...]) -> Node | None:
    # Depth is bounded by len(path); siblings are tried in source order.
    if not path:
        return node
    for child in node.children:
        if child.type == path[0]:
            found = _follow_path(child, path[1:])
            if found is not None:
                return found
    return None


# =========================================================================
# Language packs
# =========================================================================

RUST_PACK = LanguagePack(
    name="rust",
    display_name="Rust",
    grammar_package="tree-sitter-rust",
    grammar_module="tree_sitter_rust",
    file_pattern=r"\.rs$",
    extensions=(".rs",),
    call_node_kinds=frozenset({"call_expression", "macro_invocation"}),
    declaration_rules=(
        DeclarationRule("function_item", frozenset({"identifier"})),
        DeclarationRule("function_signature_item", frozenset({"identifier"})),
    ),
    server=ServerSpec(
        command="rust-analyzer",
        install_hint="Install rust-analyzer: https://rust-analyzer.github.io/manual.html#installation",
    ),
    language_id="rust",
)

PYTHON_PACK = LanguagePack(
    name="python",
    display_name="Python",
    grammar_package="tree-sitter-python",
    grammar_module="tree_sitter_python",
    file_pattern=r"\.py$",
    extensions=(".py",),
    call_node_kinds=frozenset({"call"}),
    server=ServerSpec(
        command="pylsp",
        install_hint="Install Python LSP Server: pip install python-lsp-server",
    ),
    language_id="python",
)

TYPESCRIPT_PACK = LanguagePack(
    name="typescript",
    display_name="TypeScript",
    grammar_package="tree-sitter-typescript",
    grammar_module="tree_sitter_typescript",
    language_func="language_typescript",
    extension_language_funcs={".tsx": "language_tsx"},
    file_pattern=r"\.(ts|tsx)$",
    extensions=(".ts", ".tsx"),
    call_node_kinds=frozenset({"call_expression", "new_expression"}),
    server=ServerSpec(
        command="typescript-language-server",
        args=("--stdio",),
        install_hint="Install TypeScript Language Server: "
        "npm install -g typescript-language-server typescript",
    ),
    language_id="typescript",
    extension_language_ids={".tsx": "typescriptreact"},
)

GO_PACK = LanguagePack(
    name="go",
    display_name="Go",
    grammar_package="tree-sitter-go",
    grammar_module="tree_sitter_go",
    file_pattern=r"\.go$",
    extensions=(".go",),
    call_node_kinds=frozenset({"call_expression"}),
    declaration_rules=(
        DeclarationRule("function_declaration", frozenset({"identifier", "field_identifier"})),
        DeclarationRule("method_declaration", frozenset({"identifier", "field_identifier"})),
        DeclarationRule("method_elem", frozenset({"field_identifier"})),
    ),
    server=ServerSpec(
        command="gopls",
        install_hint="Install gopls: go install golang.org/x/tools/gopls@latest",
    ),
    language_id="go",
)

SWIFT_PACK = LanguagePack(
    name="swift",
    display_name="Swift",
    grammar_package="tree-sitter-swift",
    grammar_module="tree_sitter_swift",
    file_pattern=r"\.swift$",
    extensions=(".swift",),
    call_node_kinds=frozenset({"call_expression", "function_call_expression"}),
    anchor_rule=AnchorRule(
        call_kinds=frozenset({"call_expression"}),
        member_path=("navigation_expression", "navigation_suffix", "simple_identifier"),
        head_kinds=frozenset({"simple_identifier", "identifier"}),
    ),
    declaration_rules=(DeclarationRule("function_declaration", frozenset({"simple_identifier"})),),
    server=ServerSpec(
        command="sourcekit-lsp",
        install_hint="Install sourcekit-lsp: Install Xcode or Swift toolchain "
        "from https://swift.org/download/",
    ),
    language_id="swift",
)


# =========================================================================
# Canonical registry
# =========================================================================

_ALL_PACKS: tuple[LanguagePack, ...] = (
    RUST_PACK,
    PYTHON_PACK,
    TYPESCRIPT_PACK,
    GO_PACK,
    SWIFT_PACK,
)

# name -> Pack
PACKS: dict[str, LanguagePack] = {pack.name: pack for pack in _ALL_PACKS}

# Extension -> Pack
_EXT_TO_PACK: dict[str, LanguagePack] = {}
for _pack in _ALL_PACKS:
    for _ext in _pack.extensions:
        _EXT_TO_PACK[_ext] = _pack


# =========================================================================
# Public API
# =========================================================================


def supported_languages() -> list[str]:
    return sorted(PACKS)


def get_pack(name: str) -> LanguagePack:
    """Get a LanguagePack by CLI name (case-insensitive).

    Raises:
        ConfigError: If the language is not supported.
    """
    pack = PACKS.get(name.lower())
    if pack is None:
        raise ConfigError.unknown_language(name, supported_languages())
    return pack


def get_pack_for_path(path: Path | str) -> LanguagePack | None:
    """Get the LanguagePack whose extensions cover ``path``."""
    return _EXT_TO_PACK.get(Path(path).suffix.lower())
