"""callscope - call sites from tree-sitter, definitions from language servers."""

__version__ = "0.1.0"
