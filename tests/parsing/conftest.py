"""Shared fixtures for parsing tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from callscope.parsing.packs import get_pack_for_path
from callscope.parsing.treesitter import ParsedFile, TreeSitterParser


@pytest.fixture(scope="module")
def parser() -> TreeSitterParser:
    return TreeSitterParser()


@pytest.fixture
def parse(parser: TreeSitterParser) -> Callable[[str, str], ParsedFile]:
    """Parse in-memory source, picking the language from the file name."""

    def _parse(name: str, source: str) -> ParsedFile:
        path = Path(name)
        pack = get_pack_for_path(path)
        assert pack is not None, f"no pack for {name}"
        return parser.parse(path, pack, source.encode("utf-8"))

    return _parse
