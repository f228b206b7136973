"""Shared fixtures for tests against real language servers.

Every test here is marked ``integration`` and skipped when the language's
server binary is not on PATH.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from pathlib import Path

import pytest

from callscope.config.models import CallScopeConfig, RetryConfig, SessionConfig
from callscope.lsp.servers import is_server_available
from callscope.parsing.packs import LanguagePack


@pytest.fixture
def require_server() -> Callable[..., None]:
    def check(pack: LanguagePack, *tools: str) -> None:
        if not is_server_available(pack.server):
            pytest.skip(f"{pack.server.command} not installed")
        for tool in tools:
            if shutil.which(tool) is None:
                pytest.skip(f"{tool} not installed")

    return check


@pytest.fixture
def patient_config() -> CallScopeConfig:
    """Real servers index on startup; give the first query in each file time."""
    return CallScopeConfig(
        session=SessionConfig(request_timeout_sec=60, initialize_timeout_sec=120),
        retry=RetryConfig(backoff_ms=[500, 2000, 5000, 10000]),
    )


@pytest.fixture
def write_tree(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write ``{relative path: text}`` under a fresh project root and return it."""

    def write(files: dict[str, str]) -> Path:
        root = tmp_path / "demo"
        for rel, text in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text)
        return root

    return write
