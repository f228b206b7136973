"""Shared fixtures for CLI tests."""

import logging
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
import structlog
import yaml

from callscope.config.loader import REPO_CONFIG_NAME
from callscope.core.logging import clear_run_id
from callscope.lsp.servers import ServerSpec


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path: Path) -> Iterator[None]:
    """No global config from the host, and no log handlers bound to CliRunner streams afterwards."""
    with patch("callscope.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "no-global-config.yaml"):
        yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    clear_run_id()


@pytest.fixture
def write_repo_config() -> Callable[[Path, dict], Path]:
    def write(root: Path, data: dict) -> Path:
        path = root / REPO_CONFIG_NAME
        path.write_text(yaml.safe_dump(data))
        return path

    return write


@pytest.fixture
def fake_rust_project(rust_project: Path, fake_server: Callable[..., ServerSpec], write_repo_config) -> Path:
    """Rust project whose .callscope.yaml points the rust server at the fake server."""
    spec = fake_server()
    write_repo_config(
        rust_project,
        {
            "servers": {"rust": {"command": sys.executable, "args": list(spec.args)}},
            "session": {"request_timeout_sec": 5},
            "retry": {"backoff_ms": [1, 1]},
        },
    )
    return rust_project
