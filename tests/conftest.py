"""Root conftest.py for test configuration.

Ensures the local src/ directory takes priority over any installed copy, and
provides the scriptable fake language server shared by the lsp, resolve and
cli tests.
"""

import sys
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of callscope modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("callscope"):
        del sys.modules[module_name]

from callscope.config.models import CallScopeConfig, RetryConfig, SessionConfig  # noqa: E402
from callscope.lsp.servers import ServerSpec  # noqa: E402
from callscope.resolve.retry import RetryPolicy  # noqa: E402

FAKE_SERVER = Path(__file__).parent / "lsp" / "fake_server.py"

RUST_SOURCE = "fn main() { foo(); bar(1, 2); }\n"


@pytest.fixture
def fake_server() -> Callable[..., ServerSpec]:
    """Factory for a ServerSpec that launches tests/lsp/fake_server.py with flags."""

    def make(*flags: str) -> ServerSpec:
        return ServerSpec(
            command=sys.executable,
            args=(str(FAKE_SERVER), *flags),
            install_hint="fake server ships with the tests",
        )

    return make


@pytest.fixture
def fast_config() -> CallScopeConfig:
    """Short timeouts so misbehaving fake servers fail fast."""
    return CallScopeConfig(
        session=SessionConfig(
            request_timeout_sec=2.0,
            initialize_timeout_sec=5.0,
            shutdown_timeout_sec=2.0,
            terminate_timeout_sec=2.0,
        ),
        retry=RetryConfig(backoff_ms=[50, 250], max_session_restarts=1),
    )


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def no_sleep_policy(recorded_sleeps: list[float]) -> RetryPolicy:
    """Retry policy with the default delays that records sleeps instead of sleeping."""
    return RetryPolicy(backoff_ms=(50, 250), sleep=recorded_sleeps.append)


@pytest.fixture
def rust_project(tmp_path: Path) -> Iterator[Path]:
    """A tiny Rust project with one source file holding two calls."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.rs").write_text(RUST_SOURCE)
    yield root
