"""Shared fixtures for resolver tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from callscope.config.models import CallScopeConfig
from callscope.lsp.servers import ServerSpec
from callscope.lsp.session import LspSession


class FakeSessions:
    """Session factory that launches the fake server with a flag set per start.

    The n-th start uses ``launches[n]``; once exhausted the last set repeats.
    """

    def __init__(
        self,
        root: Path,
        spec_for: Callable[..., ServerSpec],
        config: CallScopeConfig,
        launches: tuple[tuple[str, ...], ...],
    ) -> None:
        self._root = root
        self._spec_for = spec_for
        self._config = config
        self._launches = launches or ((),)
        self.launched = 0

    def __call__(self) -> LspSession:
        flags = self._launches[min(self.launched, len(self._launches) - 1)]
        self.launched += 1
        return LspSession(self._spec_for(*flags), self._root, language_id="rust", config=self._config.session)


@pytest.fixture
def sessions(rust_project, fake_server, fast_config) -> Callable[..., FakeSessions]:
    def make(*launches: tuple[str, ...]) -> FakeSessions:
        return FakeSessions(rust_project, fake_server, fast_config, launches)

    return make
