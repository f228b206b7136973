"""Tests for lsp/servers.py module."""

from __future__ import annotations

import sys

from callscope.config.models import ServerOverride
from callscope.lsp.servers import ServerSpec, is_server_available, resolve_server
from callscope.parsing.packs import GO_PACK, RUST_PACK, TYPESCRIPT_PACK


class TestServerSpec:
    def test_argv(self) -> None:
        assert TYPESCRIPT_PACK.server.argv == ["typescript-language-server", "--stdio"]
        assert GO_PACK.server.argv == ["gopls"]


class TestIsServerAvailable:
    def test_existing_executable(self) -> None:
        assert is_server_available(ServerSpec(command=sys.executable))

    def test_missing_binary(self) -> None:
        assert not is_server_available(ServerSpec(command="callscope-no-such-server-binary"))


class TestResolveServer:
    def test_default_without_overrides(self) -> None:
        assert resolve_server(RUST_PACK) is RUST_PACK.server
        assert resolve_server(RUST_PACK, {}) is RUST_PACK.server

    def test_override_keeps_install_hint(self) -> None:
        """Given an override, its command is used and the pack's hint survives."""
        # Given
        overrides = {"rust": ServerOverride(command="/opt/ra/rust-analyzer", args=["--verbose"])}

        # When
        spec = resolve_server(RUST_PACK, overrides)

        # Then
        assert spec.argv == ["/opt/ra/rust-analyzer", "--verbose"]
        assert spec.install_hint == RUST_PACK.server.install_hint

    def test_override_for_other_language_ignored(self) -> None:
        overrides = {"go": ServerOverride(command="/opt/gopls")}
        assert resolve_server(RUST_PACK, overrides) is RUST_PACK.server
