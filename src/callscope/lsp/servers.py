"""Language server launch commands and availability checks."""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from callscope.core.logging import get_logger

if TYPE_CHECKING:
    from callscope.config.models import ServerOverride
    from callscope.parsing.packs import LanguagePack

log = get_logger("lsp.servers")


@dataclass(frozen=True)
class ServerSpec:
    """How to launch one language server over stdio."""

    command: str
    args: tuple[str, ...] = ()
    install_hint: str = ""

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


def is_server_available(spec: ServerSpec) -> bool:
    """True when the server command resolves on PATH (or is an existing path)."""
    return shutil.which(spec.command) is not None


def resolve_server(
    pack: LanguagePack,
    overrides: Mapping[str, ServerOverride] | None = None,
) -> ServerSpec:
    """Return the pack's server, replaced by a configured override if one exists.

    The install hint is kept from the pack so a missing override binary still
    reports something useful.
    """
    override = (overrides or {}).get(pack.name)
    if override is None:
        return pack.server
    log.debug("server_override", language=pack.name, command=override.command)
    return ServerSpec(
        command=override.command,
        args=tuple(override.args),
        install_hint=pack.server.install_hint,
    )
