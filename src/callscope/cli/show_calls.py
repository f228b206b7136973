"""callscope show-calls command - print every call site of one file."""

from __future__ import annotations

from pathlib import Path

import click

from callscope.cli.render import format_call_site
from callscope.core.errors import ParseError
from callscope.parsing.packs import get_pack_for_path, supported_languages
from callscope.parsing.treesitter import TreeSitterParser
from callscope.parsing.walker import iter_calls


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def show_calls_command(file: Path) -> None:
    """Show the call sites of FILE and the anchor each would be resolved at.

    No language server is started; the language is picked from the file
    extension.
    """
    pack = get_pack_for_path(file)
    if pack is None:
        raise click.BadParameter(
            f"no language handles '{file.suffix or file.name}' "
            f"(supported: {', '.join(supported_languages())})",
            param_hint="FILE",
        )

    try:
        parsed = TreeSitterParser().parse(file, pack)
    except ParseError as e:
        raise click.ClickException(e.message) from e

    click.echo(f"Detected language: {pack.display_name}")
    click.echo(f"File: {file}\n")

    calls = list(iter_calls(parsed))
    click.echo(f"Found {len(calls)} call(s):\n")

    source_lines = parsed.source.splitlines()
    for index, site in enumerate(calls, start=1):
        for line in format_call_site(site, source_lines, index):
            click.echo(line)
        click.echo()
