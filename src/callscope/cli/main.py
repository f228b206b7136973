"""callscope CLI - callscope command."""

import click

from callscope import __version__
from callscope.cli.project import (
    call_hierarchy_command,
    find_references_command,
    goto_definition_command,
    inlay_hints_command,
    symbols_command,
)
from callscope.cli.show_calls import show_calls_command
from callscope.core.logging import configure_logging, set_run_id


@click.group()
@click.version_option(version=__version__, prog_name="callscope")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_json: bool) -> None:
    """callscope - Call sites from syntax, definitions from language servers."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_json"] = log_json
    configure_logging(json_format=log_json, level="DEBUG" if verbose else "WARNING")
    set_run_id()


cli.add_command(show_calls_command, name="show-calls")
cli.add_command(goto_definition_command, name="goto-definition")
cli.add_command(find_references_command, name="find-references")
cli.add_command(symbols_command, name="symbols")
cli.add_command(call_hierarchy_command, name="call-hierarchy")
cli.add_command(inlay_hints_command, name="inlay-hints")


if __name__ == "__main__":
    cli()
