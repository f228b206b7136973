"""Project-wide commands: one language server per run over every matching file."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click

from callscope.cli.render import (
    format_call_target,
    format_hierarchy,
    format_inlay_hints,
    format_references,
    format_symbols,
)
from callscope.config import CallScopeConfig, load_config
from callscope.core.errors import BatchAbortedError, ConfigError, LaunchError, ParseError, TransportError
from callscope.core.logging import configure_logging, get_log_file_path, get_logger
from callscope.core.progress import batch_progress, pluralize, status
from callscope.files.discovery import FileSearchConfig, find_language_files
from callscope.parsing.packs import LanguagePack, get_pack, supported_languages
from callscope.resolve import (
    BatchReport,
    CallResolver,
    collect_call_hierarchy,
    collect_document_symbols,
    collect_inlay_hints,
    find_all_references,
)

log = get_logger("cli.project")


@dataclass
class ProjectRun:
    """Validated arguments shared by the project commands."""

    root: Path
    pack: LanguagePack
    config: CallScopeConfig
    files: list[Path]


def project_options[F: Callable[..., Any]](fn: F) -> F:
    fn = click.option(
        "--exclude",
        multiple=True,
        metavar="PATTERN",
        help="Glob of files to skip (e.g. '**/*test*'). Repeatable.",
    )(fn)
    fn = click.option(
        "--include",
        multiple=True,
        metavar="PATTERN",
        help="Glob of files to analyze (e.g. '**/src/**'). Repeatable.",
    )(fn)
    fn = click.option(
        "-l",
        "--language",
        required=True,
        type=click.Choice(supported_languages(), case_sensitive=False),
        help="Programming language to analyze",
    )(fn)
    fn = click.argument(
        "project",
        type=click.Path(exists=True, file_okay=False, readable=True, path_type=Path),
    )(fn)
    return fn


def prepare_run(
    project: Path, language: str, include: Iterable[str], exclude: Iterable[str]
) -> ProjectRun:
    """Resolve the pack, load config and discover files, or fail with a usage error."""
    root = project.resolve()
    pack = get_pack(language)
    try:
        config = load_config(root)
    except ConfigError as e:
        raise click.ClickException(e.message) from e

    flags = click.get_current_context().find_root().obj or {}
    if not flags.get("verbose") and not flags.get("log_json"):
        configure_logging(config=config.logging)
    if log_file := get_log_file_path():
        status(f"Logging to {log_file}")

    try:
        search = FileSearchConfig.from_config(config.discovery, include=include, exclude=exclude)
    except ConfigError as e:
        raise click.BadParameter(e.message, param_hint="--include/--exclude") from e
    for pattern in search.include:
        status(f"Using include pattern: {pattern}")
    for pattern in search.exclude:
        status(f"Using exclude pattern: {pattern}")

    try:
        files = find_language_files(root, pack, search)
    except ConfigError as e:
        raise click.ClickException(e.message) from e

    status(f"Found {pluralize(len(files), f'{pack.display_name} file')} in {root}")
    return ProjectRun(root=root, pack=pack, config=config, files=files)


def run_batch[R: BatchReport[Any]](
    run: ProjectRun, message: str, fn: Callable[[], R], render: Callable[[Any], list[str]], noun: str
) -> R:
    """Run one batch, mapping fatal errors to CLI errors.

    A run abandoned after repeated server failures still prints what it
    collected before exiting non-zero.
    """
    try:
        with batch_progress(message, total=len(run.files)):
            return fn()
    except BatchAbortedError as e:
        print_items(e.report, render)
        print_summary(e.report, noun)
        raise click.ClickException(f"Language server failed: {e.message}") from e
    except LaunchError as e:
        hint = e.details.get("install_hint")
        log.error("server_launch_failed", error=str(e))
        text = e.message if not hint or hint in e.message else f"{e.message}\n{hint}"
        raise click.ClickException(text) from e
    except ParseError as e:
        raise click.ClickException(e.message) from e
    except TransportError as e:
        raise click.ClickException(f"Language server failed: {e.message}") from e


def print_items[T](report: BatchReport[T], render: Callable[[T], list[str]]) -> None:
    for item in report.items:
        for line in render(item):
            click.echo(line)
    for diag in report.diagnostics:
        status(f"Skipped {diag.path}: {diag.reason.value} ({diag.message})", style="warning")


def print_summary(report: BatchReport[Any], noun: str) -> None:
    style = "warning" if report.failed else "success"
    status(
        f"{pluralize(len(report.items), noun)} in {pluralize(report.files_processed, 'file')}, "
        f"{len(report.failed)} failed, {pluralize(len(report.diagnostics), 'file')} skipped "
        f"in {report.elapsed_s:.2f}s",
        style=style,
    )
    if report.discarded_responses:
        status(f"{pluralize(report.discarded_responses, 'stray response')} discarded", style="warning")
    if report.session_restarts:
        status(f"Language server restarted {pluralize(report.session_restarts, 'time')}", style="warning")


@click.command()
@project_options
def goto_definition_command(
    project: Path, language: str, include: tuple[str, ...], exclude: tuple[str, ...]
) -> None:
    """Find every call in PROJECT and its definition."""
    run = prepare_run(project, language, include, exclude)
    click.echo(f"Finding all function calls and their definitions in {run.root}")

    started = time.perf_counter()
    resolver = CallResolver(run.pack, run.root, config=run.config)
    report = run_batch(
        run, "Resolving calls", lambda: resolver.resolve(run.files), format_call_target, "call"
    )
    print_items(report, format_call_target)

    elapsed = time.perf_counter() - started
    rate = report.total_calls / elapsed if elapsed > 0 else 0.0
    click.echo("\n" + "=" * 80)
    click.echo(
        f"Summary: {len(report.resolved)} calls with definitions found out of "
        f"{report.total_calls} total calls in {elapsed:.2f}s, {rate:.2f} ops/sec"
    )
    print_summary(report, "call")


@click.command()
@project_options
def find_references_command(
    project: Path, language: str, include: tuple[str, ...], exclude: tuple[str, ...]
) -> None:
    """Find references to every function, method and constructor in PROJECT."""
    run = prepare_run(project, language, include, exclude)
    report = run_batch(
        run,
        "Collecting references",
        lambda: find_all_references(run.pack, run.root, run.files, config=run.config),
        format_references,
        "symbol",
    )
    print_items(report, format_references)
    print_summary(report, "symbol")


@click.command()
@project_options
def symbols_command(
    project: Path, language: str, include: tuple[str, ...], exclude: tuple[str, ...]
) -> None:
    """List the document symbols of every file in PROJECT."""
    run = prepare_run(project, language, include, exclude)
    report = run_batch(
        run,
        "Collecting document symbols",
        lambda: collect_document_symbols(run.pack, run.root, run.files, config=run.config),
        format_symbols,
        "outline",
    )
    print_items(report, format_symbols)
    print_summary(report, "outline")


@click.command()
@project_options
def call_hierarchy_command(
    project: Path, language: str, include: tuple[str, ...], exclude: tuple[str, ...]
) -> None:
    """Show incoming and outgoing calls of every callable in PROJECT."""
    run = prepare_run(project, language, include, exclude)
    report = run_batch(
        run,
        "Collecting call hierarchy",
        lambda: collect_call_hierarchy(run.pack, run.root, run.files, config=run.config),
        format_hierarchy,
        "callable",
    )
    print_items(report, format_hierarchy)
    print_summary(report, "callable")


@click.command()
@project_options
def inlay_hints_command(
    project: Path, language: str, include: tuple[str, ...], exclude: tuple[str, ...]
) -> None:
    """Show the inlay hints of every file in PROJECT."""
    run = prepare_run(project, language, include, exclude)
    report = run_batch(
        run,
        "Collecting inlay hints",
        lambda: collect_inlay_hints(run.pack, run.root, run.files, config=run.config),
        format_inlay_hints,
        "file",
    )
    print_items(report, format_inlay_hints)
    print_summary(report, "file")
