"""Shared utilities for all CLI command modules.

Provides the Rich console instances, logging setup, the options that
select where projects are loaded from, and diagnostic formatting.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import ANALYZER_HOME
from ..analyzer import ConfigAnalyzer
from ..gitlab import GitlabApiError
from ..loader import LoadReport
from ..resolver import Diagnostic

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(verbosity: int) -> None:
    """Configure root logging from the -v count."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(level=level, format=LOG_FORMAT)


def level_style(level: int) -> str:
    """Map a logging level to a Rich-formatted tag.

    Args:
        level: ``logging`` level of a diagnostic.

    Returns:
        str: Rich markup string for the level.
    """
    if level >= logging.ERROR:
        return "[bold red]ERROR[/]"
    if level >= logging.WARNING:
        return "[bold yellow]WARN[/]"
    return "[cyan]INFO[/]"


_SOURCE_OPTIONS = (
    click.option("--home", default=ANALYZER_HOME, type=click.Path(), help="Analyzer home directory."),
    click.option("--url", default=None, help="GitLab URL (overrides config)."),
    click.option("--group", default=None, help="GitLab group id or path (overrides config)."),
    click.option("--token", default=None, envvar="GITLAB_TOKEN", help="GitLab token [$GITLAB_TOKEN]."),
    click.option("--ref", default=None, help="Branch or tag to read documents from."),
    click.option(
        "--dir", "directory", default=None,
        type=click.Path(exists=True, file_okay=False, path_type=Path),
        help="Load projects from a local folder instead of GitLab.",
    ),
)


def source_options(func: Callable) -> Callable:
    """Options choosing a GitLab group or a local folder as the project source."""
    for option in reversed(_SOURCE_OPTIONS):
        func = option(func)
    return func


def load_analyzer(
    home: str,
    url: Optional[str],
    group: Optional[str],
    token: Optional[str],
    ref: Optional[str],
    directory: Optional[Path],
) -> ConfigAnalyzer:
    """Create an analyzer and load projects from the chosen source.

    Exits with status 1 when no source is given or GitLab fails.
    """
    analyzer = ConfigAnalyzer(home=Path(home).expanduser())
    if ref:
        analyzer.config = analyzer.config.model_copy(update={"ref": ref})

    if directory is not None:
        analyzer.load_directory(directory)
        return analyzer

    group = group or analyzer.config.group
    if not group:
        err_console.print("[bold red]No project source.[/] Pass --dir or --group.")
        sys.exit(1)

    client = analyzer.connect(url, token)
    try:
        analyzer.load_group(client, group)
    except GitlabApiError as exc:
        err_console.print(f"[bold red]GitLab error:[/] {exc}")
        sys.exit(1)
    return analyzer


def print_diagnostics(diagnostics: list[Diagnostic]) -> None:
    """Print resolver diagnostics to stderr."""
    if not diagnostics:
        return
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Level", no_wrap=True)
    table.add_column("Rule", style="cyan", no_wrap=True)
    table.add_column("Project", no_wrap=True)
    table.add_column("Message", style="dim")
    for d in diagnostics:
        project = d.project if d.other is None else f"{d.project} / {d.other}"
        table.add_row(level_style(d.level), d.kind.value, escape(project), escape(d.message))
    err_console.print()
    err_console.print(f"  [bold]{len(diagnostics)}[/] diagnostic(s):")
    err_console.print(table)


def print_failures(report: LoadReport) -> None:
    """Print skipped documents to stderr."""
    if not report.failures:
        return
    err_console.print()
    err_console.print(f"  [bold yellow]{len(report.failures)}[/] document(s) skipped:")
    for failure in report.failures:
        path = failure.path or "<tree>"
        err_console.print(
            f"    {escape(failure.project)}: {escape(path)} [dim]{escape(failure.reason)}[/]"
        )
