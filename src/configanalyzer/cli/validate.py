"""Document validation command."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.markup import escape

from ._common import console, err_console
from ..loader import load_document
from ..schema import SchemaError


def register_validate_commands(main: click.Group) -> None:
    """Register the validate command."""

    @main.command("validate")
    @click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
    def validate_cmd(files):
        """Check sharing documents against the schema."""
        failed = 0
        for path in files:
            try:
                config = load_document(path)
            except SchemaError as exc:
                failed += 1
                err_console.print(f"  [bold red]INVALID[/] {escape(str(path))}")
                err_console.print(f"    at [cyan]{escape(exc.path)}[/]: {escape(exc.message)}")
                continue
            except OSError as exc:
                failed += 1
                err_console.print(f"  [bold red]INVALID[/] {escape(str(path))}")
                err_console.print(f"    cannot read: {escape(str(exc))}")
                continue

            console.print(
                f"  [bold green]OK[/] {escape(str(path))} "
                f"[dim](version {config.version}, {len(config.tasks)} task(s))[/]"
            )
            for task in config.tasks:
                console.print(f"    {escape(task.describe())}")

        if failed:
            sys.exit(1)
