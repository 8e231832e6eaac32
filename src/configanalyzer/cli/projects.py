"""Project listing commands."""

from __future__ import annotations

import click
from rich.markup import escape
from rich.table import Table

from ._common import console, load_analyzer, print_failures, source_options


def register_projects_commands(main: click.Group) -> None:
    """Register the projects command."""

    @main.command("projects")
    @source_options
    def projects_cmd(home, url, group, token, ref, directory):
        """List known projects and the sharing documents found in each."""
        analyzer = load_analyzer(home, url, group, token, ref, directory)
        report = analyzer.report

        if not report.nodes:
            console.print("\n  [dim]No projects found.[/]\n")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("Group")
        table.add_column("Documents", justify="right")
        table.add_column("Tasks", justify="right")

        for key in sorted(report.nodes):
            node = report.nodes[key]
            config = report.configs.get(key)
            tasks = str(len(config.tasks)) if config else "[dim]-[/]"
            documents = str(len(report.files.get(key, [])))
            table.add_row(escape(key), escape(node.name), escape(node.group), documents, tasks)

        console.print(f"\n  [bold]{len(report.nodes)}[/] project(s):\n")
        console.print(table)
        console.print()
        print_failures(report)
