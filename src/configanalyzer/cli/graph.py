"""Graph commands: graph, deps."""

from __future__ import annotations

import random
import sys
from typing import Optional

import click
from rich.markup import escape

from ._common import console, err_console, load_analyzer, print_diagnostics, print_failures, source_options
from ..loader import find_project


def register_graph_commands(main: click.Group) -> None:
    """Register the dependency graph commands."""

    @main.command("graph")
    @source_options
    @click.option("--format", "fmt", type=click.Choice(["table", "dot", "json"]), default="table")
    @click.option("--seed", type=int, default=None, help="Seed for reproducible node positions.")
    @click.option("--strict-version", is_flag=True, help="Drop projects with unsupported versions.")
    def graph_cmd(home, url, group, token, ref, directory, fmt, seed, strict_version):
        """Resolve cross-project dependencies and print the graph."""
        from ..graph import FORMATTERS

        analyzer = load_analyzer(home, url, group, token, ref, directory)
        if strict_version:
            analyzer.config = analyzer.config.model_copy(update={"strict_version": True})

        seed = seed if seed is not None else analyzer.config.seed
        graph = analyzer.analyze(rng=random.Random(seed))

        click.echo(FORMATTERS[fmt](graph))
        print_diagnostics(analyzer.resolution.diagnostics)
        print_failures(analyzer.report)

    @main.command("deps")
    @source_options
    @click.argument("project")
    def deps_cmd(home, url, group, token, ref, directory, project: str):
        """Show what one project consumes and who consumes from it."""
        analyzer = load_analyzer(home, url, group, token, ref, directory)
        node = find_project(analyzer.report, project)
        if node is None:
            err_console.print(f"[bold red]Unknown project:[/] {project}")
            sys.exit(1)

        graph = analyzer.analyze()

        def names(keys: list[str]) -> Optional[str]:
            return ", ".join(escape(f"{graph.project(k).name} ({k})") for k in keys) or None

        console.print()
        console.print(f"  [bold]{escape(node.name)}[/] [dim]({escape(node.id)})[/]")
        console.print(f"  Depends on:  {names(graph.depends_on(node.id)) or '[dim]nothing[/]'}")
        console.print(f"  Used by:     {names(graph.depended_by(node.id)) or '[dim]nobody[/]'}")
        config = analyzer.report.configs.get(node.id)
        if config is not None:
            console.print(f"\n  [bold]{len(config.tasks)}[/] task(s):")
            for task in config.tasks:
                console.print(f"    {escape(task.describe())}")
        console.print()

        print_diagnostics([
            d for d in analyzer.resolution.diagnostics if node.id in (d.project, d.other)
        ])
