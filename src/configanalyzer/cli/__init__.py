"""
Config Analyzer CLI for inspecting variable-sharing dependencies.

Each command group lives in its own module and is attached to the
main Click group through a register function.

Entry point: configanalyzer.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="configanalyzer")
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug).")
def main(verbose: int):
    """Config Analyzer: who shares variables with whom.

    Load the sharing documents of a GitLab group (or a local folder),
    resolve cross-project dependencies, and print the graph.
    """
    setup_logging(verbose)


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .projects import register_projects_commands
from .graph import register_graph_commands
from .validate import register_validate_commands

register_projects_commands(main)
register_graph_commands(main)
register_validate_commands(main)
