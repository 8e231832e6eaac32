"""
The analysis session.

Holds the current snapshot of projects and their sharing documents and
rebuilds the dependency edges and graph from scratch whenever asked.
Nothing is updated incrementally: each ``analyze`` discards the previous
resolution and graph.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Optional

import yaml

from . import ANALYZER_HOME
from .gitlab import GitlabClient, GitlabGroup
from .graph import ProjectGraph, build_graph
from .loader import LoadReport, load_from_directory, load_from_gitlab
from .models import AnalyzerConfig
from .resolver import Resolution, resolve

logger = logging.getLogger("configanalyzer.analyzer")


def load_config(home: Path) -> AnalyzerConfig:
    """Load analyzer configuration from ``<home>/config.yaml``.

    Returns:
        AnalyzerConfig loaded from disk, or defaults.
    """
    config_file = home / "config.yaml"
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text()) or {}
            return AnalyzerConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load config: %s, using defaults", exc)
    return AnalyzerConfig()


class ConfigAnalyzer:
    """The analysis session.

    Attributes:
        home: Analyzer home directory.
        config: Effective configuration.
        report: Last load result.
        resolution: Last resolver output.
        graph: Last built graph.
    """

    def __init__(self, home: Optional[Path] = None, config: Optional[AnalyzerConfig] = None):
        self.home = (home or Path(ANALYZER_HOME)).expanduser()
        self.config = config or load_config(self.home)
        self.report: LoadReport = LoadReport()
        self.resolution: Optional[Resolution] = None
        self.graph: Optional[ProjectGraph] = None

    def connect(self, url: Optional[str] = None, token: Optional[str] = None) -> GitlabClient:
        """Create a GitLab client for the configured (or given) instance."""
        return GitlabClient(url or self.config.gitlab_url, token=token)

    def load_group(self, client: GitlabClient, group: Optional[str] = None) -> GitlabGroup:
        """Load every project of a GitLab group and its sharing documents."""
        group = group or self.config.group
        if not group:
            raise ValueError("No GitLab group configured")
        gitlab_group = client.get_group(group)
        self.report = load_from_gitlab(
            client,
            gitlab_group.projects,
            ref=self.config.ref,
            prefixes=self.config.file_prefixes,
        )
        return gitlab_group

    def load_directory(self, root: Path) -> LoadReport:
        """Load projects from a local folder tree."""
        self.report = load_from_directory(root, prefixes=self.config.file_prefixes)
        return self.report

    def update_project_dependencies(self) -> Resolution:
        """Re-run the resolver over the current snapshot."""
        self.resolution = resolve(
            dict(self.report.configs),
            strict_version=self.config.strict_version,
            supported=self.config.supported_versions,
        )
        return self.resolution

    def generate_graph(self, rng: Optional[random.Random] = None) -> ProjectGraph:
        """Rebuild the graph from the current nodes and edges."""
        if self.resolution is None:
            self.update_project_dependencies()
        rng = rng or random.Random(self.config.seed)
        self.graph = build_graph(
            dict(self.report.nodes),
            self.resolution.edges,
            spawn_size=self.config.spawn_size,
            rng=rng,
        )
        return self.graph

    def analyze(self, rng: Optional[random.Random] = None) -> ProjectGraph:
        """Resolve dependencies and build the graph in one go."""
        self.update_project_dependencies()
        return self.generate_graph(rng)
