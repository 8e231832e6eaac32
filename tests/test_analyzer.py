"""Tests for the analysis session."""

from __future__ import annotations

import random
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from configanalyzer.analyzer import ConfigAnalyzer, load_config
from configanalyzer.gitlab import GitlabClient, GitlabGroup
from configanalyzer.models import AnalyzerConfig, GitlabProject
from configanalyzer.resolver import DependencyEdge


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path):
        assert load_config(tmp_path) == AnalyzerConfig()

    def test_reads_yaml(self, tmp_path: Path):
        (tmp_path / "config.yaml").write_text(yaml.dump({
            "gitlab_url": "https://gitlab.example.com",
            "group": "org/platform",
            "ref": "release",
            "supported_versions": ["1.0.0", "2.0.0"],
            "seed": 3,
        }))
        config = load_config(tmp_path)
        assert config.gitlab_url == "https://gitlab.example.com"
        assert config.group == "org/platform"
        assert config.ref == "release"
        assert config.supported_versions == ("1.0.0", "2.0.0")
        assert config.seed == 3

    @pytest.mark.parametrize("text", ["{unclosed", "spawn_size: -1\n", "- a\n- b\n"])
    def test_bad_file_falls_back(self, tmp_path: Path, text: str):
        (tmp_path / "config.yaml").write_text(text)
        assert load_config(tmp_path) == AnalyzerConfig()


class TestConfigAnalyzer:
    def test_analyze_directory(self, tmp_path: Path, projects_dir: Path):
        analyzer = ConfigAnalyzer(home=tmp_path)
        analyzer.load_directory(projects_dir)

        graph = analyzer.analyze(rng=random.Random(0))

        assert analyzer.resolution.edges == [DependencyEdge("20", "10")]
        assert len(graph) == 3
        assert graph.depends_on("10") == ["20"]
        assert graph.depended_by("10") == []

    def test_generate_graph_resolves_first(self, tmp_path: Path, projects_dir: Path):
        analyzer = ConfigAnalyzer(home=tmp_path)
        analyzer.load_directory(projects_dir)
        graph = analyzer.generate_graph()
        assert analyzer.resolution is not None
        assert graph.dependencies() == [("20", "10")]

    def test_seed_from_config(self, tmp_path: Path, projects_dir: Path):
        config = AnalyzerConfig(seed=11)
        first = ConfigAnalyzer(home=tmp_path, config=config)
        first.load_directory(projects_dir)
        second = ConfigAnalyzer(home=tmp_path, config=config)
        second.load_directory(projects_dir)

        assert first.analyze().position("10") == second.analyze().position("10")

    def test_reanalyze_rebuilds(self, tmp_path: Path, projects_dir: Path):
        """Each analyze starts from scratch on the current snapshot."""
        analyzer = ConfigAnalyzer(home=tmp_path)
        analyzer.load_directory(projects_dir)
        analyzer.analyze()

        del analyzer.report.configs["20"]
        graph = analyzer.analyze()

        assert analyzer.resolution.edges == []
        assert graph.dependencies() == []

    def test_strict_version_drops(self, tmp_path: Path, projects_dir: Path):
        config = AnalyzerConfig(strict_version=True, supported_versions=("2.0.0", "3.0.0"))
        analyzer = ConfigAnalyzer(home=tmp_path, config=config)
        analyzer.load_directory(projects_dir)
        graph = analyzer.analyze()

        assert analyzer.resolution.edges == []
        assert analyzer.resolution.has_errors
        # Dropped projects keep their node.
        assert len(graph) == 3

    def test_load_group(self, tmp_path: Path):
        analyzer = ConfigAnalyzer(home=tmp_path, config=AnalyzerConfig(group="org/platform", ref="dev"))
        client = MagicMock(spec=GitlabClient)
        client.get_group.return_value = GitlabGroup(
            id=1, name="platform", projects=[GitlabProject(id=10, name="a")],
        )
        client.list_tree.return_value = []

        analyzer.load_group(client)

        client.get_group.assert_called_once_with("org/platform")
        client.list_tree.assert_called_once_with(10, ref="dev")
        assert set(analyzer.report.nodes) == {"10"}

    def test_load_group_requires_group(self, tmp_path: Path):
        analyzer = ConfigAnalyzer(home=tmp_path, config=AnalyzerConfig())
        with pytest.raises(ValueError):
            analyzer.load_group(MagicMock(spec=GitlabClient))

    def test_connect_uses_config_url(self, tmp_path: Path):
        analyzer = ConfigAnalyzer(
            home=tmp_path, config=AnalyzerConfig(gitlab_url="https://gitlab.example.com/"),
        )
        assert analyzer.connect(token="t").url == "https://gitlab.example.com"
        assert analyzer.connect("https://other.example.com", token="t").url == "https://other.example.com"
