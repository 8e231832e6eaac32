"""Tests for analyzer configuration and project models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from configanalyzer.models import (
    DEFAULT_FILE_PREFIXES,
    AnalyzerConfig,
    GitlabNamespace,
    GitlabProject,
)


class TestAnalyzerConfig:
    def test_defaults(self):
        config = AnalyzerConfig()
        assert config.gitlab_url == "https://gitlab.com"
        assert config.ref == "main"
        assert config.file_prefixes == DEFAULT_FILE_PREFIXES
        assert config.spawn_size == 250.0
        assert config.strict_version is False
        assert config.supported_versions is None

    def test_prefix_default_not_shared(self):
        first = AnalyzerConfig()
        first.file_prefixes.append("extra-")
        assert AnalyzerConfig().file_prefixes == DEFAULT_FILE_PREFIXES

    def test_supported_versions(self):
        config = AnalyzerConfig(supported_versions=["1.0.0", "2.0.0"])
        assert config.supported_versions == ("1.0.0", "2.0.0")

    def test_bad_version_bound(self):
        with pytest.raises(ValidationError):
            AnalyzerConfig(supported_versions=("1.0", "2.0.0"))

    def test_spawn_size_positive(self):
        with pytest.raises(ValidationError):
            AnalyzerConfig(spawn_size=0)


class TestGitlabProject:
    def test_to_node(self):
        project = GitlabProject(
            id=42,
            name="billing",
            namespace=GitlabNamespace(id=1, name="platform", full_path="org/platform"),
        )
        node = project.to_node()
        assert project.key == "42"
        assert node.id == "42"
        assert node.name == "billing"
        assert node.group == "org/platform"

    def test_to_node_without_namespace(self):
        assert GitlabProject(id=1, name="x").to_node().group == ""

    def test_ignores_extra_api_fields(self):
        project = GitlabProject.model_validate({
            "id": 5, "name": "svc", "star_count": 3, "topics": ["a"],
        })
        assert project.key == "5"
