"""
Pydantic models for the analyzer's own state and configuration.

The variable-sharing document format lives in ``schema.py``; these
models describe the projects being analyzed and how the analyzer
itself is configured.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from .schema import SEMVER_PATTERN

DEFAULT_FILE_PREFIXES = ["cli-config-", "redis"]
DEFAULT_SPAWN_SIZE = 250.0


class ProjectNode(BaseModel):
    """Graph payload for one project.

    ``id`` doubles as the project key everywhere else in the analyzer.
    """

    id: str
    name: str
    group: str = ""


class GitlabNamespace(BaseModel):
    """The group or user namespace a project lives in."""

    id: Optional[int] = None
    name: str = ""
    full_path: str = ""


class GitlabProject(BaseModel):
    """The subset of a GitLab project record the analyzer needs."""

    id: int
    name: str
    path_with_namespace: Optional[str] = None
    web_url: Optional[str] = None
    default_branch: Optional[str] = None
    namespace: Optional[GitlabNamespace] = None

    @property
    def key(self) -> str:
        """Project key used by the resolver and graph builder."""
        return str(self.id)

    def to_node(self) -> ProjectNode:
        group = self.namespace.full_path if self.namespace else ""
        return ProjectNode(id=self.key, name=self.name, group=group)


class AnalyzerConfig(BaseModel):
    """Persistent analyzer configuration (``~/.configanalyzer/config.yaml``)."""

    gitlab_url: str = "https://gitlab.com"
    group: Optional[str] = None
    ref: str = "main"
    file_prefixes: List[str] = Field(default_factory=lambda: list(DEFAULT_FILE_PREFIXES))
    spawn_size: float = Field(default=DEFAULT_SPAWN_SIZE, gt=0)
    # Versions outside [min, max) are flagged; strict mode also drops the project.
    strict_version: bool = False
    supported_versions: Optional[Tuple[str, str]] = None
    seed: Optional[int] = None

    @field_validator("supported_versions")
    @classmethod
    def validate_supported_versions(
        cls, v: Optional[Tuple[str, str]]
    ) -> Optional[Tuple[str, str]]:
        """Both bounds must be semantic versions."""
        if v is None:
            return v
        for bound in v:
            if not SEMVER_PATTERN.match(bound):
                raise ValueError(f"Invalid semantic version bound: {bound!r}")
        return v
