"""
Cross-project dependency resolution.

Project A depends on project B when a task in A reads values from a
backend that a task in B writes to. Whether two tasks refer to the same
backend is decided per source type:

    AzureKeyvault  ->  target AzureKeyvault with the identical URL
    Redis          ->  target Redis on the same hostname, sharing at
                       least one variable name
    others         ->  never a cross-project dependency

Notable findings that are not dependencies (terraform state read from
another project, GitLab variables used as a source, Redis hosts with
no shared variables) come back as ``Diagnostic`` records alongside the
edges. They never stop resolution.

Usage:
    result = resolve({"10": config_a, "20": config_b})
    for edge in result.edges:
        print(f"{edge.depended_by} depends on {edge.depends_on}")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple

from typing_extensions import assert_never

from .schema import (
    AzureKeyvaultSource,
    AzureKeyvaultTarget,
    EnvFileSource,
    EnvironmentSource,
    GitlabProjectTerraformStateSource,
    GitlabProjectVariablesSource,
    HardCodedSource,
    RedisSource,
    RedisTarget,
    Task,
    TerraformFileSource,
    VariableShareConfig,
    parse_version,
)

logger = logging.getLogger("configanalyzer.resolver")

# Sources that never match a target of another project. Every source
# variant is either listed here or handled in _tasks_match.
NO_RULE_SOURCES = (
    EnvironmentSource,
    TerraformFileSource,
    GitlabProjectTerraformStateSource,
    GitlabProjectVariablesSource,
    EnvFileSource,
    HardCodedSource,
)


class DiagnosticKind(str, Enum):
    """The rule that produced a diagnostic."""

    TERRAFORM_STATE_SAME_PROJECT = "terraform-state-same-project"
    TERRAFORM_STATE_CROSS_PROJECT = "terraform-state-cross-project"
    INVALID_SOURCE_BACKEND = "invalid-source-backend"
    REDIS_NO_SHARED_VARIABLES = "redis-no-shared-variables"
    UNSUPPORTED_VERSION = "unsupported-version"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal finding from the resolver.

    Attributes:
        kind: Rule that fired.
        level: ``logging`` level (INFO, WARNING or ERROR).
        project: Key of the project whose task triggered it.
        message: Human-readable description.
        other: Key of the second project involved, if any.
        details: Rule-specific data (URLs, hostnames, variable names).
    """

    kind: DiagnosticKind
    level: int
    project: str
    message: str
    other: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class DependencyEdge(NamedTuple):
    """``depended_by`` consumes values that ``depends_on`` produces."""

    depends_on: str
    depended_by: str


@dataclass
class Resolution:
    """Edges and diagnostics from one ``resolve`` call."""

    edges: List[DependencyEdge] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def by_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    @property
    def has_errors(self) -> bool:
        return any(d.level >= logging.ERROR for d in self.diagnostics)


def check_version(version: str, supported: Tuple[str, str]) -> bool:
    """Whether ``version`` lies in the half-open range ``[min, max)``.

    Only MAJOR.MINOR.PATCH is compared; pre-release and build suffixes
    are ignored.
    """
    low, high = (parse_version(bound) for bound in supported)
    return low <= parse_version(version) < high


def resolve(
    projects: Mapping[str, VariableShareConfig],
    strict_version: bool = False,
    supported: Optional[Tuple[str, str]] = None,
) -> Resolution:
    """Compute which projects depend on which.

    Every ordered pair of distinct projects ``(p1, p2)`` is checked by
    matching each task of ``p1`` (as consumer, via its source) against
    each task of ``p2`` (as producer, via its target). At most one edge
    ``(p2, p1)`` is emitted per ordered pair; the reverse pair is checked
    on its own, so mutual dependencies yield two edges.

    Args:
        projects: Project key -> parsed configuration. Not modified.
        strict_version: Drop projects whose version is outside ``supported``
            instead of only warning about them.
        supported: Optional ``(min_inclusive, max_exclusive)`` version range.

    Returns:
        Resolution with edges in input iteration order and all diagnostics.
    """
    result = Resolution()

    active = _filter_versions(projects, strict_version, supported, result)

    for key, config in active.items():
        _check_sources(key, config, result)

    for p1_key, config_1 in active.items():
        for p2_key, config_2 in active.items():
            if p1_key == p2_key:
                continue
            found = False
            for task_1 in config_1.tasks:
                for task_2 in config_2.tasks:
                    logger.debug(
                        "Checking %s.%s -> %s.%s",
                        p1_key, task_1.source.type, p2_key, task_2.target.type,
                    )
                    if _tasks_match(p1_key, task_1, p2_key, task_2, result):
                        found = True
            if found:
                result.edges.append(DependencyEdge(depends_on=p2_key, depended_by=p1_key))

    logger.info(
        "Resolved %d project(s): %d edge(s), %d diagnostic(s)",
        len(active), len(result.edges), len(result.diagnostics),
    )
    return result


def _emit(result: Resolution, diagnostic: Diagnostic) -> None:
    result.diagnostics.append(diagnostic)
    logger.log(diagnostic.level, "[%s] %s", diagnostic.kind.value, diagnostic.message)


def _filter_versions(
    projects: Mapping[str, VariableShareConfig],
    strict_version: bool,
    supported: Optional[Tuple[str, str]],
    result: Resolution,
) -> Dict[str, VariableShareConfig]:
    """Apply the supported-version range, if one is configured."""
    if supported is None:
        return dict(projects)

    active: Dict[str, VariableShareConfig] = {}
    for key, config in projects.items():
        if check_version(config.version, supported):
            active[key] = config
            continue
        level = logging.ERROR if strict_version else logging.WARNING
        _emit(result, Diagnostic(
            kind=DiagnosticKind.UNSUPPORTED_VERSION,
            level=level,
            project=key,
            message=(
                f"Project {key} uses version {config.version}, "
                f"supported range is [{supported[0]}, {supported[1]})"
                + (" - skipped" if strict_version else "")
            ),
            details={"version": config.version, "supported": list(supported)},
        ))
        if not strict_version:
            active[key] = config
    return active


def _check_sources(key: str, config: VariableShareConfig, result: Resolution) -> None:
    """Flag source backends that are never cross-project dependencies."""
    for index, task in enumerate(config.tasks):
        source = task.source
        if isinstance(source, GitlabProjectTerraformStateSource):
            if str(source.project_id) == key:
                _emit(result, Diagnostic(
                    kind=DiagnosticKind.TERRAFORM_STATE_SAME_PROJECT,
                    level=logging.INFO,
                    project=key,
                    message=f"GitlabProjectTerraformState usage in same project {key}",
                    details={"task": index, "project_id": source.project_id},
                ))
            else:
                _emit(result, Diagnostic(
                    kind=DiagnosticKind.TERRAFORM_STATE_CROSS_PROJECT,
                    level=logging.ERROR,
                    project=key,
                    other=str(source.project_id),
                    message=(
                        f"GitlabProjectTerraformState of project {source.project_id} "
                        f"read from project {key}"
                    ),
                    details={"task": index, "project_id": source.project_id},
                ))
        elif isinstance(source, GitlabProjectVariablesSource):
            _emit(result, Diagnostic(
                kind=DiagnosticKind.INVALID_SOURCE_BACKEND,
                level=logging.ERROR,
                project=key,
                message=f"GitlabProjectVariables must not be used as a source (project {key})",
                details={"task": index, "project_id": source.project_id},
            ))


def _tasks_match(
    consumer: str,
    task_1: Task,
    producer: str,
    task_2: Task,
    result: Resolution,
) -> bool:
    """Whether ``task_1`` reads from the backend ``task_2`` writes to."""
    source = task_1.source
    target = task_2.target

    if isinstance(source, AzureKeyvaultSource):
        if not isinstance(target, AzureKeyvaultTarget):
            return False
        if source.keyvault_url == target.keyvault_url:
            logger.info(
                "AzureKeyvault match %s: %s -> %s",
                source.keyvault_url, producer, consumer,
            )
            return True
        logger.debug("AzureKeyvault no match %s != %s", source.keyvault_url, target.keyvault_url)
        return False

    if isinstance(source, RedisSource):
        if not isinstance(target, RedisTarget):
            return False
        if source.hostname != target.hostname:
            logger.debug("Different hostnames for redis: %s != %s", source.hostname, target.hostname)
            return False
        source_keys = task_1.source_keys()
        target_keys = task_2.target_keys()
        shared = sorted(set(source_keys) & set(target_keys))
        if shared:
            logger.info(
                "Redis match on %s for %s: %s -> %s",
                source.hostname, ", ".join(shared), producer, consumer,
            )
            return True
        _emit(result, Diagnostic(
            kind=DiagnosticKind.REDIS_NO_SHARED_VARIABLES,
            level=logging.WARNING,
            project=consumer,
            other=producer,
            message=(
                f"Redis host {source.hostname} shared by {consumer} and {producer} "
                f"without common variables: {sorted(source_keys)} != {sorted(set(target_keys))}"
            ),
            details={
                "hostname": source.hostname,
                "source_keys": sorted(source_keys),
                "target_keys": sorted(set(target_keys)),
            },
        ))
        return False

    if isinstance(source, NO_RULE_SOURCES):
        return False

    assert_never(source)
