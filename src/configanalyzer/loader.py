"""
Discover and parse the sharing documents of a set of projects.

Two sources are supported:

    GitLab     every project of a group; matching files are found by
               walking the repository tree at a fixed ref
    directory  every immediate sub-directory of a local folder is one
               project (handy for offline analysis and tests)

A file is a sharing document when its name starts with one of the
configured prefixes (``cli-config-``, ``redis``) and ends in ``.json``.
A file that cannot be fetched, decoded or parsed is recorded as a
failure and skipped; the remaining files and projects still load.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import yaml

from .gitlab import GitlabApiError, GitlabClient
from .models import DEFAULT_FILE_PREFIXES, GitlabProject, ProjectNode
from .schema import SchemaError, VariableShareConfig, parse_config_json

logger = logging.getLogger("configanalyzer.loader")

PROJECT_METADATA_FILES = ("project.yaml", "project.yml", "project.json")


@dataclass(frozen=True)
class LoadFailure:
    """A document that was skipped."""

    project: str
    path: str
    reason: str


@dataclass
class LoadReport:
    """Everything a load produced.

    Attributes:
        nodes: Project key -> graph payload, for every project seen.
        configs: Project key -> merged configuration, for projects with
            at least one valid document.
        files: Project key -> paths of the documents that parsed.
        failures: Documents (or whole projects) that were skipped.
    """

    nodes: Dict[str, ProjectNode] = field(default_factory=dict)
    configs: Dict[str, VariableShareConfig] = field(default_factory=dict)
    files: Dict[str, List[str]] = field(default_factory=dict)
    failures: List[LoadFailure] = field(default_factory=list)

    def add_config(self, key: str, path: str, config: VariableShareConfig) -> None:
        """Record a parsed document, appending its tasks to earlier ones."""
        existing = self.configs.get(key)
        if existing is None:
            self.configs[key] = config
        else:
            self.configs[key] = VariableShareConfig(
                version=existing.version,
                tasks=list(existing.tasks) + list(config.tasks),
            )
        self.files.setdefault(key, []).append(path)

    def add_failure(self, key: str, path: str, reason: str) -> None:
        logger.warning("Skipping %s in project %s: %s", path or "<tree>", key, reason)
        self.failures.append(LoadFailure(project=key, path=path, reason=reason))


def is_config_file(name: str, prefixes: Sequence[str] = DEFAULT_FILE_PREFIXES) -> bool:
    """Whether a file name marks a sharing document."""
    base = name.rsplit("/", 1)[-1]
    return base.endswith(".json") and any(base.startswith(p) for p in prefixes)


def load_from_gitlab(
    client: GitlabClient,
    projects: Iterable[GitlabProject],
    ref: str = "main",
    prefixes: Sequence[str] = DEFAULT_FILE_PREFIXES,
) -> LoadReport:
    """Fetch and parse the sharing documents of GitLab projects.

    Args:
        client: Authenticated GitLab client.
        projects: Projects to scan, typically from ``client.get_group``.
        ref: Branch, tag or commit to read.
        prefixes: Accepted file name prefixes.

    Returns:
        LoadReport covering every project.
    """
    report = LoadReport()

    for project in projects:
        key = project.key
        report.nodes[key] = project.to_node()

        try:
            tree = client.list_tree(project.id, ref=ref)
        except GitlabApiError as exc:
            report.add_failure(key, "", f"cannot list tree at {ref}: {exc}")
            continue

        for entry in tree:
            if not entry.is_file or not is_config_file(entry.name, prefixes):
                continue
            logger.info("Json file %s in project %s", entry.path, project.name)
            try:
                text = client.get_file(project.id, entry.path, ref=ref).decoded_content()
                config = parse_config_json(text)
            except (GitlabApiError, ValueError) as exc:
                report.add_failure(key, entry.path, str(exc))
                continue
            report.add_config(key, entry.path, config)

    return report


def _read_metadata(project_dir: Path) -> Dict[str, object]:
    for name in PROJECT_METADATA_FILES:
        meta_file = project_dir / name
        if not meta_file.exists():
            continue
        text = meta_file.read_text(encoding="utf-8")
        data = json.loads(text) if name.endswith(".json") else yaml.safe_load(text)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{name} must contain a mapping")
        return data
    return {}


def load_from_directory(
    root: Path,
    prefixes: Sequence[str] = DEFAULT_FILE_PREFIXES,
) -> LoadReport:
    """Parse sharing documents from a local tree of project folders.

    Layout::

        root/
          10/
            project.yaml          # optional: id, name, group
            cli-config-app.json
          20/
            deploy/redis-cache.json

    Args:
        root: Folder holding one sub-directory per project.
        prefixes: Accepted file name prefixes.

    Returns:
        LoadReport covering every project folder.
    """
    report = LoadReport()
    root = Path(root).expanduser()

    for project_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        try:
            meta = _read_metadata(project_dir)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            report.add_failure(project_dir.name, "", f"bad project metadata: {exc}")
            meta = {}

        key = str(meta.get("id", project_dir.name))
        report.nodes[key] = ProjectNode(
            id=key,
            name=str(meta.get("name", project_dir.name)),
            group=str(meta.get("group", "")),
        )

        for doc in sorted(project_dir.rglob("*.json")):
            if not doc.is_file() or not is_config_file(doc.name, prefixes):
                continue
            rel = doc.relative_to(project_dir).as_posix()
            try:
                config = load_document(doc)
            except (OSError, ValueError) as exc:
                report.add_failure(key, rel, str(exc))
                continue
            report.add_config(key, rel, config)

    logger.info(
        "Loaded %d project(s) from %s, %d with configs, %d failure(s)",
        len(report.nodes), root, len(report.configs), len(report.failures),
    )
    return report


def load_document(path: Path) -> VariableShareConfig:
    """Parse a single local sharing document.

    Raises:
        SchemaError: If the document is not UTF-8 text or is invalid.
        OSError: If it cannot be read.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SchemaError("<document>", f"not UTF-8 text: {exc}") from exc
    return parse_config_json(text)


def find_project(report: LoadReport, name_or_key: str) -> Optional[ProjectNode]:
    """Look up a project by key or by name."""
    if name_or_key in report.nodes:
        return report.nodes[name_or_key]
    for node in report.nodes.values():
        if node.name == name_or_key:
            return node
    return None
