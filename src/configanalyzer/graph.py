"""
Project dependency graph: who feeds whom.

Turns the project set and the resolver's edge list into a directed
graph and renders it as DOT (for Graphviz), JSON, or a plain text table.

Each node gets an integer handle that stays valid for the life of the
graph, even when other nodes or edges are removed, plus a random
position to seed a downstream layout.

Usage:
    configanalyzer graph --dir ./projects                    # text table
    configanalyzer graph --dir ./projects --format dot | dot -Tpng -o deps.png
    configanalyzer graph --dir ./projects --format json      # machine-readable
"""

from __future__ import annotations

import json
import logging
import random
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import networkx as nx

from .models import DEFAULT_SPAWN_SIZE, ProjectNode

logger = logging.getLogger("configanalyzer.graph")

Position = Tuple[float, float]


class InconsistentSnapshotError(RuntimeError):
    """An edge names a project that is not in the node set.

    The resolver and the node set were built from different snapshots.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Edge references unknown project {key!r}")


def random_location(size: float, rng: random.Random) -> Position:
    """A point drawn uniformly from ``[0, size) x [0, size)``."""
    return (rng.random() * size, rng.random() * size)


class ProjectGraph:
    """Directed project graph with stable node handles.

    Attributes:
        graph: The underlying ``networkx.DiGraph``; nodes are integer
            handles carrying ``project``, ``label`` and ``position``.
        index: Project key -> node handle.
    """

    def __init__(self) -> None:
        self.graph = nx.DiGraph()
        self.index: Dict[str, int] = {}
        self._next_handle = 0

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __contains__(self, key: object) -> bool:
        return key in self.index

    def add_project(self, key: str, node: ProjectNode, position: Position) -> int:
        """Add a project node under ``key`` and return its handle.

        Handles are never reused, so removing a node cannot make an
        existing handle point somewhere else.
        """
        if key in self.index:
            return self.index[key]
        handle = self._next_handle
        self._next_handle += 1
        self.graph.add_node(handle, key=key, project=node, label=node.name, position=position)
        self.index[key] = handle
        return handle

    def handle(self, key: str) -> int:
        """Handle for a project key.

        Raises:
            InconsistentSnapshotError: If the key is unknown.
        """
        try:
            return self.index[key]
        except KeyError:
            raise InconsistentSnapshotError(key) from None

    def add_dependency(self, depends_on: str, depended_by: str) -> None:
        """Add the edge ``depends_on -> depended_by``; duplicates collapse."""
        self.graph.add_edge(self.handle(depends_on), self.handle(depended_by))

    def remove_project(self, key: str) -> None:
        """Remove a project and its edges. Other handles stay valid."""
        handle = self.index.pop(key)
        self.graph.remove_node(handle)

    def remove_dependency(self, depends_on: str, depended_by: str) -> None:
        self.graph.remove_edge(self.handle(depends_on), self.handle(depended_by))

    def project(self, key: str) -> ProjectNode:
        return self.graph.nodes[self.handle(key)]["project"]

    def position(self, key: str) -> Position:
        return self.graph.nodes[self.handle(key)]["position"]

    def projects(self) -> Iterator[Tuple[str, ProjectNode]]:
        """``(key, project)`` pairs in key order."""
        for key in sorted(self.index):
            yield key, self.graph.nodes[self.index[key]]["project"]

    def dependencies(self) -> List[Tuple[str, str]]:
        """All edges as ``(depends_on, depended_by)`` key pairs."""
        return [
            (self.graph.nodes[a]["key"], self.graph.nodes[b]["key"])
            for a, b in self.graph.edges
        ]

    def depends_on(self, key: str) -> List[str]:
        """Keys of the projects ``key`` consumes values from."""
        return sorted(
            self.graph.nodes[h]["key"] for h in self.graph.predecessors(self.handle(key))
        )

    def depended_by(self, key: str) -> List[str]:
        """Keys of the projects consuming values from ``key``."""
        return sorted(
            self.graph.nodes[h]["key"] for h in self.graph.successors(self.handle(key))
        )


def build_graph(
    projects: Mapping[str, ProjectNode],
    edges: Iterable[Tuple[str, str]],
    spawn_size: float = DEFAULT_SPAWN_SIZE,
    rng: Optional[random.Random] = None,
) -> ProjectGraph:
    """Build a fresh dependency graph.

    Args:
        projects: Project key -> node payload. One node per entry.
        edges: ``(depends_on, depended_by)`` pairs from the resolver.
        spawn_size: Side length of the square initial positions are drawn from.
        rng: Random source for positions. Pass a seeded ``random.Random``
            for reproducible layouts.

    Returns:
        The new ProjectGraph.

    Raises:
        InconsistentSnapshotError: If an edge names a key not in ``projects``.
    """
    rng = rng or random.Random()
    graph = ProjectGraph()

    for key in sorted(projects):
        graph.add_project(key, projects[key], random_location(spawn_size, rng))

    for depends_on, depended_by in edges:
        graph.add_dependency(depends_on, depended_by)

    logger.info(
        "Built graph with %d node(s) and %d edge(s)",
        graph.graph.number_of_nodes(), graph.graph.number_of_edges(),
    )
    return graph


# ═══════════════════════════════════════════════════════════════════════════
# Output formatters
# ═══════════════════════════════════════════════════════════════════════════


def _dot_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def format_dot(graph: ProjectGraph) -> str:
    """Format the dependency graph as Graphviz DOT.

    Edges point from the producing project to the consuming one.

    Args:
        graph: The graph to render.

    Returns:
        DOT language string. Pipe to `dot -Tpng` for an image.
    """
    lines = [
        "digraph project_dependencies {",
        "  rankdir=LR;",
        '  node [shape=box, style=rounded, fontname="Helvetica"];',
        '  edge [fontname="Helvetica", fontsize=10];',
        "",
    ]

    for key, node in graph.projects():
        group = f"\\n{_dot_escape(node.group)}" if node.group else ""
        lines.append(f'  "{_dot_escape(key)}" [label="{_dot_escape(node.name)}{group}"];')

    lines.append("")

    for depends_on, depended_by in sorted(graph.dependencies()):
        lines.append(f'  "{_dot_escape(depends_on)}" -> "{_dot_escape(depended_by)}";')

    lines.append("}")
    return "\n".join(lines)


def format_json(graph: ProjectGraph) -> str:
    """Format the dependency graph as JSON.

    Args:
        graph: The graph to render.

    Returns:
        JSON string with nodes, edges and stats.
    """
    nodes = []
    for key, node in graph.projects():
        x, y = graph.position(key)
        nodes.append({
            "id": key,
            "name": node.name,
            "group": node.group,
            "handle": graph.index[key],
            "position": {"x": x, "y": y},
        })
    return json.dumps({
        "nodes": nodes,
        "edges": [
            {"depends_on": a, "depended_by": b}
            for a, b in sorted(graph.dependencies())
        ],
        "stats": {
            "nodes": len(graph),
            "edges": graph.graph.number_of_edges(),
            "by_group": _count_by_group(graph),
        },
    }, indent=2)


def format_table(graph: ProjectGraph) -> str:
    """Format the dependency graph as a text table.

    Args:
        graph: The graph to render.

    Returns:
        Plain text table for any terminal.
    """
    lines = [
        "Project dependencies",
        f"{'=' * 60}",
        "",
        f"Projects ({len(graph)}):",
    ]
    for key, node in graph.projects():
        group = f" [{node.group}]" if node.group else ""
        lines.append(f"  {key:>8s}  {node.name}{group}")

    lines.append("")
    lines.append(f"Dependencies ({graph.graph.number_of_edges()}):")
    for key, node in graph.projects():
        upstream = graph.depends_on(key)
        if upstream:
            names = ", ".join(graph.project(k).name for k in upstream)
            lines.append(f"  {node.name} <- {names}")

    isolated = [
        node.name for key, node in graph.projects()
        if graph.graph.degree(graph.index[key]) == 0
    ]
    if isolated:
        lines.append("")
        lines.append(f"Isolated ({len(isolated)}): {', '.join(isolated)}")

    lines.append("")
    return "\n".join(lines)


def _count_by_group(graph: ProjectGraph) -> Dict[str, int]:
    """Count projects per group."""
    counts: Dict[str, int] = {}
    for _, node in graph.projects():
        counts[node.group] = counts.get(node.group, 0) + 1
    return counts


FORMATTERS = {
    "dot": format_dot,
    "json": format_json,
    "table": format_table,
}
