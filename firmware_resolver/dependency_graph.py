"""
Dependency Graph - Builds and renders package dependency relationships
"""
import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .exceptions import DependencyGraphError
from .resolver import Resolution

DEPENDENTS = "dependents"       # package -> packages that depend on it
DEPENDENCIES = "dependencies"   # package -> packages it depends on

@dataclass(frozen=True)
class DependencyGraph:
    """Direct adjacency over the packages of one resolution"""
    kind: str
    edges: Dict[str, Tuple[str, ...]]      # Package name -> sorted neighbour names

    def nodes(self) -> List[str]:
        return sorted(self.edges)

    def neighbors(self, name: str) -> Tuple[str, ...]:
        return self.edges.get(name, ())

    def __contains__(self, name: object) -> bool:
        return name in self.edges

    def __len__(self) -> int:
        return len(self.edges)

class DependencyGraphBuilder:
    """Builds dependency graphs from a resolution"""

    def forward(self, resolution: Resolution) -> DependencyGraph:
        """Map each package to the packages that directly depend on it"""
        resolution.require_valid()
        edges: Dict[str, set] = {name: set() for name in resolution.packages}
        for name, rpkg in resolution.packages.items():
            for dep in rpkg.deps:
                if dep in edges:
                    edges[dep].add(name)
        return self._freeze(DEPENDENTS, edges)

    def reverse(self, resolution: Resolution) -> DependencyGraph:
        """Map each package to the packages it directly depends on"""
        resolution.require_valid()
        edges = {
            name: {dep for dep in rpkg.deps if dep in resolution.packages}
            for name, rpkg in resolution.packages.items()
        }
        return self._freeze(DEPENDENCIES, edges)

    @staticmethod
    def _freeze(kind: str, edges: Dict[str, set]) -> DependencyGraph:
        return DependencyGraph(
            kind=kind,
            edges={name: tuple(sorted(edges[name])) for name in sorted(edges)},
        )

def filter_graph(graph: DependencyGraph, names: Iterable[str]) -> Tuple[DependencyGraph, List[str]]:
    """Restrict a graph to the named packages.

    Returns the filtered graph and the requested names that are not part
    of the graph, in request order.
    """
    selected = {}
    missing = []
    for name in names:
        if name in graph.edges:
            selected[name] = graph.edges[name]
        elif name not in missing:
            missing.append(name)

    edges = {name: selected[name] for name in sorted(selected)}
    return DependencyGraph(kind=graph.kind, edges=edges), missing

def render(graph: DependencyGraph) -> str:
    """One line per package: name: [neighbour neighbour ...]"""
    lines = []
    for name in graph.nodes():
        lines.append(f"{name}: [{' '.join(sorted(graph.edges[name]))}]")
    return '\n'.join(lines)

def reachable(graph: DependencyGraph, name: str) -> List[str]:
    """All packages transitively reachable from name (excluding name)"""
    if name not in graph.edges:
        raise DependencyGraphError(f"package '{name}' is not in the graph")

    visited = set()
    stack = [name]
    while stack:
        current = stack.pop()
        for neighbor in graph.edges.get(current, ()):
            if neighbor not in visited:
                visited.add(neighbor)
                stack.append(neighbor)
    visited.discard(name)
    return sorted(visited)

def to_dict(graph: DependencyGraph) -> dict:
    return {
        'kind': graph.kind,
        'edges': {name: list(neighbors) for name, neighbors in graph.edges.items()},
    }

def serialize_to_json(graph: DependencyGraph, output_path: str):
    """Save dependency graph to JSON file"""
    try:
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(to_dict(graph), f, indent=2, sort_keys=True)
            f.write('\n')
    except OSError as e:
        raise DependencyGraphError(f"could not write {output_path}: {e}") from e

def load_from_json(input_path: str) -> DependencyGraph:
    """Load dependency graph from JSON file"""
    try:
        with open(input_path, 'r', encoding='utf-8') as f:
            graph_dict = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DependencyGraphError(f"could not read {input_path}: {e}") from e

    try:
        edges = graph_dict['edges']
        return DependencyGraph(
            kind=graph_dict['kind'],
            edges={name: tuple(sorted(edges[name])) for name in sorted(edges)},
        )
    except (KeyError, TypeError) as e:
        raise DependencyGraphError(f"malformed graph file {input_path}: {e}") from e
