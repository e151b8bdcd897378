"""Dependency graph utilities.

Builds a graph over workspace package descriptors and provides the traversal
primitives the propagator needs: collecting transitive dependents and a
topological order in which dependencies come before dependents.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Iterator, Mapping

from pydantic import BaseModel, Field

from .descriptor import PackageDescriptor, ResolvedDependency, directory_target, resolve_dependency
from .versions import satisfies


class PackageGraphNode(BaseModel):
    """A workspace package in the graph.

    Attributes:
        location: Path of the package's descriptor file (unique).
        descriptor: The parsed descriptor.
        local_dependencies: Dependency name → resolved spec, for dependencies
                            that resolve to another workspace package.
        local_dependents: Names of workspace packages depending on this one.
    """

    location: str
    descriptor: PackageDescriptor
    local_dependencies: dict[str, ResolvedDependency] = Field(default_factory=dict)
    local_dependents: set[str] = Field(default_factory=set)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def version(self) -> str:
        return self.descriptor.version


class PackageGraph:
    """Directed graph of workspace packages keyed by package name.

    A dependency is local when it names a workspace package and either
    points at that package's directory, or is a registry spec that the
    package's current version satisfies. Every dependency kind is considered
    (runtime, optional, dev and peer).
    """

    def __init__(self, packages: Iterable[tuple[str, PackageDescriptor]]) -> None:
        self.nodes: dict[str, PackageGraphNode] = {}
        for location, descriptor in packages:
            if descriptor.name in self.nodes:
                raise ValueError(
                    f"Duplicate package name {descriptor.name!r} at {location} "
                    f"and {self.nodes[descriptor.name].location}"
                )
            self.nodes[descriptor.name] = PackageGraphNode(
                location=location, descriptor=descriptor
            )

        for node in self.nodes.values():
            for dep_name, spec in node.descriptor.all_dependencies().items():
                target = self.nodes.get(dep_name)
                if target is None or target is node:
                    continue
                resolved = resolve_dependency(dep_name, spec)
                if _is_local(node, target, resolved):
                    node.local_dependencies[dep_name] = resolved
                    target.local_dependents.add(node.name)

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __iter__(self) -> Iterator[PackageGraphNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, name: str) -> PackageGraphNode:
        return self.nodes[name]

    def collect_dependents(self, names: Iterable[str]) -> set[str]:
        """Return the given packages plus all of their transitive dependents.

        Walks "is depended on by" edges breadth-first.
        """
        found = {name for name in names if name in self.nodes}
        queue = sorted(found)
        while queue:
            node = self.nodes[queue.pop(0)]
            for dependent in sorted(node.local_dependents):
                if dependent not in found:
                    found.add(dependent)
                    queue.append(dependent)
        return found


def _is_local(
    dependent: PackageGraphNode, target: PackageGraphNode, resolved: ResolvedDependency
) -> bool:
    if resolved.type == "directory":
        if resolved.spec.startswith("workspace:"):
            return True
        target_dir = posixpath.dirname(target.location) or "."
        return directory_target(dependent.location, resolved) == target_dir
    if resolved.registry:
        return satisfies(target.version, resolved.fetch_spec)
    return False


def topo_sort(deps: Mapping[str, Iterable[str]], *, reject_cycles: bool = True) -> list[str]:
    """Topologically sort packages by their internal dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come before
    dependents. Ready packages are taken alphabetically for deterministic
    output.

    When ``reject_cycles`` is False a cycle does not stop the sort: the
    remaining package with the fewest unprocessed dependencies (then the
    alphabetically first) is taken next and the sort carries on.

    Args:
        deps: Map of package name → names it depends on. Names outside the
              map are ignored.
        reject_cycles: Raise on cycles instead of breaking them.

    Returns:
        List of package names, dependencies first.

    Raises:
        RuntimeError: If a dependency cycle is detected and reject_cycles
                      is True.

    Example:
        If A depends on B, and B depends on C:
        topo_sort({A: [B], B: [C], C: []}) → [C, B, A]
    """
    # Count incoming edges (dependencies) for each package
    in_degree = {n: 0 for n in deps}
    # Track reverse dependencies (who depends on each package)
    reverse_deps: dict[str, list[str]] = {n: [] for n in deps}

    for name, node_deps in deps.items():
        for dep in set(node_deps):
            # Only count dependencies that are within the packages we're sorting
            if dep in deps and dep != name:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []
    done: set[str] = set()

    while len(order) < len(deps):
        if queue:
            node = queue.pop(0)
        else:
            remaining = sorted(n for n in deps if n not in done)
            if reject_cycles:
                raise RuntimeError(f"Dependency cycle detected involving: {set(remaining)}")
            node = min(remaining, key=lambda n: (in_degree[n], n))
        order.append(node)
        done.add(node)
        # Decrement in_degree for all packages that depend on this one
        for dependent in sorted(reverse_deps[node]):
            if dependent in done:
                continue
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    return order
