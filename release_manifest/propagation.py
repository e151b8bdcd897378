"""Workspace version propagation.

When a package gets a new version, every workspace package depending on it
(directly or transitively) needs a patch release whose dependency ranges
point at the new versions. This module computes that cascade:

1. Build the graph over all known packages
2. Collect the directly updated packages and their transitive dependents
3. Assign versions: directly updated packages keep theirs, dependents get a
   patch bump (packages whose version cannot be bumped are dropped)
4. Walk the candidates in dependency order, setting each version and
   rewriting local registry dependencies to ``^<new version>``

Directory references (``file:../pkg``, ``workspace:*``) are never
rewritten: they always resolve to the working copy.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable

from pydantic import BaseModel, Field

from .descriptor import PackageDescriptor
from .graph import PackageGraph, topo_sort
from .versions import bump_patch, caret


class PropagationResult(BaseModel):
    """Outcome of a propagation pass.

    Attributes:
        updated: Descriptor location → rewritten descriptor, in processing
                 order (dependencies first).
        invalid: Names of dependents whose version could not be bumped.
    """

    updated: dict[str, PackageDescriptor] = Field(default_factory=dict)
    invalid: set[str] = Field(default_factory=set)


def propagate(
    updated_locations: Collection[str],
    packages: Iterable[tuple[str, PackageDescriptor]],
    *,
    log: Callable[[str], None] = print,
) -> PropagationResult:
    """Cascade version bumps from updated packages to their dependents.

    Args:
        updated_locations: Descriptor locations whose version was already set
                           by a releaser.
        packages: (location, descriptor) for every workspace package, with
                  already-updated packages carrying their new content.
        log: Reporter for packages that cannot be bumped.

    Returns:
        The rewritten descriptors and the packages that were skipped.
    """
    graph = PackageGraph(packages)
    direct = {node.name for node in graph if node.location in updated_locations}
    candidates = graph.collect_dependents(direct)

    result = PropagationResult()
    versions: dict[str, str] = {}
    for node in graph:
        if node.name not in candidates:
            continue
        if node.name in direct:
            versions[node.name] = node.version
            continue
        try:
            versions[node.name] = bump_patch(node.version)
        except ValueError:
            log(f"Don't know how to patch {node.name}'s version({node.version})")
            result.invalid.add(node.name)

    order = topo_sort(
        {name: graph.get(name).local_dependencies.keys() for name in versions},
        reject_cycles=False,
    )
    for name in order:
        node = graph.get(name)
        descriptor = node.descriptor.model_copy(deep=True)
        descriptor.version = versions[name]
        for dep_name, resolved in node.local_dependencies.items():
            dep_version = versions.get(dep_name)
            if dep_version and resolved.registry:
                descriptor.set_dependency_range(dep_name, caret(dep_version))
        result.updated[node.location] = descriptor
    return result
