"""Plugin pipeline over release PR data.

A plugin is a stage: an async function taking the new versions map and the
list of packages with PR data, and returning the same pair. Stages run in
the order the configuration lists them, each consuming the output of the
previous one. A new cross-package consistency rule is one more stage.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

from .config import ManifestConfig
from .descriptor import DEPENDENCY_FIELDS, PackageDescriptor
from .host import CodeHost, NotFoundError
from .models import (
    FileChange,
    ManifestPackageWithPRData,
    PackageConfig,
    PullRequestData,
    VersionsMap,
    package_file,
)
from .propagation import propagate
from .shell import Checkpoint, CheckpointType, checkpoint

PluginState = tuple[VersionsMap, list[ManifestPackageWithPRData]]
Stage = Callable[[VersionsMap, list[ManifestPackageWithPRData]], Awaitable[PluginState]]
StageFactory = Callable[[CodeHost, ManifestConfig, Checkpoint], Stage]

NODE_RELEASE_TYPE = "node"
NODE_DESCRIPTOR = "package.json"


async def run_plugins(
    stages: Sequence[Stage],
    versions: VersionsMap,
    packages: list[ManifestPackageWithPRData],
) -> PluginState:
    """Apply each stage in order to the (versions, packages) pair."""
    for stage in stages:
        versions, packages = await stage(versions, packages)
    return versions, packages


def node_workspace(
    host: CodeHost, config: ManifestConfig, report: Checkpoint = checkpoint
) -> Stage:
    """Build the stage that cascades bumps through node workspace packages.

    Packages already bumped by their releaser are read from their pending
    package.json change; every other node package is read from the default
    branch. Dependents get a patch bump and caret ranges on the new versions.
    """

    async def run(
        versions: VersionsMap, packages: list[ManifestPackageWithPRData]
    ) -> PluginState:
        parsed = [p for p in config.parsed_packages() if p.release_type == NODE_RELEASE_TYPE]
        updated = _updated_descriptors(packages)

        workspace: list[tuple[str, PackageDescriptor]] = []
        for pkg in parsed:
            location = package_file(pkg.path, NODE_DESCRIPTOR)
            if location in updated:
                workspace.append((location, updated[location]))
                continue
            try:
                text = await host.get_file_contents(location)
            except NotFoundError:
                report(f"Skipping {pkg.path}: no {NODE_DESCRIPTOR} found", CheckpointType.FAILURE)
                continue
            workspace.append((location, PackageDescriptor.parse(text)))

        result = propagate(
            updated.keys(),
            workspace,
            log=lambda msg: report(msg, CheckpointType.FAILURE),
        )
        before = dict(workspace)
        _merge(versions, packages, parsed, result.updated, before)
        return versions, packages

    return run


def _updated_descriptors(
    packages: list[ManifestPackageWithPRData],
) -> dict[str, PackageDescriptor]:
    """package.json contents already rewritten by node releasers."""
    updated: dict[str, PackageDescriptor] = {}
    for pkg in packages:
        if pkg.config.release_type != NODE_RELEASE_TYPE:
            continue
        location = package_file(pkg.config.path, NODE_DESCRIPTOR)
        change = pkg.pr_data.changes.get(location)
        if change is not None:
            updated[location] = PackageDescriptor.parse(change.content)
    return updated


def _merge(
    versions: VersionsMap,
    packages: list[ManifestPackageWithPRData],
    parsed: list[PackageConfig],
    rewritten: dict[str, PackageDescriptor],
    before: dict[str, PackageDescriptor],
) -> None:
    """Fold rewritten descriptors back into the PR data, in place."""
    remaining = dict(rewritten)
    for pkg in packages:
        if pkg.config.release_type != NODE_RELEASE_TYPE:
            continue
        location = package_file(pkg.config.path, NODE_DESCRIPTOR)
        descriptor = remaining.pop(location, None)
        if descriptor is None:
            continue
        pkg.pr_data.changes[location] = FileChange(content=descriptor.stringify())
        pkg.pr_data.version = descriptor.version
        versions[pkg.config.path] = descriptor.version

    by_location = {package_file(p.path, NODE_DESCRIPTOR): p for p in parsed}
    for location, descriptor in remaining.items():
        pkg_config = by_location[location]
        packages.append(
            ManifestPackageWithPRData(
                config=pkg_config.model_copy(update={"package_name": descriptor.name}),
                pr_data=PullRequestData(
                    version=descriptor.version,
                    changes={location: FileChange(content=descriptor.stringify())},
                ),
                name=descriptor.name,
                changelog_entry=dependency_notes(before[location], descriptor),
            )
        )
        versions[pkg_config.path] = descriptor.version


def dependency_notes(before: PackageDescriptor, after: PackageDescriptor) -> str:
    """Describe rewritten dependency ranges for the release PR body."""
    lines: list[str] = []
    for attr, key in DEPENDENCY_FIELDS.items():
        old: dict[str, str] = getattr(before, attr)
        new: dict[str, str] = getattr(after, attr)
        for name, spec in new.items():
            if old.get(name) != spec:
                lines.append(f"* {key}: {name} bumped from {old.get(name)} to {spec}")
    if not lines:
        return ""
    return "### Dependencies\n\n" + "\n".join(lines)


PLUGINS: dict[str, StageFactory] = {
    "node-workspace": node_workspace,
}


def build_stages(
    names: Sequence[str],
    host: CodeHost,
    config: ManifestConfig,
    report: Checkpoint = checkpoint,
) -> list[Stage]:
    """Instantiate the configured plugin stages, in order.

    Raises:
        ValueError: For an unknown plugin name.
    """
    stages: list[Stage] = []
    for name in names:
        try:
            factory = PLUGINS[name]
        except KeyError:
            raise ValueError(f"Unknown plugin: {name}") from None
        stages.append(factory(host, config, report))
    return stages
