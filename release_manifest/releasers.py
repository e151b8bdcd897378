"""Per-ecosystem releasers.

A releaser knows how one kind of package is versioned: which file carries
the version, how the package is named, what its first version is. The
orchestrator only talks to releasers through the :class:`Releaser`
protocol and looks them up by release type in :data:`RELEASERS`.

The built-in releasers do not analyse commit messages: the next version is
"release-as" when configured, the default initial version for a first
release, and a patch bump otherwise. Changelog entries list commit subjects.
"""

from __future__ import annotations

import datetime
import posixpath
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Protocol

from .descriptor import PackageDescriptor
from .host import CodeHost, NotFoundError
from .models import (
    Commit,
    FileUpdate,
    LastRelease,
    MergedPullRequest,
    OpenPROptions,
    ReleaseCandidate,
    ReleaserOptions,
    package_file,
)
from .toml import dump_pyproject, get_project_name, load_pyproject, set_project_version
from .versions import bump_patch

DEFAULT_CHANGELOG = "CHANGELOG.md"
_CHANGELOG_HEADER = "# Changelog\n"


class UnknownReleaseType(KeyError):
    """No releaser is registered for a release type."""


class Releaser(Protocol):
    options: ReleaserOptions

    def default_initial_version(self) -> str: ...

    async def get_package_name(self) -> str: ...

    async def get_open_pr_options(
        self, commits: Sequence[Commit], last_release: LastRelease | None
    ) -> OpenPROptions | None: ...

    async def build_release_candidate(
        self, version: str, merged_pr: MergedPullRequest
    ) -> ReleaseCandidate: ...


class BaseReleaser(ABC):
    """Shared behaviour: version policy, changelog and release payloads."""

    initial_version = "1.0.0"

    def __init__(self, host: CodeHost, options: ReleaserOptions) -> None:
        self.host = host
        self.options = options
        self.today = datetime.date.today

    def default_initial_version(self) -> str:
        return self.initial_version

    async def get_package_name(self) -> str:
        if self.options.package_name:
            return self.options.package_name
        return posixpath.basename(self.options.path.strip("/")) or "root"

    @abstractmethod
    async def version_updates(self, version: str) -> list[FileUpdate]:
        """File updates that set the package version."""

    def next_version(self, last_release: LastRelease | None) -> str:
        if self.options.release_as:
            return self.options.release_as
        if last_release is None:
            return self.default_initial_version()
        return bump_patch(last_release.version, loose=True)

    @property
    def changelog_path(self) -> str:
        return package_file(self.options.path, self.options.changelog_path or DEFAULT_CHANGELOG)

    def changelog_entry(self, version: str, commits: Sequence[Commit]) -> str:
        lines = [f"## {version} ({self.today().isoformat()})", ""]
        for commit in commits:
            subject = commit.message.splitlines()[0] if commit.message else ""
            lines.append(f"* {subject} ({commit.sha[:7]})")
        return "\n".join(lines)

    async def changelog_update(self, entry: str) -> FileUpdate:
        """Insert the entry below the changelog's title (or start a new one)."""
        try:
            current = await self.host.get_file_contents(self.changelog_path)
        except NotFoundError:
            current = _CHANGELOG_HEADER
        head, _, rest = current.partition("\n")
        if head.startswith("# "):
            rest = rest.lstrip("\n")
            content = f"{head}\n\n{entry}\n\n{rest}"
        else:
            content = f"{_CHANGELOG_HEADER}\n{entry}\n\n{current}"
        return FileUpdate(path=self.changelog_path, content=content.rstrip("\n") + "\n")

    async def get_open_pr_options(
        self, commits: Sequence[Commit], last_release: LastRelease | None
    ) -> OpenPROptions | None:
        """Propose the next release, or None when there is nothing to release."""
        if not commits:
            return None
        version = self.next_version(last_release)
        if last_release is not None and version == last_release.version:
            return None
        entry = self.changelog_entry(version, commits)
        updates = [await self.changelog_update(entry)]
        updates.extend(await self.version_updates(version))
        return OpenPROptions(version=version, changelog_entry=entry, updates=updates)

    async def tag_name(self, version: str) -> str:
        if not self.options.monorepo_tags:
            return f"v{version}"
        # Scoped npm names tag by their bare component
        component = (await self.get_package_name()).split("/")[-1]
        return f"{component}-v{version}"

    async def release_notes(self, version: str, ref: str) -> str:
        """The changelog section for ``version`` at ``ref``, or ""."""
        try:
            changelog = await self.host.get_file_contents(self.changelog_path, ref)
        except NotFoundError:
            return ""
        section: list[str] = []
        for line in changelog.splitlines():
            if line.startswith("## "):
                if section:
                    break
                if version in line.split():
                    section.append(line)
                continue
            if section:
                section.append(line)
        return "\n".join(section[1:]).strip()

    async def build_release_candidate(
        self, version: str, merged_pr: MergedPullRequest
    ) -> ReleaseCandidate:
        tag_name = await self.tag_name(version)
        return ReleaseCandidate(
            tag_name=tag_name,
            name=tag_name,
            body=await self.release_notes(version, merged_pr.sha),
            sha=merged_pr.sha,
            draft=self.options.draft,
        )


class SimpleReleaser(BaseReleaser):
    """Version kept in a plain version.txt file."""

    version_file = "version.txt"

    async def version_updates(self, version: str) -> list[FileUpdate]:
        return [
            FileUpdate(
                path=package_file(self.options.path, self.version_file),
                content=f"{version}\n",
            )
        ]


class NodeReleaser(BaseReleaser):
    """Version and name kept in package.json."""

    descriptor_file = "package.json"

    def __init__(self, host: CodeHost, options: ReleaserOptions) -> None:
        super().__init__(host, options)
        self._descriptor: PackageDescriptor | None = None

    async def descriptor(self) -> PackageDescriptor:
        if self._descriptor is None:
            text = await self.host.get_file_contents(
                package_file(self.options.path, self.descriptor_file)
            )
            self._descriptor = PackageDescriptor.parse(text)
        return self._descriptor

    async def get_package_name(self) -> str:
        if self.options.package_name:
            return self.options.package_name
        return (await self.descriptor()).name

    async def version_updates(self, version: str) -> list[FileUpdate]:
        descriptor = (await self.descriptor()).model_copy(deep=True)
        descriptor.version = version
        return [
            FileUpdate(
                path=package_file(self.options.path, self.descriptor_file),
                content=descriptor.stringify(),
            )
        ]


class PythonReleaser(BaseReleaser):
    """Version and name kept in pyproject.toml."""

    initial_version = "0.1.0"
    pyproject_file = "pyproject.toml"

    async def _pyproject(self) -> str:
        return await self.host.get_file_contents(
            package_file(self.options.path, self.pyproject_file)
        )

    async def get_package_name(self) -> str:
        if self.options.package_name:
            return self.options.package_name
        fallback = await super().get_package_name()
        doc = load_pyproject(await self._pyproject())
        return get_project_name(doc, fallback)

    async def version_updates(self, version: str) -> list[FileUpdate]:
        doc = load_pyproject(await self._pyproject())
        set_project_version(doc, version)
        return [
            FileUpdate(
                path=package_file(self.options.path, self.pyproject_file),
                content=dump_pyproject(doc),
            )
        ]


RELEASERS: dict[str, type[BaseReleaser]] = {
    "simple": SimpleReleaser,
    "node": NodeReleaser,
    "python": PythonReleaser,
}


def releaser_for(release_type: str) -> type[BaseReleaser]:
    """Look up the releaser class for a release type.

    Raises:
        UnknownReleaseType: If no releaser is registered for it.
    """
    try:
        return RELEASERS[release_type]
    except KeyError:
        raise UnknownReleaseType(release_type) from None


def make_releaser(host: CodeHost, options: ReleaserOptions) -> Releaser:
    return releaser_for(options.release_type)(host, options)
