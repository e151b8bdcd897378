"""Data models for release-manifest.

These Pydantic models represent the core data structures passed between the
resolver, the releasers, the plugin pipeline and the release loop.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Package path → version string. This is the manifest document's content.
VersionsMap = dict[str, str]


def package_file(package_path: str, file_name: str) -> str:
    """Repository path of a file inside a package.

    Examples:
        package_file("packages/a", "package.json") → "packages/a/package.json"
        package_file(".", "package.json") → "package.json"
    """
    root = package_path.strip("/")
    if root in ("", "."):
        return file_name
    return f"{root}/{file_name}"


class PackageConfig(BaseModel):
    """Release settings for a single package, resolved against repo defaults.

    Attributes:
        path: Package root relative to the repository root ("." is the root).
        release_type: Releaser registry key (e.g. "node", "python", "simple").
        package_name: Explicit package name; releasers look it up otherwise.
        release_as: Forced next version.
        bump_minor_pre_major: Bump minor instead of major for breaking
                              changes before 1.0.0.
        changelog_sections: Changelog section config handed to the releaser.
        changelog_path: Changelog file relative to the package root.
        release_draft: Create releases as drafts.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    release_type: str = "node"
    package_name: str | None = None
    release_as: str | None = None
    bump_minor_pre_major: bool | None = None
    changelog_sections: list[dict[str, Any]] | None = None
    changelog_path: str | None = None
    release_draft: bool = False


class Commit(BaseModel):
    sha: str
    message: str = ""
    files: list[str] = Field(default_factory=list)


class ReleaserOptions(BaseModel):
    """Options a releaser is constructed with."""

    path: str
    release_type: str
    package_name: str | None = None
    release_as: str | None = None
    bump_minor_pre_major: bool | None = None
    changelog_sections: list[dict[str, Any]] | None = None
    changelog_path: str | None = None
    draft: bool = False
    monorepo_tags: bool = True

    @classmethod
    def from_config(cls, config: PackageConfig) -> ReleaserOptions:
        fields = config.model_dump(exclude={"release_draft"})
        return cls(draft=config.release_draft, **fields)


class PackageReleaseData(BaseModel):
    """A package with the commits attributed to it and its last version.

    Attributes:
        config: The package's release settings.
        commits: Commits that touched a file under the package root.
        last_version: Version from the manifest, or None if the package has
                      never been released (or its entry was deleted).
        releaser_options: Options for the package's releaser.
    """

    config: PackageConfig
    commits: list[Commit] = Field(default_factory=list)
    last_version: str | None = None
    releaser_options: ReleaserOptions

    @property
    def path(self) -> str:
        return self.config.path


class LastRelease(BaseModel):
    """Marker for the previous release handed to a releaser."""

    name: str
    sha: str
    version: str


class FileUpdate(BaseModel):
    path: str
    content: str
    mode: str = "100644"


class OpenPROptions(BaseModel):
    """What a releaser proposes for one package.

    Attributes:
        version: The next version.
        changelog_entry: Changelog text for the release PR body.
        updates: Ordered file-content updates.
    """

    version: str
    changelog_entry: str
    updates: list[FileUpdate] = Field(default_factory=list)


class FileChange(BaseModel):
    content: str
    mode: str = "100644"


class PullRequestData(BaseModel):
    """Pending release PR data for one package.

    Attributes:
        version: Target version.
        changes: Map of file path → new content and mode.
    """

    version: str
    changes: dict[str, FileChange] = Field(default_factory=dict)


class ManifestPackageWithPRData(BaseModel):
    """The unit exchanged between the orchestrator and plugin stages.

    Attributes:
        config: The package's release settings.
        pr_data: Target version and file changes.
        name: Display name used in the release PR body.
        changelog_entry: Release notes for the release PR body.
    """

    config: PackageConfig
    pr_data: PullRequestData
    name: str | None = None
    changelog_entry: str = ""


class MergedPullRequest(BaseModel):
    """A merged pull request as seen by the release flow.

    Attributes:
        number: Pull request number.
        sha: Merge commit sha.
        labels: Label names on the pull request.
        files: Paths changed by the pull request.
    """

    number: int
    sha: str
    labels: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)


class ReleaseCandidate(BaseModel):
    """Payload for creating one tagged release."""

    tag_name: str
    name: str
    body: str
    sha: str
    draft: bool = False


class ReleaseResponse(BaseModel):
    id: int | None = None
    tag_name: str
    html_url: str
    upload_url: str | None = None
    draft: bool = False


class GitHubReleaseResult(BaseModel):
    """Outcome of one created release, reported by the release flow."""

    path: str
    name: str
    version: str
    major: int | None = None
    minor: int | None = None
    patch: int | None = None
    tag_name: str
    sha: str
    pr: int
    html_url: str
    upload_url: str | None = None
    draft: bool = False
