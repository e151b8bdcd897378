"""Release orchestration for a monorepo driven by a manifest document.

Two flows, each a single run:

``pull_request``
    validate → find the last merged release PR → gather commits since then
    → resolve release candidates → ask each package's releaser for its next
    version and file updates → run plugin stages → open one aggregated
    release PR (including the updated manifest document), labeled pending.

``github_release``
    validate → find the last merged release PR → check its labels → resolve
    the packages it touched → create one tagged release per package → swap
    the pending label for the tagged label once every release exists.
"""

from __future__ import annotations

from typing import Any

from .config import (
    ConfigError,
    ManifestConfig,
    load_json_object,
    parse_config,
    render_manifest,
    versions_map,
)
from .host import (
    DEFAULT_LABELS,
    PENDING_LABEL,
    TAGGED_LABEL,
    CodeHost,
    HostError,
    release_branch,
)
from .models import (
    Commit,
    FileChange,
    GitHubReleaseResult,
    LastRelease,
    ManifestPackageWithPRData,
    PackageReleaseData,
    PullRequestData,
    VersionsMap,
)
from .plugins import build_stages, run_plugins
from .releases import ReleaserFactory, create_releases
from .releasers import make_releaser
from .resolver import ReleaseCandidateResolver
from .shell import Checkpoint, CheckpointType, checkpoint

CONFIG_FILE = "release-manifest-config.json"
MANIFEST_FILE = ".release-manifest.json"

PR_HEADER = ":robot: I have created a release"
PR_FOOTER = "This PR was generated by release-manifest."

ManifestGitHubReleaseResult = dict[str, GitHubReleaseResult | None]


class Manifest:
    """Orchestrates release PRs and releases for every configured package.

    The configuration and the manifest at the tip of the default branch are
    read once per instance and cached; create one instance per run.

    Args:
        host: Remote code host.
        config_file: Path of the configuration document.
        manifest_file: Path of the manifest document.
        report: Checkpoint reporter.
        make: Releaser factory (defaults to the release-type registry).
    """

    def __init__(
        self,
        host: CodeHost,
        *,
        config_file: str = CONFIG_FILE,
        manifest_file: str = MANIFEST_FILE,
        report: Checkpoint = checkpoint,
        make: ReleaserFactory = make_releaser,
    ) -> None:
        self.host = host
        self.config_file = config_file
        self.manifest_file = manifest_file
        self.report = report
        self.make = make
        self._config: ManifestConfig | None = None
        self._head_manifest: dict[str, Any] | None = None

    async def get_config(self) -> ManifestConfig:
        if self._config is None:
            text = await self.host.get_file_contents(self.config_file)
            self._config = parse_config(text, self.config_file)
        return self._config

    async def get_head_manifest(self) -> dict[str, Any]:
        """The manifest document at the tip of the default branch."""
        if self._head_manifest is None:
            text = await self.host.get_file_contents(self.manifest_file)
            self._head_manifest = load_json_object(text, self.manifest_file)
        return self._head_manifest

    async def get_manifest_versions(self, sha: str | None) -> VersionsMap | None:
        """Versions at ``sha`` (None: the tip); None if unreadable at ``sha``."""
        if sha is None:
            return versions_map(await self.get_head_manifest(), self.manifest_file)
        try:
            text = await self.host.get_file_contents(self.manifest_file, sha)
            return versions_map(load_json_object(text, self.manifest_file), self.manifest_file)
        except (HostError, ConfigError) as err:
            self.report(
                f"Failed to get {self.manifest_file} at {sha}: {err}", CheckpointType.FAILURE
            )
            return None

    async def validate(self) -> bool:
        """Check both documents before any remote mutation.

        The configuration must be a JSON object listing at least one package;
        the manifest must be a JSON object with only string values.
        """
        valid_config = False
        try:
            config = await self.get_config()
        except (HostError, ConfigError) as err:
            self.report(self._describe(err, self.config_file), CheckpointType.FAILURE)
        else:
            valid_config = bool(config.packages)
            if not valid_config:
                self.report(f"No packages found: {self.config_file}", CheckpointType.FAILURE)

        valid_manifest = False
        try:
            versions_map(await self.get_head_manifest(), self.manifest_file)
            valid_manifest = True
        except (HostError, ConfigError) as err:
            self.report(self._describe(err, self.manifest_file), CheckpointType.FAILURE)
        return valid_config and valid_manifest

    @staticmethod
    def _describe(err: Exception, file_name: str) -> str:
        if isinstance(err, ConfigError):
            return str(err)
        return f"Unable to load {file_name}: {err}"

    async def resolver(self, default_branch: str) -> ReleaseCandidateResolver:
        config = await self.get_config()
        return ReleaseCandidateResolver(
            config.parsed_packages(),
            self.get_manifest_versions,
            manifest_file=self.manifest_file,
            default_branch=default_branch,
            report=self.report,
        )

    async def commits_since(self, sha: str | None) -> list[Commit]:
        """Commits since the last release, or since bootstrap-sha on a first run."""
        if sha is None:
            sha = (await self.get_config()).bootstrap_sha
        return await self.host.commits_since(sha)

    async def run_releasers(
        self, packages: list[PackageReleaseData], sha: str | None
    ) -> tuple[VersionsMap, list[ManifestPackageWithPRData]]:
        """Ask each package's releaser for its release PR contribution."""
        updates: VersionsMap = {}
        pr_packages: list[ManifestPackageWithPRData] = []
        for pkg in packages:
            releaser = self.make(self.host, pkg.releaser_options)
            name = await releaser.get_package_name()
            display = f"{type(releaser).__name__}({name})"
            self.report(f"Processing package: {display}", CheckpointType.SUCCESS)
            last_release = None
            if pkg.last_version is None:
                self.report(
                    f"Falling back to default version for {display}: "
                    f"{releaser.default_initial_version()}",
                    CheckpointType.FAILURE,
                )
            else:
                last_release = LastRelease(
                    name=f"v{pkg.last_version}",
                    sha=sha or "beginning of time",
                    version=pkg.last_version,
                )
            options = await releaser.get_open_pr_options(pkg.commits, last_release)
            if options is None:
                continue
            updates[pkg.path] = options.version
            pr_packages.append(
                ManifestPackageWithPRData(
                    config=pkg.config,
                    pr_data=PullRequestData(
                        version=options.version,
                        changes={
                            u.path: FileChange(content=u.content, mode=u.mode)
                            for u in options.updates
                        },
                    ),
                    name=name,
                    changelog_entry=options.changelog_entry,
                )
            )
        return updates, pr_packages

    async def build_pr(
        self, versions: VersionsMap, packages: list[ManifestPackageWithPRData]
    ) -> tuple[str, dict[str, FileChange]]:
        """Aggregate every package into one PR body and one change set."""
        body = PR_HEADER
        changes: dict[str, FileChange] = {}
        for pkg in packages:
            body += (
                "\n\n---\n"
                f"{pkg.name or pkg.config.path}: {pkg.pr_data.version}\n"
                f"{pkg.changelog_entry}"
            )
            changes.update(pkg.pr_data.changes)
        changes[self.manifest_file] = FileChange(
            content=render_manifest(await self.get_head_manifest(), versions)
        )
        body += f"\n\n{PR_FOOTER}"
        return body, changes

    async def pull_request(self) -> int | None:
        """Open or update the aggregated release PR.

        Returns:
            The PR number, or None if the run was invalid or had nothing to
            release.
        """
        if not await self.validate():
            return None
        config = await self.get_config()
        default_branch = await self.host.get_default_branch()
        branch = release_branch(default_branch)
        last_merged = await self.host.last_merged_pr_by_head_branch(branch)
        sha = last_merged.sha if last_merged else None

        commits = await self.commits_since(sha)
        resolver = await self.resolver(default_branch)
        packages = await resolver.get_packages_to_release(commits, sha)
        versions, pr_packages = await self.run_releasers(packages, sha)
        if not pr_packages:
            self.report("No user facing changes to release", CheckpointType.SUCCESS)
            return None

        stages = build_stages(config.plugins, self.host, config, self.report)
        versions, pr_packages = await run_plugins(stages, versions, pr_packages)
        body, changes = await self.build_pr(versions, pr_packages)
        number = await self.host.open_pr(
            branch=branch,
            title=f"chore: release {default_branch}",
            body=body,
            changes=changes,
        )
        if number is not None:
            await self.host.add_labels(DEFAULT_LABELS, number)
        return number

    async def github_release(self) -> ManifestGitHubReleaseResult | None:
        """Create releases for the packages touched by the last release PR.

        Returns:
            Package path → release result (None where no release was
            created), or None if there was nothing to do.
        """
        if not await self.validate():
            return None
        default_branch = await self.host.get_default_branch()
        merged = await self.host.last_merged_pr_by_head_branch(release_branch(default_branch))
        if merged is None:
            self.report(
                "Unable to find last merged Manifest PR for tagging", CheckpointType.FAILURE
            )
            return None
        if TAGGED_LABEL in merged.labels:
            self.report(
                "Releases already created for last merged release PR", CheckpointType.SUCCESS
            )
            return None
        if PENDING_LABEL not in merged.labels:
            self.report(
                f'Warning: last merged PR(#{merged.number}) is missing label "{PENDING_LABEL}" '
                f'but has not yet been labeled "{TAGGED_LABEL}". If PR(#{merged.number}) is '
                f'meant to be a release PR, please apply the label "{PENDING_LABEL}".',
                CheckpointType.FAILURE,
            )
            return None

        # The merged PR's files stand in for a single commit, so exactly the
        # packages the release PR touched become candidates.
        resolver = await self.resolver(default_branch)
        packages = await resolver.get_packages_to_release(
            [Commit(sha=merged.sha, message="", files=merged.files)], merged.sha
        )
        releases, all_created = await create_releases(
            self.host, packages, merged, make=self.make, report=self.report
        )
        if all_created:
            await self.host.add_labels([TAGGED_LABEL], merged.number)
            await self.host.remove_labels(DEFAULT_LABELS, merged.number)
        return releases
