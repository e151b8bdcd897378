"""Release candidate resolution.

Maps commit history onto the configured packages and looks up each
package's last released version in the manifest document.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence

from .host import NotFoundError
from .models import Commit, PackageConfig, PackageReleaseData, ReleaserOptions, VersionsMap
from .shell import Checkpoint, CheckpointType, checkpoint

# Fetches the manifest at a ref (None: the tip); returns None if it is absent
ManifestLoader = Callable[[str | None], Awaitable[VersionsMap | None]]


def _owns(package_path: str, file_path: str) -> bool:
    root = package_path.strip("/")
    if root in ("", "."):
        return True
    return file_path == root or file_path.startswith(root + "/")


def split_commits(
    commits: Sequence[Commit], package_paths: Sequence[str]
) -> tuple[dict[str, list[Commit]], list[Commit]]:
    """Attribute commits to packages by the files they touched.

    A commit belongs to every package whose root contains one of its files.

    Returns:
        (package path → commits in input order, commits matching no package)
    """
    per_path: dict[str, list[Commit]] = {path: [] for path in package_paths}
    unmatched: list[Commit] = []
    for commit in commits:
        matched = False
        for path in package_paths:
            if any(_owns(path, f) for f in commit.files):
                per_path[path].append(commit)
                matched = True
        if not matched:
            unmatched.append(commit)
    return per_path, unmatched


class ReleaseCandidateResolver:
    """Builds the per-package release data for one run.

    Args:
        packages: Configured packages.
        load_manifest: Manifest fetcher; called with a sha, or None for the
                       tip of the default branch.
        manifest_file: Manifest file name, for messages.
        default_branch: Default branch name, for messages.
        report: Checkpoint reporter.
    """

    def __init__(
        self,
        packages: Sequence[PackageConfig],
        load_manifest: ManifestLoader,
        *,
        manifest_file: str,
        default_branch: str,
        report: Checkpoint = checkpoint,
    ) -> None:
        self.packages = list(packages)
        self.load_manifest = load_manifest
        self.manifest_file = manifest_file
        self.default_branch = default_branch
        self.report = report

    async def manifest_versions(self, sha: str | None) -> tuple[VersionsMap, str]:
        """Load versions at ``sha``, falling back to the tip.

        The manifest can only be missing at a release sha if it was deleted
        on the release branch right before merging; the tip is all that is
        left to go on then.

        Returns:
            (versions, "tip" or the sha they were read at)
        """
        bootstrap_msg = f"Bootstrapping from {self.manifest_file} at tip of {self.default_branch}"
        if sha is not None:
            versions = await self.load_manifest(sha)
            if versions is not None:
                return versions, sha
        self.report(bootstrap_msg, CheckpointType.FAILURE)
        versions = await self.load_manifest(None)
        if versions is None:
            raise NotFoundError(f"{self.manifest_file} not found at tip of {self.default_branch}")
        return versions, "tip"

    async def get_packages_to_release(
        self, commits: Sequence[Commit], sha: str | None = None
    ) -> list[PackageReleaseData]:
        """Return release data for every package with at least one commit.

        Versions come from the manifest at ``sha``; paths missing there are
        looked up again at the tip. A package missing at both stays with
        ``last_version=None`` (never released).
        """
        versions, at_sha = await self.manifest_versions(sha)
        per_path, unmatched = split_commits(commits, [p.path for p in self.packages])
        if unmatched:
            self.report(
                f"{len(unmatched)} commit(s) did not touch any configured package",
                CheckpointType.SUCCESS,
            )

        to_release: dict[str, PackageReleaseData] = {}
        missing: list[str] = []
        for pkg in self.packages:
            pkg_commits = per_path[pkg.path]
            if not pkg_commits:
                continue
            last_version = versions.get(pkg.path) or None
            if last_version is None:
                self.report(
                    f"Failed to find version for {pkg.path} in {self.manifest_file} "
                    f"at {at_sha} of {self.default_branch}",
                    CheckpointType.FAILURE,
                )
                missing.append(pkg.path)
            else:
                self.report(
                    f"Found version {last_version} for {pkg.path} in {self.manifest_file} "
                    f"at {at_sha} of {self.default_branch}",
                    CheckpointType.SUCCESS,
                )
            to_release[pkg.path] = PackageReleaseData(
                config=pkg,
                commits=pkg_commits,
                last_version=last_version,
                releaser_options=ReleaserOptions.from_config(pkg),
            )

        if missing:
            self.report(
                f"Bootstrapping from {self.manifest_file} at tip of {self.default_branch} "
                f"for missing paths [{', '.join(missing)}]",
                CheckpointType.FAILURE,
            )
            tip_versions = await self.load_manifest(None) or {}
            for path in missing:
                tip_version = tip_versions.get(path) or None
                if tip_version is None:
                    self.report(
                        f"Failed to find version for {path} in {self.manifest_file} "
                        f"at tip of {self.default_branch}",
                        CheckpointType.FAILURE,
                    )
                to_release[path].last_version = tip_version
        return list(to_release.values())
