"""Release creation for a merged release PR.

The code host has no transactional "create N releases" call, so packages are
released one at a time and each failure is contained:

- a created release is reported on the PR,
- a release whose tag already exists was created by an earlier, partial
  run and counts as done,
- any other failure is reported on the PR and marks the batch incomplete.

The caller only marks the PR as released when the batch is complete, so a
later run retries; the already-exists rule makes that retry safe.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from .host import CodeHost, HostError, ReleaseCreateError
from .models import (
    GitHubReleaseResult,
    MergedPullRequest,
    PackageReleaseData,
    ReleaseResponse,
    ReleaserOptions,
)
from .releasers import Releaser, make_releaser
from .shell import Checkpoint, CheckpointType, checkpoint
from .versions import parse_version

ReleaserFactory = Callable[[CodeHost, ReleaserOptions], Releaser]


def release_result(
    pkg: PackageReleaseData,
    name: str,
    version: str,
    release: ReleaseResponse,
    merged_pr: MergedPullRequest,
) -> GitHubReleaseResult:
    result = GitHubReleaseResult(
        path=pkg.path,
        name=name,
        version=version,
        tag_name=release.tag_name,
        sha=merged_pr.sha,
        pr=merged_pr.number,
        html_url=release.html_url,
        upload_url=release.upload_url,
        draft=release.draft,
    )
    try:
        parsed = parse_version(version, loose=True)
    except ValueError:
        return result
    result.major, result.minor, result.patch = parsed.major, parsed.minor, parsed.patch
    return result


async def create_releases(
    host: CodeHost,
    packages: Sequence[PackageReleaseData],
    merged_pr: MergedPullRequest,
    *,
    make: ReleaserFactory = make_releaser,
    report: Checkpoint = checkpoint,
) -> tuple[dict[str, GitHubReleaseResult | None], bool]:
    """Create one release per package, in order.

    Returns:
        (package path → release result or None, whether every package
        ended with its release in place)
    """
    releases: dict[str, GitHubReleaseResult | None] = {}
    all_created = bool(packages)
    for pkg in packages:
        releaser = make(host, pkg.releaser_options)
        name = await releaser.get_package_name()
        display = f"{type(releaser).__name__}({name})"
        version = pkg.last_version
        if not version:
            # The entry was deleted from the manifest on the release branch
            report(f"Unable to find last version for {display}.", CheckpointType.FAILURE)
            releases[pkg.path] = None
            continue

        report(f"Creating release for {display}@{version}", CheckpointType.SUCCESS)
        try:
            candidate = await releaser.build_release_candidate(version, merged_pr)
            release = await host.create_release(candidate)
        except HostError as err:
            if isinstance(err, ReleaseCreateError) and err.is_tag_conflict:
                report(f"Release for {display}@{version} already exists", CheckpointType.SUCCESS)
            else:
                all_created = False
                await host.comment_on_issue(
                    f":robot: Failed to create release for {name} :cloud:", merged_pr.number
                )
                report(
                    f"Failed to create release for {display}@{version}: {err}",
                    CheckpointType.FAILURE,
                )
            releases[pkg.path] = None
            continue

        await host.comment_on_issue(
            f":robot: Release for {name} is at {release.html_url} :sunflower:",
            merged_pr.number,
        )
        releases[pkg.path] = release_result(pkg, name, version, release, merged_pr)
    return releases, all_created
