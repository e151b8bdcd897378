"""CLI entry point for release-manifest."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import shutil
from collections.abc import Sequence
from importlib.metadata import version as pkg_version

from .github import GitHubCliHost
from .manifest import CONFIG_FILE, MANIFEST_FILE, Manifest, ManifestGitHubReleaseResult
from .shell import fatal, step

__version__ = pkg_version("release-manifest")


def _repo(args: argparse.Namespace) -> str:
    repo = args.repo or os.environ.get("GITHUB_REPOSITORY")
    if not repo:
        fatal("No repository given. Pass --repo OWNER/NAME or set GITHUB_REPOSITORY.")
    return repo


def _manifest(args: argparse.Namespace) -> Manifest:
    if shutil.which("gh") is None:
        fatal("gh CLI not found on PATH. Install it from https://cli.github.com/")
    return Manifest(
        GitHubCliHost(_repo(args)),
        config_file=args.config_file,
        manifest_file=args.manifest_file,
    )


def _write_output(path: str | None, outputs: dict[str, str]) -> None:
    """Append key=value lines to a GitHub Actions output file."""
    if not path:
        return
    with open(path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(f"{key}={value}\n")


def release_outputs(releases: ManifestGitHubReleaseResult | None) -> dict[str, str]:
    """Action outputs for a release run.

    Per-package keys are prefixed with ``<path>--``, except for the root
    package (".") whose keys are unprefixed.
    """
    created = {path: r for path, r in (releases or {}).items() if r is not None}
    outputs = {
        "releases_created": "true" if created else "false",
        "paths_released": json.dumps(list(created)),
    }
    for path, release in created.items():
        prefix = "" if path == "." else f"{path}--"
        outputs[f"{prefix}release_created"] = "true"
        outputs[f"{prefix}tag_name"] = release.tag_name
        outputs[f"{prefix}version"] = release.version
        outputs[f"{prefix}sha"] = release.sha
        outputs[f"{prefix}html_url"] = release.html_url
    return outputs


def cmd_manifest_pr(args: argparse.Namespace) -> None:
    """Open or update the aggregated release PR."""
    step("Release PR")
    number = asyncio.run(_manifest(args).pull_request())
    if number is None:
        print("No release PR opened.")
    else:
        print(f"✓ Release PR #{number}")
    _write_output(args.github_output, {"pr": "" if number is None else str(number)})


def cmd_manifest_release(args: argparse.Namespace) -> None:
    """Create releases for the last merged release PR."""
    step("Releases")
    releases = asyncio.run(_manifest(args).github_release())
    outputs = release_outputs(releases)
    if outputs["releases_created"] == "true":
        print(f"✓ Released: {', '.join(json.loads(outputs['paths_released']))}")
    else:
        print("No releases created.")
    _write_output(args.github_output, outputs)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        default=None,
        help="Repository as OWNER/NAME. (default: $GITHUB_REPOSITORY)",
    )
    parser.add_argument(
        "--config-file",
        default=CONFIG_FILE,
        help="Path of the configuration document. (default: %(default)s)",
    )
    parser.add_argument(
        "--manifest-file",
        default=MANIFEST_FILE,
        help="Path of the manifest document. (default: %(default)s)",
    )
    parser.add_argument(
        "--github-output",
        default=os.environ.get("GITHUB_OUTPUT"),
        help="File to append action outputs to. (default: $GITHUB_OUTPUT)",
    )


def cli(argv: Sequence[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="release-manifest",
        description="Manifest-driven release PRs and releases for monorepos.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    pr_parser = subparsers.add_parser(
        "manifest-pr", help="Open or update the aggregated release PR."
    )
    _add_common(pr_parser)
    pr_parser.set_defaults(func=cmd_manifest_pr)

    release_parser = subparsers.add_parser(
        "manifest-release", help="Create releases for the last merged release PR."
    )
    _add_common(release_parser)
    release_parser.set_defaults(func=cmd_manifest_release)

    args = parser.parse_args(argv)
    args.func(args)
