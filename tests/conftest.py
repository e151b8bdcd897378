"""Shared test fixtures."""

from __future__ import annotations

import json
from typing import Any

import pytest
import tomlkit

from release_manifest.host import HostError, NotFoundError
from release_manifest.models import (
    Commit,
    FileChange,
    MergedPullRequest,
    ReleaseCandidate,
    ReleaseResponse,
)
from release_manifest.shell import CheckpointType


class FakeHost:
    """In-memory code host recording every mutation."""

    def __init__(
        self,
        files: dict[str, str] | None = None,
        *,
        files_at: dict[str, dict[str, str]] | None = None,
        commits: list[Commit] | None = None,
        merged_pr: MergedPullRequest | None = None,
        default_branch: str = "main",
    ) -> None:
        self.files = files or {}
        self.files_at = files_at or {}
        self.commits = commits or []
        self.merged_pr = merged_pr
        self.default_branch = default_branch
        self.pr_number: int | None = 22
        self.release_errors: dict[str, HostError] = {}

        self.commits_since_calls: list[str | None] = []
        self.merged_pr_queries: list[str] = []
        self.opened: list[dict[str, Any]] = []
        self.labels_added: list[tuple[list[str], int]] = []
        self.labels_removed: list[tuple[list[str], int]] = []
        self.comments: list[tuple[str, int]] = []
        self.releases: list[ReleaseCandidate] = []

    async def get_default_branch(self) -> str:
        return self.default_branch

    async def get_file_contents(self, path: str, ref: str | None = None) -> str:
        files = self.files if ref is None else self.files_at.get(ref, {})
        if path not in files:
            raise NotFoundError(f"{path} not found at {ref or 'tip'}")
        return files[path]

    async def commits_since(self, sha: str | None) -> list[Commit]:
        self.commits_since_calls.append(sha)
        return list(self.commits)

    async def last_merged_pr_by_head_branch(self, branch: str) -> MergedPullRequest | None:
        self.merged_pr_queries.append(branch)
        return self.merged_pr

    async def open_pr(
        self,
        *,
        branch: str,
        title: str,
        body: str,
        changes: dict[str, FileChange],
    ) -> int | None:
        self.opened.append({"branch": branch, "title": title, "body": body, "changes": changes})
        return self.pr_number

    async def add_labels(self, labels: list[str], number: int) -> None:
        self.labels_added.append((list(labels), number))

    async def remove_labels(self, labels: list[str], number: int) -> None:
        self.labels_removed.append((list(labels), number))

    async def comment_on_issue(self, body: str, number: int) -> None:
        self.comments.append((body, number))

    async def create_release(self, candidate: ReleaseCandidate) -> ReleaseResponse:
        self.releases.append(candidate)
        error = self.release_errors.get(candidate.tag_name)
        if error is not None:
            raise error
        return ReleaseResponse(
            id=len(self.releases),
            tag_name=candidate.tag_name,
            html_url=f"https://github.com/owner/repo/releases/tag/{candidate.tag_name}",
            upload_url=f"https://uploads.github.com/repos/owner/repo/releases/{len(self.releases)}/assets",
            draft=candidate.draft,
        )


class Recorder:
    """Checkpoint reporter that keeps messages instead of printing them."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, CheckpointType]] = []

    def __call__(self, msg: str, kind: CheckpointType = CheckpointType.SUCCESS) -> None:
        self.calls.append((msg, kind))

    @property
    def messages(self) -> list[str]:
        return [msg for msg, _ in self.calls]

    @property
    def failures(self) -> list[str]:
        return [msg for msg, kind in self.calls if kind is CheckpointType.FAILURE]

    def saw(self, fragment: str) -> bool:
        return any(fragment in msg for msg in self.messages)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def package_json():
    """Build package.json text: package_json("a", "1.0.0", dependencies={...})."""

    def build(name: str, version: str, **fields: Any) -> str:
        doc: dict[str, Any] = {"name": name, "version": version}
        for key, value in fields.items():
            # devDependencies etc. can be passed in snake_case
            head, *rest = key.split("_")
            doc[head + "".join(part.title() for part in rest)] = value
        return json.dumps(doc, indent=2) + "\n"

    return build


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample pyproject document with comments to preserve."""
    content = """\
[project]
name = "my-package"
# bumped by release PRs
version = "2.0.0"
dependencies = ["pydantic>=2.0"]

[tool.uv]
dev-dependencies = ["pytest>=8.0"]
"""
    return tomlkit.parse(content)
