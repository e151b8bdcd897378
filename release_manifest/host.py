"""Remote code host interface.

Everything release-manifest needs from the code host is captured by the
:class:`CodeHost` protocol. All calls are coroutines; each is a suspension
point for remote I/O.
"""

from __future__ import annotations

from typing import Any, Protocol

from .models import (
    Commit,
    FileChange,
    MergedPullRequest,
    ReleaseCandidate,
    ReleaseResponse,
)

# Label on a release PR that has been opened but not yet released
PENDING_LABEL = "autorelease: pending"
# Label on a release PR whose releases have all been created
TAGGED_LABEL = "autorelease: tagged"
DEFAULT_LABELS = [PENDING_LABEL]

_BRANCH_PREFIX = "release-manifest--branches--"


def release_branch(default_branch: str) -> str:
    """Head branch of the release PR targeting ``default_branch``."""
    return f"{_BRANCH_PREFIX}{default_branch}"


class HostError(Exception):
    """A code host request failed.

    Attributes:
        status: HTTP status, if known.
        errors: Structured error entries from the response body.
    """

    def __init__(
        self, message: str, status: int | None = None, errors: list[dict[str, Any]] | None = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.errors = errors or []


class NotFoundError(HostError):
    """The requested file, ref or object does not exist."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message, status=404, errors=errors)


class ReleaseCreateError(HostError):
    """Creating a release failed."""

    @property
    def is_tag_conflict(self) -> bool:
        """True if the release's tag already exists (HTTP 422 on tag_name)."""
        if self.status != 422 or not self.errors:
            return False
        first = self.errors[0]
        return first.get("code") == "already_exists" and first.get("field") == "tag_name"


class CodeHost(Protocol):
    async def get_default_branch(self) -> str: ...

    async def get_file_contents(self, path: str, ref: str | None = None) -> str:
        """Return a file's text at ``ref`` (the default branch tip if None).

        Raises:
            NotFoundError: If the file does not exist at that ref.
        """
        ...

    async def commits_since(self, sha: str | None) -> list[Commit]:
        """Commits on the default branch after ``sha``, newest first.

        With ``sha=None`` the whole history is returned.
        """
        ...

    async def last_merged_pr_by_head_branch(self, branch: str) -> MergedPullRequest | None: ...

    async def open_pr(
        self,
        *,
        branch: str,
        title: str,
        body: str,
        changes: dict[str, FileChange],
    ) -> int | None:
        """Open (or update) the PR whose head is ``branch``; return its number."""
        ...

    async def add_labels(self, labels: list[str], number: int) -> None: ...

    async def remove_labels(self, labels: list[str], number: int) -> None: ...

    async def comment_on_issue(self, body: str, number: int) -> None: ...

    async def create_release(self, candidate: ReleaseCandidate) -> ReleaseResponse:
        """Create a tagged release.

        Raises:
            ReleaseCreateError: If the release could not be created.
        """
        ...
