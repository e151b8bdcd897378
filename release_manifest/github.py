"""GitHub code host backed by the ``gh`` CLI.

Every call goes through ``gh api``, so authentication is whatever ``gh`` is
logged in with (``GH_TOKEN`` in CI). The blocking subprocess runs in a worker
thread to keep the host's methods awaitable.
"""

from __future__ import annotations

import asyncio
import json
import re
import subprocess
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from .host import HostError, NotFoundError, ReleaseCreateError
from .models import (
    Commit,
    FileChange,
    MergedPullRequest,
    ReleaseCandidate,
    ReleaseResponse,
)
from .shell import gh

_STATUS_RE = re.compile(r"HTTP (\d{3})")
_RAW = "Accept: application/vnd.github.raw+json"
_PAGE_SIZE = 100


def _error(
    method: str,
    endpoint: str,
    result: subprocess.CompletedProcess[str],
    error_cls: type[HostError] = HostError,
) -> HostError:
    """Map a failed ``gh api`` call to a host error.

    gh prints ``gh: <message> (HTTP <status>)`` on stderr and the response
    body on stdout.
    """
    match = _STATUS_RE.search(result.stderr)
    status = int(match.group(1)) if match else None
    errors: list[dict[str, Any]] = []
    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError:
        payload = None
    if isinstance(payload, dict):
        errors = payload.get("errors") or []
    message = f"{method} {endpoint} failed: {result.stderr.strip() or result.returncode}"
    if status == 404:
        return NotFoundError(message, errors)
    return error_cls(message, status=status, errors=errors)


class GitHubCliHost:
    """:class:`~release_manifest.host.CodeHost` over the GitHub REST API.

    Args:
        repo: Repository as ``owner/name``.
    """

    def __init__(self, repo: str) -> None:
        self.repo = repo
        self.owner = repo.split("/")[0]
        self._default_branch: str | None = None

    async def _api(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        extra: Sequence[str] = (),
        error_cls: type[HostError] = HostError,
    ) -> str:
        args = ["api", "-X", method, *extra]
        stdin = None
        if body is not None:
            args.extend(["--input", "-"])
            stdin = json.dumps(body)
        args.append(endpoint)
        result = await asyncio.to_thread(gh, *args, input=stdin)
        if result.returncode != 0:
            raise _error(method, endpoint, result, error_cls)
        return result.stdout

    async def _json(self, endpoint: str, **kwargs: Any) -> Any:
        output = await self._api(endpoint, **kwargs)
        return json.loads(output) if output.strip() else None

    def _repo_path(self, path: str) -> str:
        return f"repos/{self.repo}/{path}"

    async def get_default_branch(self) -> str:
        if self._default_branch is None:
            data = await self._json(f"repos/{self.repo}")
            self._default_branch = data["default_branch"]
        return self._default_branch

    async def get_file_contents(self, path: str, ref: str | None = None) -> str:
        endpoint = self._repo_path(f"contents/{quote(path)}")
        if ref is not None:
            endpoint += f"?ref={quote(ref, safe='')}"
        return await self._api(endpoint, extra=["-H", _RAW])

    async def _commit_files(self, sha: str) -> list[str]:
        data = await self._json(self._repo_path(f"commits/{sha}"))
        return [f["filename"] for f in data.get("files", [])]

    async def commits_since(self, sha: str | None) -> list[Commit]:
        branch = await self.get_default_branch()
        commits: list[Commit] = []
        page = 1
        while True:
            data = await self._json(
                self._repo_path(
                    f"commits?sha={quote(branch, safe='')}&per_page={_PAGE_SIZE}&page={page}"
                )
            )
            for item in data or []:
                if item["sha"] == sha:
                    return commits
                commits.append(
                    Commit(
                        sha=item["sha"],
                        message=item["commit"]["message"],
                        files=await self._commit_files(item["sha"]),
                    )
                )
            if not data or len(data) < _PAGE_SIZE:
                return commits
            page += 1

    async def _pr_files(self, number: int) -> list[str]:
        output = await self._api(
            self._repo_path(f"pulls/{number}/files?per_page={_PAGE_SIZE}"),
            extra=["--paginate", "--jq", ".[].filename"],
        )
        return [line for line in output.splitlines() if line]

    async def last_merged_pr_by_head_branch(self, branch: str) -> MergedPullRequest | None:
        head = quote(f"{self.owner}:{branch}", safe="")
        # the list endpoint cannot sort by merge time, so scan every closed PR
        latest: dict[str, Any] | None = None
        page = 1
        while True:
            pulls = await self._json(
                self._repo_path(
                    f"pulls?state=closed&head={head}&per_page={_PAGE_SIZE}&page={page}"
                )
            )
            for pr in pulls or []:
                if not pr.get("merged_at"):
                    continue
                if latest is None or pr["merged_at"] > latest["merged_at"]:
                    latest = pr
            if not pulls or len(pulls) < _PAGE_SIZE:
                break
            page += 1
        if latest is None:
            return None
        return MergedPullRequest(
            number=latest["number"],
            sha=latest["merge_commit_sha"],
            labels=[label["name"] for label in latest.get("labels", [])],
            files=await self._pr_files(latest["number"]),
        )

    async def _write_branch(self, branch: str, message: str, changes: dict[str, FileChange]) -> None:
        """Point ``branch`` at one commit on top of the default branch."""
        default_branch = await self.get_default_branch()
        base = await self._json(self._repo_path(f"git/ref/heads/{quote(default_branch)}"))
        base_sha = base["object"]["sha"]
        base_commit = await self._json(self._repo_path(f"git/commits/{base_sha}"))
        tree = await self._json(
            self._repo_path("git/trees"),
            method="POST",
            body={
                "base_tree": base_commit["tree"]["sha"],
                "tree": [
                    {"path": path, "mode": change.mode, "type": "blob", "content": change.content}
                    for path, change in changes.items()
                ],
            },
        )
        commit = await self._json(
            self._repo_path("git/commits"),
            method="POST",
            body={"message": message, "tree": tree["sha"], "parents": [base_sha]},
        )
        try:
            await self._api(self._repo_path(f"git/ref/heads/{quote(branch)}"))
        except NotFoundError:
            await self._api(
                self._repo_path("git/refs"),
                method="POST",
                body={"ref": f"refs/heads/{branch}", "sha": commit["sha"]},
            )
            return
        await self._api(
            self._repo_path(f"git/refs/heads/{quote(branch)}"),
            method="PATCH",
            body={"sha": commit["sha"], "force": True},
        )

    async def open_pr(
        self,
        *,
        branch: str,
        title: str,
        body: str,
        changes: dict[str, FileChange],
    ) -> int | None:
        await self._write_branch(branch, title, changes)
        head = quote(f"{self.owner}:{branch}", safe="")
        existing = await self._json(self._repo_path(f"pulls?state=open&head={head}"))
        if existing:
            number = existing[0]["number"]
            await self._api(
                self._repo_path(f"pulls/{number}"),
                method="PATCH",
                body={"title": title, "body": body},
            )
            return number
        created = await self._json(
            self._repo_path("pulls"),
            method="POST",
            body={
                "title": title,
                "body": body,
                "head": branch,
                "base": await self.get_default_branch(),
            },
        )
        return created["number"]

    async def add_labels(self, labels: list[str], number: int) -> None:
        await self._api(
            self._repo_path(f"issues/{number}/labels"),
            method="POST",
            body={"labels": labels},
        )

    async def remove_labels(self, labels: list[str], number: int) -> None:
        for label in labels:
            try:
                await self._api(
                    self._repo_path(f"issues/{number}/labels/{quote(label, safe='')}"),
                    method="DELETE",
                )
            except NotFoundError:
                continue

    async def comment_on_issue(self, body: str, number: int) -> None:
        await self._api(
            self._repo_path(f"issues/{number}/comments"),
            method="POST",
            body={"body": body},
        )

    async def create_release(self, candidate: ReleaseCandidate) -> ReleaseResponse:
        data = await self._json(
            self._repo_path("releases"),
            method="POST",
            body={
                "tag_name": candidate.tag_name,
                "target_commitish": candidate.sha,
                "name": candidate.name,
                "body": candidate.body,
                "draft": candidate.draft,
            },
            error_cls=ReleaseCreateError,
        )
        return ReleaseResponse.model_validate(data)
