"""Tests for release_manifest.releasers."""

from __future__ import annotations

import asyncio
import datetime
import json

import pytest

from release_manifest.models import Commit, LastRelease, MergedPullRequest, ReleaserOptions
from release_manifest.releasers import (
    BaseReleaser,
    NodeReleaser,
    PythonReleaser,
    SimpleReleaser,
    UnknownReleaseType,
    make_releaser,
    releaser_for,
)

from conftest import FakeHost

COMMITS = [
    Commit(sha="abc1234deadbeef", message="fix: handle empty input\n\nlong body"),
    Commit(sha="def5678cafebabe", message="feat: add flag"),
]


def _options(release_type: str, path: str = "packages/a", **kwargs) -> ReleaserOptions:
    return ReleaserOptions(path=path, release_type=release_type, **kwargs)


def _last(version: str) -> LastRelease:
    return LastRelease(name=f"v{version}", sha="abc", version=version)


def _fixed_date(releaser):
    releaser.today = lambda: datetime.date(2024, 1, 2)
    return releaser


class TestSimpleReleaser:
    def test_patch_bump(self, fake_host: FakeHost) -> None:
        releaser = _fixed_date(SimpleReleaser(fake_host, _options("simple")))
        options = asyncio.run(releaser.get_open_pr_options(COMMITS, _last("1.2.3")))
        assert options is not None
        assert options.version == "1.2.4"
        assert options.changelog_entry == (
            "## 1.2.4 (2024-01-02)\n\n"
            "* fix: handle empty input (abc1234)\n"
            "* feat: add flag (def5678)"
        )
        assert [u.path for u in options.updates] == [
            "packages/a/CHANGELOG.md",
            "packages/a/version.txt",
        ]
        assert options.updates[0].content == f"# Changelog\n\n{options.changelog_entry}\n"
        assert options.updates[1].content == "1.2.4\n"

    def test_changelog_entry_inserted_below_title(self) -> None:
        host = FakeHost(
            {"packages/a/CHANGELOG.md": "# Changelog\n\n## 1.2.3 (2023-12-01)\n\n* old (1111111)\n"}
        )
        releaser = _fixed_date(SimpleReleaser(host, _options("simple")))
        options = asyncio.run(releaser.get_open_pr_options(COMMITS[1:], _last("1.2.3")))
        assert options is not None
        assert options.updates[0].content == (
            "# Changelog\n\n"
            "## 1.2.4 (2024-01-02)\n\n* feat: add flag (def5678)\n\n"
            "## 1.2.3 (2023-12-01)\n\n* old (1111111)\n"
        )

    def test_custom_changelog_path(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple", changelog_path="docs/CHANGES.md"))
        assert releaser.changelog_path == "packages/a/docs/CHANGES.md"

    def test_first_release_uses_default_initial_version(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple"))
        options = asyncio.run(releaser.get_open_pr_options(COMMITS, None))
        assert options is not None
        assert options.version == "1.0.0"

    def test_release_as_wins(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple", release_as="3.0.0"))
        options = asyncio.run(releaser.get_open_pr_options(COMMITS, _last("1.2.3")))
        assert options is not None
        assert options.version == "3.0.0"

    def test_nothing_to_release(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple"))
        assert asyncio.run(releaser.get_open_pr_options([], _last("1.2.3"))) is None

    def test_release_as_already_released(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple", release_as="1.2.3"))
        assert asyncio.run(releaser.get_open_pr_options(COMMITS, _last("1.2.3"))) is None

    def test_package_name_from_path(self, fake_host: FakeHost) -> None:
        assert asyncio.run(SimpleReleaser(fake_host, _options("simple")).get_package_name()) == "a"
        root = SimpleReleaser(fake_host, _options("simple", path="."))
        assert asyncio.run(root.get_package_name()) == "root"


class TestNodeReleaser:
    def test_name_and_version_from_package_json(self, package_json) -> None:
        host = FakeHost(
            {
                "packages/a/package.json": package_json(
                    "@scope/a", "1.1.1", dependencies={"b": "^2.0.0"}, private=True
                )
            }
        )
        releaser = NodeReleaser(host, _options("node"))
        assert asyncio.run(releaser.get_package_name()) == "@scope/a"
        options = asyncio.run(releaser.get_open_pr_options(COMMITS, _last("1.1.1")))
        assert options is not None
        update = options.updates[-1]
        assert update.path == "packages/a/package.json"
        doc = json.loads(update.content)
        assert list(doc) == ["name", "version", "dependencies", "private"]
        assert doc["version"] == "1.1.2"
        assert doc["private"] is True

    def test_configured_name_skips_lookup(self, fake_host: FakeHost) -> None:
        releaser = NodeReleaser(fake_host, _options("node", package_name="explicit"))
        assert asyncio.run(releaser.get_package_name()) == "explicit"


class TestPythonReleaser:
    PYPROJECT = '[project]\nname = "My_Package"\n# pinned by release tooling\nversion = "0.1.0"\n'

    def test_first_release(self, fake_host: FakeHost) -> None:
        assert PythonReleaser(fake_host, _options("python")).default_initial_version() == "0.1.0"

    def test_updates_pyproject_preserving_comments(self) -> None:
        host = FakeHost({"packages/a/pyproject.toml": self.PYPROJECT})
        releaser = PythonReleaser(host, _options("python"))
        assert asyncio.run(releaser.get_package_name()) == "my-package"
        options = asyncio.run(releaser.get_open_pr_options(COMMITS, _last("0.1.0")))
        assert options is not None
        update = options.updates[-1]
        assert update.path == "packages/a/pyproject.toml"
        assert update.content == self.PYPROJECT.replace('"0.1.0"', '"0.1.1"')


class TestReleaseCandidate:
    def test_monorepo_tag_strips_scope(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple", package_name="@scope/a"))
        assert asyncio.run(releaser.tag_name("1.2.3")) == "a-v1.2.3"

    def test_single_repo_tag(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple", monorepo_tags=False))
        assert asyncio.run(releaser.tag_name("1.2.3")) == "v1.2.3"

    def test_build_release_candidate(self) -> None:
        changelog = (
            "# Changelog\n\n"
            "## 1.2.4 (2024-01-02)\n\n* feat: add flag (def5678)\n\n"
            "## 1.2.3 (2023-12-01)\n\n* old (1111111)\n"
        )
        host = FakeHost(files_at={"merge-sha": {"packages/a/CHANGELOG.md": changelog}})
        releaser = SimpleReleaser(host, _options("simple", draft=True))
        candidate = asyncio.run(
            releaser.build_release_candidate(
                "1.2.4", MergedPullRequest(number=22, sha="merge-sha")
            )
        )
        assert candidate.tag_name == "a-v1.2.4"
        assert candidate.name == "a-v1.2.4"
        assert candidate.body == "* feat: add flag (def5678)"
        assert candidate.sha == "merge-sha"
        assert candidate.draft is True

    def test_release_notes_without_changelog(self, fake_host: FakeHost) -> None:
        releaser = SimpleReleaser(fake_host, _options("simple"))
        assert asyncio.run(releaser.release_notes("1.0.0", "sha")) == ""


class TestRegistry:
    def test_builtin_types(self, fake_host: FakeHost) -> None:
        assert releaser_for("node") is NodeReleaser
        assert releaser_for("python") is PythonReleaser
        assert isinstance(make_releaser(fake_host, _options("simple")), SimpleReleaser)

    def test_base_is_abstract(self, fake_host: FakeHost) -> None:
        with pytest.raises(TypeError):
            BaseReleaser(fake_host, _options("simple"))  # type: ignore[abstract]

    def test_unknown_type(self) -> None:
        with pytest.raises(UnknownReleaseType):
            releaser_for("cobol")
        with pytest.raises(KeyError):
            releaser_for("cobol")
