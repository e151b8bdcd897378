"""Tests for release_manifest.cli."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from release_manifest.cli import (
    __version__,
    _manifest,
    _write_output,
    cli,
    cmd_manifest_pr,
    release_outputs,
)
from release_manifest.models import GitHubReleaseResult


def _result(path: str, tag: str, version: str) -> GitHubReleaseResult:
    return GitHubReleaseResult(
        path=path,
        name=tag.split("-v")[0],
        version=version,
        tag_name=tag,
        sha="merge-sha",
        pr=22,
        html_url=f"https://github.com/owner/repo/releases/tag/{tag}",
    )


def _args(tmp_path: Path, **kwargs) -> argparse.Namespace:
    defaults = {
        "repo": "owner/repo",
        "config_file": "release-manifest-config.json",
        "manifest_file": ".release-manifest.json",
        "github_output": str(tmp_path / "output"),
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


class TestReleaseOutputs:
    def test_nothing_released(self) -> None:
        assert release_outputs(None) == {"releases_created": "false", "paths_released": "[]"}
        assert release_outputs({"packages/a": None})["releases_created"] == "false"

    def test_prefixed_per_path(self) -> None:
        outputs = release_outputs(
            {
                "packages/a": _result("packages/a", "a-v1.1.2", "1.1.2"),
                "packages/b": None,
                ".": _result(".", "root-v3.0.0", "3.0.0"),
            }
        )
        assert outputs["releases_created"] == "true"
        assert json.loads(outputs["paths_released"]) == ["packages/a", "."]
        assert outputs["packages/a--tag_name"] == "a-v1.1.2"
        assert outputs["packages/a--version"] == "1.1.2"
        assert outputs["packages/a--release_created"] == "true"
        assert outputs["tag_name"] == "root-v3.0.0"
        assert "packages/b--tag_name" not in outputs


def test_write_output_appends(tmp_path: Path) -> None:
    output = tmp_path / "output"
    output.write_text("earlier=1\n")
    _write_output(str(output), {"pr": "22"})
    assert output.read_text() == "earlier=1\npr=22\n"


def test_write_output_without_path(tmp_path: Path) -> None:
    _write_output(None, {"pr": "22"})
    assert list(tmp_path.iterdir()) == []


@patch("release_manifest.cli._manifest")
def test_manifest_pr_writes_pr_number(mock_manifest: MagicMock, tmp_path: Path) -> None:
    mock_manifest.return_value.pull_request = AsyncMock(return_value=22)
    cmd_manifest_pr(_args(tmp_path))
    assert (tmp_path / "output").read_text() == "pr=22\n"


@patch("release_manifest.cli._manifest")
def test_manifest_pr_no_op(mock_manifest: MagicMock, tmp_path: Path) -> None:
    mock_manifest.return_value.pull_request = AsyncMock(return_value=None)
    cmd_manifest_pr(_args(tmp_path))
    assert (tmp_path / "output").read_text() == "pr=\n"


@patch("release_manifest.cli._manifest")
def test_manifest_release_via_cli(mock_manifest: MagicMock, tmp_path: Path) -> None:
    mock_manifest.return_value.github_release = AsyncMock(
        return_value={"packages/a": _result("packages/a", "a-v1.1.2", "1.1.2")}
    )
    output = tmp_path / "output"
    cli(["manifest-release", "--repo", "owner/repo", "--github-output", str(output)])

    lines = output.read_text().splitlines()
    assert "releases_created=true" in lines
    assert 'paths_released=["packages/a"]' in lines
    assert "packages/a--tag_name=a-v1.1.2" in lines
    args = mock_manifest.call_args.args[0]
    assert args.config_file == "release-manifest-config.json"
    assert args.manifest_file == ".release-manifest.json"


@patch("release_manifest.cli.shutil.which", return_value="/usr/bin/gh")
def test_missing_repo_is_fatal(
    mock_which: MagicMock, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("GITHUB_REPOSITORY", raising=False)
    with pytest.raises(SystemExit) as exc_info:
        _manifest(_args(tmp_path, repo=None))
    assert exc_info.value.code == 1


@patch("release_manifest.cli.shutil.which", return_value=None)
def test_missing_gh_is_fatal(mock_which: MagicMock, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc_info:
        _manifest(_args(tmp_path))
    assert exc_info.value.code == 1


@patch("release_manifest.cli.shutil.which", return_value="/usr/bin/gh")
def test_repo_from_environment(
    mock_which: MagicMock, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GITHUB_REPOSITORY", "owner/from-env")
    manifest = _manifest(_args(tmp_path, repo=None, config_file="custom.json"))
    assert manifest.host.repo == "owner/from-env"
    assert manifest.config_file == "custom.json"


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit):
        cli(["--version"])
    assert __version__ in capsys.readouterr().out
