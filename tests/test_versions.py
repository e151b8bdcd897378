"""Tests for release_manifest.versions."""

from __future__ import annotations

import pytest

from release_manifest.versions import (
    bump_patch,
    caret,
    is_valid,
    is_valid_range,
    parse_version,
    satisfies,
)


class TestParseVersion:
    def test_full_semver(self) -> None:
        v = parse_version("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)

    def test_prerelease(self) -> None:
        v = parse_version("1.2.0-alpha.0")
        assert v.prerelease == "alpha.0"

    def test_partial_is_strict_by_default(self) -> None:
        with pytest.raises(ValueError):
            parse_version("1.2")

    def test_loose_two_part_version(self) -> None:
        v = parse_version("1.2", loose=True)
        assert (v.major, v.minor, v.patch) == (1, 2, 0)

    def test_loose_single_part_version(self) -> None:
        v = parse_version("5", loose=True)
        assert (v.major, v.minor, v.patch) == (5, 0, 0)

    def test_is_valid(self) -> None:
        assert is_valid("0.0.0")
        assert not is_valid("not-a-version")
        assert not is_valid("1.2")


class TestBumpPatch:
    def test_bump_full_version(self) -> None:
        assert bump_patch("1.2.3") == "1.2.4"

    def test_bump_zero(self) -> None:
        assert bump_patch("0.0.0") == "0.0.1"

    def test_bump_high_patch(self) -> None:
        assert bump_patch("1.0.99") == "1.0.100"

    def test_prerelease_is_promoted(self) -> None:
        assert bump_patch("1.2.0-alpha.0") == "1.2.0"

    def test_loose_two_part(self) -> None:
        assert bump_patch("1.2", loose=True) == "1.2.1"

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            bump_patch("not-a-version")


def test_caret() -> None:
    assert caret("1.2.3") == "^1.2.3"


class TestSatisfies:
    @pytest.mark.parametrize(
        ("version", "range_str"),
        [
            ("1.1.2", "^1.1.1"),
            ("1.9.0", "^1.1.1"),
            ("0.2.5", "^0.2.3"),
            ("0.0.3", "^0.0.3"),
            ("1.2.9", "~1.2.3"),
            ("1.5.0", ">=1.0.0 <2.0.0"),
            ("3.1.0", "1.x || 3.x"),
            ("1.2.3", "1.2.3"),
            ("1.2.3", "=1.2.3"),
            ("1.5.0", "*"),
            ("1.5.0", ""),
            ("2.3.9", "1.0.0 - 2.3"),
            ("1.2.0-alpha.1", "^1.2.0-alpha.0"),
            ("1.1.2", "^1.1.2-alpha.0"),
        ],
    )
    def test_matches(self, version: str, range_str: str) -> None:
        assert satisfies(version, range_str)

    @pytest.mark.parametrize(
        ("version", "range_str"),
        [
            ("2.0.0", "^1.1.1"),
            ("1.1.0", "^1.1.1"),
            ("0.3.0", "^0.2.3"),
            ("0.0.4", "^0.0.3"),
            ("1.3.0", "~1.2.3"),
            ("2.0.0", ">=1.0.0 <2.0.0"),
            ("2.0.0", "1.x || 3.x"),
            ("2.4.0", "1.0.0 - 2.3"),
            ("1.2.0-alpha.0", "^1.1.1"),
            ("1.2.0-alpha.0", ">=1.0.0"),
        ],
    )
    def test_does_not_match(self, version: str, range_str: str) -> None:
        assert not satisfies(version, range_str)

    def test_invalid_version(self) -> None:
        assert not satisfies("not-a-version", "^1.0.0")

    def test_tag_is_not_a_range(self) -> None:
        assert not satisfies("1.0.0", "latest")


class TestIsValidRange:
    def test_ranges(self) -> None:
        assert is_valid_range("^1.0.0")
        assert is_valid_range(">=1.0.0 <2")
        assert is_valid_range("1.x || ~2.1")

    def test_tags(self) -> None:
        assert not is_valid_range("latest")
        assert not is_valid_range("next")

    def test_bare_operator(self) -> None:
        assert not is_valid_range(">=")
        assert not is_valid_range("^1.0.0 <")
        assert not satisfies("1.0.0", "~")
