"""Configuration and manifest documents.

Two JSON documents live in the repository:

- the configuration document, listing packages and their release settings
  (repo-wide defaults apply to every package unless overridden), and
- the manifest document, a flat map of package path → last released version.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .descriptor import stringify_json
from .models import PackageConfig, VersionsMap

DEFAULT_RELEASE_TYPE = "node"


class ConfigError(ValueError):
    """A configuration or manifest document is malformed."""


class ReleaserConfig(BaseModel):
    """Settings accepted both repo-wide and per package."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    release_type: str | None = Field(default=None, alias="release-type")
    bump_minor_pre_major: bool | None = Field(default=None, alias="bump-minor-pre-major")
    changelog_sections: list[dict[str, Any]] | None = Field(
        default=None, alias="changelog-sections"
    )
    release_as: str | None = Field(default=None, alias="release-as")
    release_draft: bool | None = Field(default=None, alias="release-draft")


class PackageEntry(ReleaserConfig):
    package_name: str | None = Field(default=None, alias="package-name")
    changelog_path: str | None = Field(default=None, alias="changelog-path")


class ManifestConfig(ReleaserConfig):
    """The configuration document.

    Attributes:
        packages: Package path → per-package settings.
        bootstrap_sha: Commit to start from when no release PR was merged yet.
        plugins: Names of plugin stages to run over the release PR data.
    """

    packages: dict[str, PackageEntry] = Field(default_factory=dict)
    bootstrap_sha: str | None = Field(default=None, alias="bootstrap-sha")
    plugins: list[str] = Field(default_factory=list)

    def parsed_packages(self) -> list[PackageConfig]:
        """Resolve every package's settings against the repo-wide defaults."""
        packages: list[PackageConfig] = []
        for path, entry in self.packages.items():
            packages.append(
                PackageConfig(
                    path=path,
                    release_type=entry.release_type
                    or self.release_type
                    or DEFAULT_RELEASE_TYPE,
                    package_name=entry.package_name,
                    bump_minor_pre_major=_first(
                        entry.bump_minor_pre_major, self.bump_minor_pre_major
                    ),
                    changelog_sections=_first(
                        entry.changelog_sections, self.changelog_sections
                    ),
                    changelog_path=entry.changelog_path,
                    release_as=resolve_release_as(entry.release_as, self.release_as),
                    release_draft=bool(_first(entry.release_draft, self.release_draft)),
                )
            )
        return packages


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_release_as(package_value: str | None, default_value: str | None) -> str | None:
    """Resolve the effective "release-as" for a package.

    The repo-wide default only counts when it is a non-empty string. A
    per-package value overrides it, and an empty per-package string cancels
    the default so normal version resolution applies.

    Examples:
        resolve_release_as(None, "2.0.0") → "2.0.0"
        resolve_release_as("3.0.0", "2.0.0") → "3.0.0"
        resolve_release_as("", "2.0.0") → None
    """
    release_as = default_value or None
    if package_value is not None:
        release_as = package_value
    return release_as or None


def load_json_object(text: str, file_name: str) -> dict[str, Any]:
    """Parse a document that must be a JSON object.

    Raises:
        ConfigError: If the text is not valid JSON or not an object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {file_name}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{file_name} must contain a JSON object")
    return data


def parse_config(text: str, file_name: str) -> ManifestConfig:
    """Parse the configuration document.

    Raises:
        ConfigError: If the document is malformed.
    """
    data = load_json_object(text, file_name)
    try:
        return ManifestConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration in {file_name}: {exc}") from exc


def versions_map(doc: dict[str, Any], file_name: str) -> VersionsMap:
    """Check that every manifest value is a string and return the map.

    Raises:
        ConfigError: On a non-string value.
    """
    for path, version in doc.items():
        if not isinstance(version, str):
            raise ConfigError(
                f"{file_name} must only contain string values (got {version!r} for {path})"
            )
    return dict(doc)


def render_manifest(current: dict[str, Any], updates: VersionsMap) -> str:
    """Render the manifest document with updated versions.

    Existing keys keep their position, new paths are appended.
    """
    merged = dict(current)
    merged.update(updates)
    return stringify_json(merged)
