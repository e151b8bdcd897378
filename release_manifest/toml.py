"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when rewriting a package's
pyproject.toml. This keeps release PR diffs down to the version line.
"""

from __future__ import annotations

import tomlkit
from packaging.utils import canonicalize_name


def load_pyproject(text: str) -> tomlkit.TOMLDocument:
    """Parse pyproject.toml text.

    Returns a TOMLDocument that preserves formatting when modified and dumped.
    """
    return tomlkit.parse(text)


def dump_pyproject(doc: tomlkit.TOMLDocument) -> str:
    """Render a TOMLDocument back to text, preserving original formatting."""
    return tomlkit.dumps(doc)


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison. Poetry's [tool.poetry].name is
    used when there is no [project] table.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    name = doc.get("project", {}).get("name") or (
        doc.get("tool", {}).get("poetry", {}).get("name")
    )
    return canonicalize_name(name or fallback)


def set_project_version(doc: tomlkit.TOMLDocument, version: str) -> None:
    """Set the package version in [project] (or [tool.poetry]).

    Raises:
        ValueError: If the document declares neither table.
    """
    if "project" in doc:
        doc["project"]["version"] = version  # type: ignore[index]
        return
    poetry = doc.get("tool", {}).get("poetry")
    if poetry is not None:
        poetry["version"] = version
        return
    raise ValueError("pyproject.toml has no [project] or [tool.poetry] table")
