"""Package descriptor (package.json) handling.

A descriptor is read into a typed model holding the fields release-manifest
cares about (name, version, dependency maps). Everything else stays in a
passthrough dict so that writing a descriptor back never drops unknown keys
or reorders existing ones.
"""

from __future__ import annotations

import copy
import json
import posixpath
from typing import Any, Literal

from pydantic import BaseModel, Field

from .versions import is_valid, is_valid_range

# Attribute name → package.json key
DEPENDENCY_FIELDS: dict[str, str] = {
    "dependencies": "dependencies",
    "optional_dependencies": "optionalDependencies",
    "dev_dependencies": "devDependencies",
    "peer_dependencies": "peerDependencies",
}

DependencyType = Literal["version", "range", "tag", "directory", "remote"]

_PATH_PREFIXES = ("./", "../", "/", "~/")
_DIRECTORY_PROTOCOLS = ("file:", "link:")
_REMOTE_PREFIXES = ("git+", "git:", "github:", "gitlab:", "bitbucket:", "npm:", "http:", "https:")
_TARBALL_SUFFIXES = (".tgz", ".tar.gz", ".tar")


class ResolvedDependency(BaseModel):
    """A dependency spec classified by how it resolves.

    Attributes:
        name: Dependency package name.
        spec: The raw spec from the descriptor (e.g. "^1.2.3", "file:../a").
        type: "version" and "range" resolve through the registry,
              "directory" always resolves to a working copy on disk,
              "tag" and "remote" never point at a workspace package.
        fetch_spec: Spec with any protocol prefix removed.
    """

    name: str
    spec: str
    type: DependencyType
    fetch_spec: str

    @property
    def registry(self) -> bool:
        return self.type in ("version", "range")


def resolve_dependency(name: str, spec: str) -> ResolvedDependency:
    """Classify a dependency spec.

    Examples:
        resolve_dependency("a", "^1.0.0").type → "range"
        resolve_dependency("a", "1.0.0").type → "version"
        resolve_dependency("a", "file:../a").type → "directory"
        resolve_dependency("a", "workspace:*").type → "directory"
        resolve_dependency("a", "latest").type → "tag"
    """
    spec = spec.strip()
    if spec.startswith("workspace:"):
        return ResolvedDependency(
            name=name, spec=spec, type="directory", fetch_spec=spec[len("workspace:") :]
        )
    for protocol in _DIRECTORY_PROTOCOLS:
        if spec.startswith(protocol):
            target = spec[len(protocol) :]
            kind: DependencyType = "remote" if target.endswith(_TARBALL_SUFFIXES) else "directory"
            return ResolvedDependency(name=name, spec=spec, type=kind, fetch_spec=target)
    if spec.startswith(_PATH_PREFIXES):
        kind = "remote" if spec.endswith(_TARBALL_SUFFIXES) else "directory"
        return ResolvedDependency(name=name, spec=spec, type=kind, fetch_spec=spec)
    if spec.startswith(_REMOTE_PREFIXES) or "://" in spec:
        return ResolvedDependency(name=name, spec=spec, type="remote", fetch_spec=spec)
    if is_valid(spec.lstrip("=v")):
        return ResolvedDependency(name=name, spec=spec, type="version", fetch_spec=spec.lstrip("=v"))
    if "/" not in spec and is_valid_range(spec):
        return ResolvedDependency(name=name, spec=spec, type="range", fetch_spec=spec or "*")
    if "/" in spec:
        # "user/repo" GitHub shorthand
        return ResolvedDependency(name=name, spec=spec, type="remote", fetch_spec=spec)
    return ResolvedDependency(name=name, spec=spec, type="tag", fetch_spec=spec)


def directory_target(dependent_location: str, resolved: ResolvedDependency) -> str:
    """Resolve a directory spec against the dependent's package directory.

    Example:
        directory_target("packages/b/package.json", file:../a) → "packages/a"
    """
    base = posixpath.dirname(dependent_location)
    return posixpath.normpath(posixpath.join(base, resolved.fetch_spec))


class PackageDescriptor(BaseModel):
    """Typed view of a package.json document.

    Attributes:
        name: Package name.
        version: Package version (may be invalid semver; callers check).
        dependencies: Runtime dependencies.
        optional_dependencies: optionalDependencies.
        dev_dependencies: devDependencies.
        peer_dependencies: peerDependencies.
        raw: The original document, used as the passthrough bag on write.
    """

    name: str = ""
    version: str = ""
    dependencies: dict[str, str] = Field(default_factory=dict)
    optional_dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    peer_dependencies: dict[str, str] = Field(default_factory=dict)
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> PackageDescriptor:
        fields: dict[str, Any] = {
            attr: {str(k): str(v) for k, v in (data.get(key) or {}).items()}
            for attr, key in DEPENDENCY_FIELDS.items()
        }
        return cls(
            name=str(data.get("name", "")),
            version=str(data.get("version", "")),
            raw=copy.deepcopy(data),
            **fields,
        )

    @classmethod
    def parse(cls, text: str) -> PackageDescriptor:
        """Parse package.json text.

        Raises:
            ValueError: If the text is not a JSON object.
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("package descriptor must be a JSON object")
        return cls.from_json(data)

    def all_dependencies(self) -> dict[str, str]:
        """Merge every dependency kind into one map.

        Runtime dependencies win over optional, dev and peer entries for the
        same name.
        """
        merged: dict[str, str] = {}
        for attr in reversed(DEPENDENCY_FIELDS):
            merged.update(getattr(self, attr))
        return merged

    def set_dependency_range(self, name: str, spec: str) -> None:
        """Rewrite a dependency spec in the first map that declares it."""
        for attr in DEPENDENCY_FIELDS:
            deps: dict[str, str] = getattr(self, attr)
            if name in deps:
                deps[name] = spec
                return
        raise KeyError(f"{self.name} does not depend on {name}")

    def to_json(self) -> dict[str, Any]:
        """Render back to a document, preserving unknown keys and key order."""
        doc = copy.deepcopy(self.raw)
        if self.name or "name" in doc:
            doc["name"] = self.name
        doc["version"] = self.version
        for attr, key in DEPENDENCY_FIELDS.items():
            deps: dict[str, str] = getattr(self, attr)
            if deps or key in doc:
                doc[key] = dict(deps)
        return doc

    def stringify(self) -> str:
        return stringify_json(self.to_json())


def stringify_json(doc: Any) -> str:
    """Serialize JSON the way package.json files are written: 2-space indent."""
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"
