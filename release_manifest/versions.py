"""Version parsing, bumping and range matching.

Versions are handled with ``semver``. Package descriptors use npm-style
dependency ranges (``^1.2.3``, ``~1.2``, ``>=1.0.0 <2.0.0 || 3.x``), which
are desugared here into plain comparator sets and checked with
``semver.Version.compare``.
"""

from __future__ import annotations

import re

import semver

_PARTIAL = re.compile(
    r"^v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)
_COMPARATOR = re.compile(r"^(<=|>=|<|>|=|\^|~>|~)?(\S+)$")
_HYPHEN = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")

Comparator = tuple[str, semver.Version]


def parse_version(version_str: str, *, loose: bool = False) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Strict by default: "1.2" and "not-a-version" raise ValueError. With
    ``loose=True`` incomplete versions are padded with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    """
    if loose:
        parts = version_str.split(".")
        while len(parts) < 3:
            parts.append("0")
        version_str = ".".join(parts)
    return semver.Version.parse(version_str)


def is_valid(version_str: str) -> bool:
    try:
        parse_version(version_str)
    except (TypeError, ValueError):
        return False
    return True


def bump_patch(version_str: str, *, loose: bool = False) -> str:
    """Increment the patch version and return as a string.

    A prerelease is promoted to its release rather than incremented, the way
    npm does it.

    Examples:
        "1.2.3" → "1.2.4"
        "1.2.0-alpha.0" → "1.2.0"

    Raises:
        ValueError: If the version is not valid semver.
    """
    version = parse_version(version_str, loose=loose)
    if version.prerelease:
        return str(version.finalize_version())
    return str(version.bump_patch())


def caret(version_str: str) -> str:
    """Return a caret range for a version: "1.2.3" → "^1.2.3"."""
    return f"^{version_str}"


def _partial(text: str) -> tuple[int | None, int | None, int | None, str | None]:
    """Parse a possibly incomplete version; wildcards and gaps become None."""
    match = _PARTIAL.match(text)
    if not match:
        raise ValueError(f"Invalid version in range: {text!r}")
    numbers: list[int | None] = []
    for key in ("major", "minor", "patch"):
        value = match.group(key)
        numbers.append(None if value is None or value in "xX*" else int(value))
    major, minor, patch = numbers
    # Anything after a wildcard is a wildcard too
    if major is None:
        minor = patch = None
    elif minor is None:
        patch = None
    return major, minor, patch, match.group("pre")


def _v(major: int, minor: int = 0, patch: int = 0, pre: str | None = None) -> semver.Version:
    return semver.Version(major, minor, patch, prerelease=pre)


def _caret(text: str) -> list[Comparator]:
    major, minor, patch, pre = _partial(text)
    if major is None:
        return []
    low = _v(major, minor or 0, patch or 0, pre)
    if major > 0 or minor is None:
        high = _v(major + 1)
    elif minor > 0 or patch is None:
        high = _v(0, minor + 1)
    else:
        high = _v(0, 0, patch + 1)
    return [(">=", low), ("<", high)]


def _tilde(text: str) -> list[Comparator]:
    major, minor, patch, pre = _partial(text)
    if major is None:
        return []
    low = _v(major, minor or 0, patch or 0, pre)
    high = _v(major + 1) if minor is None else _v(major, minor + 1)
    return [(">=", low), ("<", high)]


def _x_range(text: str) -> list[Comparator]:
    major, minor, patch, pre = _partial(text)
    if major is None:
        return []
    if minor is None:
        return [(">=", _v(major)), ("<", _v(major + 1))]
    if patch is None:
        return [(">=", _v(major, minor)), ("<", _v(major, minor + 1))]
    return [("=", _v(major, minor, patch, pre))]


def _primitive(op: str, text: str) -> list[Comparator]:
    major, minor, patch, pre = _partial(text)
    if major is None:
        # ">=*" matches everything, "<*" matches nothing
        return [] if op in (">=", "<=") else [("<", _v(0, 0, 0, "0"))]
    if patch is not None:
        return [(op, _v(major, minor or 0, patch, pre))]
    # Partial versions: round to the boundary of the wildcard
    if op == ">":
        return [(">=", _v(major + 1) if minor is None else _v(major, minor + 1))]
    if op == "<=":
        return [("<", _v(major + 1) if minor is None else _v(major, minor + 1))]
    return [(op, _v(major, minor or 0))]


def _hyphen(low: str, high: str) -> list[Comparator]:
    comparators: list[Comparator] = []
    l_major, l_minor, l_patch, l_pre = _partial(low)
    if l_major is not None:
        comparators.append((">=", _v(l_major, l_minor or 0, l_patch or 0, l_pre)))
    h_major, h_minor, h_patch, h_pre = _partial(high)
    if h_major is None:
        return comparators
    if h_minor is None:
        comparators.append(("<", _v(h_major + 1)))
    elif h_patch is None:
        comparators.append(("<", _v(h_major, h_minor + 1)))
    else:
        comparators.append(("<=", _v(h_major, h_minor, h_patch, h_pre)))
    return comparators


def _comparator_set(text: str) -> list[Comparator]:
    hyphen = _HYPHEN.match(text)
    if hyphen:
        return _hyphen(hyphen.group(1), hyphen.group(2))
    comparators: list[Comparator] = []
    # Allow "> = 1.2.3"-style spacing between operator and version
    tokens = re.sub(r"(<=|>=|<|>|=|\^|~>|~)\s+", r"\1", text).split()
    for token in tokens:
        match = _COMPARATOR.match(token)
        if match is None:
            raise ValueError(f"Invalid comparator in range: {token!r}")
        op, rest = match.group(1), match.group(2)
        if op == "^":
            comparators.extend(_caret(rest))
        elif op in ("~", "~>"):
            comparators.extend(_tilde(rest))
        elif op in (None, "="):
            comparators.extend(_x_range(rest))
        else:
            comparators.extend(_primitive(op, rest))
    return comparators


def is_valid_range(range_str: str) -> bool:
    """Return True if the string parses as an npm-style range."""
    try:
        for part in range_str.split("||"):
            _comparator_set(part.strip())
    except ValueError:
        return False
    return True


def _test(version: semver.Version, op: str, target: semver.Version) -> bool:
    cmp = version.compare(target)
    return {
        "=": cmp == 0,
        "<": cmp < 0,
        "<=": cmp <= 0,
        ">": cmp > 0,
        ">=": cmp >= 0,
    }[op]


def satisfies(version_str: str, range_str: str) -> bool:
    """Check a version against an npm-style range.

    A prerelease version only satisfies a comparator set that names a
    prerelease of the same major.minor.patch, so "1.2.0-alpha.0" does not
    satisfy "^1.1.1" but "1.1.2" satisfies "^1.1.2-alpha.0".

    Returns False for invalid versions or ranges.
    """
    try:
        version = parse_version(version_str)
    except (TypeError, ValueError):
        return False
    for part in range_str.split("||"):
        try:
            comparators = _comparator_set(part.strip())
        except ValueError:
            return False
        if not all(_test(version, op, target) for op, target in comparators):
            continue
        if not version.prerelease:
            return True
        same_tuple = (version.major, version.minor, version.patch)
        if any(
            target.prerelease
            and (target.major, target.minor, target.patch) == same_tuple
            for _, target in comparators
        ):
            return True
    return False
