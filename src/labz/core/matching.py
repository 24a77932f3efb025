"""Identifier and type pattern matching shared by the resolvers."""

from typing import Iterable, List


def is_wildcard(pattern: str) -> bool:
    return pattern.endswith("*")


def matches(pattern: str, identifier: str) -> bool:
    """Exact match, or prefix match when the pattern ends with ``*``."""
    if is_wildcard(pattern):
        return identifier.startswith(pattern[:-1])
    return identifier == pattern


def matches_any(patterns: Iterable[str], identifier: str) -> bool:
    return any(matches(p, identifier) for p in patterns)


def expand(pattern: str, identifiers: Iterable[str]) -> List[str]:
    """All identifiers a pattern refers to, in input order."""
    return [i for i in identifiers if matches(pattern, i)]


def version_tuple(version: str) -> tuple:
    """Numeric tuple for a dotted version; non-numeric parts count as 0."""
    parts = []
    for chunk in version.strip().lstrip("vV^>=~").split("."):
        digits = "".join(ch for ch in chunk if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    while len(parts) < 3:
        parts.append(0)
    return tuple(parts)


def version_at_least(version: str, minimum: str) -> bool:
    return version_tuple(version) >= version_tuple(minimum)
