"""Typosquat detection by edit distance against popular package names.

Short names tolerate less drift: for a popular name under 5 characters a
single edit is already suspicious, while longer names are flagged up to two
edits away. Exact matches are never flagged.
"""

from __future__ import annotations

from typing import Any, Iterable

import Levenshtein

from tangkal.core.analyzer.models import Finding, FindingKind, Severity
from tangkal.core.dependency.manifest import declared_names

SHORT_NAME_LENGTH: int = 5


def distance_threshold(popular: str) -> int:
    """Maximum edit distance flagged for a given popular name."""
    return 1 if len(popular) < SHORT_NAME_LENGTH else 2


def find_lookalikes(name: str, popular: Iterable[str]) -> list[str]:
    """Return the popular names that *name* is suspiciously close to."""
    matches: list[str] = []
    for candidate in popular:
        if candidate == name:
            continue
        if Levenshtein.distance(name, candidate) <= distance_threshold(candidate):
            matches.append(candidate)
    return matches


def check_typosquat(
    manifest: dict[str, Any], popular: Iterable[str], file: str = ""
) -> list[Finding]:
    """Compare declared dependencies against a popularity list.

    Args:
        manifest: Parsed ``package.json``.
        popular: Popular package names.
        file: Path used for attribution.

    Returns:
        One HIGH finding per (declared, popular) pair within threshold.
    """
    popular_names = list(dict.fromkeys(popular))
    findings: list[Finding] = []
    for name in declared_names(manifest):
        for lookalike in find_lookalikes(name, popular_names):
            findings.append(Finding(
                kind=FindingKind.TYPOSQUAT,
                label=name,
                file=file,
                line=0,
                severity=Severity.HIGH,
                description=(
                    f"Package '{name}' looks very similar to popular package "
                    f"'{lookalike}'."
                ),
            ))
    return findings
