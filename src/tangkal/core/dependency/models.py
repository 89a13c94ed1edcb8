"""Data models for dependency extraction: Dependency, LockfileResult."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable


@dataclass(frozen=True)
class Dependency:
    """A resolved (lockfile) or approximate (manifest) package reference.

    Attributes:
        name: Package name, including any ``@scope/`` prefix.
        version: Exact version from a lockfile, or a manifest range with
            leading ``^``/``~`` stripped.
    """

    name: str
    version: str

    @property
    def key(self) -> str:
        """Deduplication key, ``name@version``."""
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class LockfileResult:
    """Dependencies extracted from one lockfile.

    Attributes:
        lockfile: Filename of the lockfile that produced the list.
        dependencies: Deduplicated dependencies in first-seen order.
    """

    lockfile: str
    dependencies: list[Dependency] = field(default_factory=list)


def deduplicate(dependencies: Iterable[Dependency]) -> list[Dependency]:
    """Keep one entry per ``name@version``, preserving first-seen order."""
    unique: dict[str, Dependency] = {}
    for dep in dependencies:
        unique[dep.key] = dep
    return list(unique.values())
