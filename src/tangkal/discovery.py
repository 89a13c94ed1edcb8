"""File discovery for a scan target.

Walks the target directory and yields the relative POSIX paths of files with
a scannable extension, skipping anything matched by the ignore rules.

Ignore rules come from two sources: built-in noise patterns that are always
applied, and an optional ``.tangkalignore`` file at the target root. Rule
syntax follows the familiar ignore-file conventions, matched with
``fnmatch``:

- blank lines and lines starting with ``#`` are skipped;
- a trailing ``/`` restricts a rule to directories;
- a rule containing ``/`` is anchored to the target root, otherwise it
  matches the final component of a path at any depth;
- a path is ignored if it or any of its parent directories matches.

Negated (``!``) rules are not supported and are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

IGNORE_FILENAME: str = ".tangkalignore"

BUILTIN_IGNORES: tuple[str, ...] = (
    "node_modules",
    ".git",
    "dist",
    "build",
    "coverage",
    "*.min.js",
    "*.map",
)

SCANNABLE_EXTENSIONS: frozenset[str] = frozenset({".js", ".ts", ".jsx", ".tsx", ".json"})


@dataclass(frozen=True)
class IgnoreRule:
    """One parsed ignore pattern."""

    pattern: str
    directory_only: bool = False
    anchored: bool = False

    @classmethod
    def parse(cls, line: str) -> IgnoreRule | None:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        if text.startswith("!"):
            logger.debug("Negated ignore rule not supported: %s", text)
            return None
        directory_only = text.endswith("/")
        text = text.rstrip("/")
        anchored = "/" in text
        text = text.lstrip("/")
        if not text:
            return None
        return cls(pattern=text, directory_only=directory_only, anchored=anchored)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.directory_only and not is_dir:
            return False
        if self.anchored:
            return fnmatchcase(rel_path, self.pattern)
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], self.pattern)


class IgnoreMatcher:
    """A set of ignore rules evaluated against relative POSIX paths."""

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self.rules: list[IgnoreRule] = []
        self.add(lines)

    def add(self, lines: Iterable[str]) -> None:
        for line in lines:
            rule = IgnoreRule.parse(line)
            if rule is not None:
                self.rules.append(rule)

    def ignores(self, rel_path: str, is_dir: bool = False) -> bool:
        """True if *rel_path* or one of its parent directories is ignored."""
        parts = rel_path.strip("/").split("/")
        for depth in range(1, len(parts) + 1):
            prefix = "/".join(parts[:depth])
            prefix_is_dir = is_dir or depth < len(parts)
            if any(rule.matches(prefix, prefix_is_dir) for rule in self.rules):
                return True
        return False


def load_ignore(root: Path) -> IgnoreMatcher:
    """Build the matcher for *root*: ``.tangkalignore`` plus built-ins."""
    matcher = IgnoreMatcher()
    path = root / IGNORE_FILENAME
    try:
        matcher.add(path.read_text(encoding="utf-8-sig").splitlines())
    except FileNotFoundError:
        pass
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
    matcher.add(BUILTIN_IGNORES)
    return matcher


def discover_files(root: Path, matcher: IgnoreMatcher | None = None) -> list[str]:
    """List scannable files under *root* in a stable order.

    Args:
        root: Scan target directory.
        matcher: Ignore rules; defaults to ``load_ignore(root)``.

    Returns:
        Relative POSIX paths, sorted within each directory, with ignored
        directories pruned rather than walked.
    """
    if matcher is None:
        matcher = load_ignore(root)
    found: list[str] = []
    pending: list[tuple[Path, str]] = [(root, "")]
    while pending:
        directory, prefix = pending.pop()
        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", directory, exc)
            continue
        subdirs: list[tuple[Path, str]] = []
        for entry in entries:
            rel = f"{prefix}{entry.name}"
            if entry.is_symlink():
                continue
            if entry.is_dir():
                if not matcher.ignores(rel, is_dir=True):
                    subdirs.append((entry, f"{rel}/"))
            elif entry.suffix.lower() in SCANNABLE_EXTENSIONS and entry.is_file():
                if not matcher.ignores(rel):
                    found.append(rel)
        pending.extend(reversed(subdirs))
    return found
