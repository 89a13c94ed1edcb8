"""Lockfile parsers normalising five formats into one dependency list.

Candidates are tried in a fixed priority order at the project root only,
and the first lockfile that parses wins:

1. ``package-lock.json`` / ``npm-shrinkwrap.json`` -- flat ``packages`` map
   (lockfile v2/v3) or the legacy nested ``dependencies`` tree (v1).
2. ``yarn.lock`` -- ``name@range`` headers with an indented ``version``.
3. ``pnpm-lock.yaml`` -- YAML ``packages`` map keyed by ``/name/version``,
   ``/name@version`` or ``name@version``.
4. ``bun.lock`` -- read with the yarn parser.
5. ``deno.lock`` -- JSON ``specifiers`` map; only ``npm:`` specifiers count.

Each parser takes the lockfile text and either returns dependencies or
raises ``LockfileError``. ``first_success`` turns the ordered list of
attempts into a single optional result.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, TypeVar

import yaml

from tangkal.core.dependency.models import Dependency, LockfileResult, deduplicate
from tangkal.exceptions import LockfileError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NESTING_MARKER = "node_modules/"


def first_success(attempts: Iterable[Callable[[], T | None]]) -> T | None:
    """Return the first non-None result from *attempts*, tried in order."""
    for attempt in attempts:
        result = attempt()
        if result is not None:
            return result
    return None


def split_descriptor(descriptor: str) -> tuple[str, str]:
    """Split ``name@spec`` into ``(name, spec)``, honouring ``@scope/`` names.

    Returns ``(descriptor, "")`` when there is no version part.
    """
    at = descriptor.find("@", 1)
    if at == -1:
        return descriptor, ""
    return descriptor[:at], descriptor[at + 1:]


# ---------------------------------------------------------------------------
# 1. npm package-lock.json
# ---------------------------------------------------------------------------


def _load_json_object(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise LockfileError(f"Invalid JSON lockfile: {exc}") from exc
    if not isinstance(data, dict):
        raise LockfileError("Lockfile root is not a JSON object")
    return data


def _walk_legacy_tree(tree: dict[str, Any]) -> Iterator[Dependency]:
    """Depth-first walk of a v1 ``dependencies`` tree.

    A node's own version is recorded before descending into its children.
    """
    for name, node in tree.items():
        if not isinstance(node, dict):
            continue
        version = node.get("version")
        if isinstance(version, str) and version:
            yield Dependency(name, version)
        nested = node.get("dependencies")
        if isinstance(nested, dict):
            yield from _walk_legacy_tree(nested)


def parse_package_lock(text: str) -> list[Dependency]:
    """Parse an npm lockfile (v1, v2 or v3)."""
    lock = _load_json_object(text)

    packages = lock.get("packages")
    if isinstance(packages, dict):
        deps: list[Dependency] = []
        for key, entry in packages.items():
            # "" is the root project; keys without the marker are workspace sources.
            if _NESTING_MARKER not in key or not isinstance(entry, dict):
                continue
            name = key.rsplit(_NESTING_MARKER, 1)[-1]
            version = entry.get("version")
            if name and isinstance(version, str) and version:
                deps.append(Dependency(name, version))
        return deduplicate(deps)

    legacy = lock.get("dependencies")
    if isinstance(legacy, dict):
        return deduplicate(_walk_legacy_tree(legacy))

    raise LockfileError("npm lockfile has neither 'packages' nor 'dependencies'")


# ---------------------------------------------------------------------------
# 2. yarn.lock (also used for bun.lock)
# ---------------------------------------------------------------------------

_YARN_VERSION = re.compile(r"""^version:?\s+["']?([^"'\s]+)["']?\s*$""")


def _yarn_records(text: str) -> dict[str, dict[str, str]]:
    """Aggregate a yarn lockfile into ``{header: {field: value}}`` records.

    A header such as ``"a@^1.0.0", "a@^1.1.0":`` is stored once per
    comma-separated descriptor, all sharing the same record.
    """
    records: dict[str, dict[str, str]] = {}
    current: dict[str, str] | None = None
    for raw in text.splitlines():
        if not raw.strip() or raw.lstrip().startswith("#"):
            continue
        if not raw[0].isspace():
            header = raw.rstrip().rstrip(":")
            current = {}
            for descriptor in header.split(","):
                descriptor = descriptor.strip().strip("\"'")
                if descriptor:
                    records[descriptor] = current
            continue
        if current is None or raw.startswith("    "):
            continue
        match = _YARN_VERSION.match(raw.strip())
        if match:
            current["version"] = match.group(1)
    return records


def parse_yarn_lock(text: str) -> list[Dependency]:
    """Parse a classic or berry yarn lockfile."""
    records = _yarn_records(text)
    deps: list[Dependency] = []
    for descriptor, record in records.items():
        if descriptor.startswith("__metadata"):
            continue
        name, _ = split_descriptor(descriptor)
        version = record.get("version")
        if name and version:
            deps.append(Dependency(name, version))
    if not deps and text.strip():
        raise LockfileError("No yarn-style entries found")
    return deduplicate(deps)


# ---------------------------------------------------------------------------
# 3. pnpm-lock.yaml
# ---------------------------------------------------------------------------

_PNPM_SLASH_KEY = re.compile(r"^(@[^/]+/[^/@]+|[^/@]+)/([^/]+)$")


def _pnpm_key_to_dependency(key: str) -> Dependency | None:
    key = key.split("(", 1)[0].lstrip("/")
    slash = _PNPM_SLASH_KEY.match(key)
    if slash:
        # Lockfile v5 style "/name/1.0.0_peer@2.0.0"
        return Dependency(slash.group(1), slash.group(2).split("_", 1)[0])
    name, version = split_descriptor(key)
    if name and version:
        return Dependency(name, version)
    return None


def parse_pnpm_lock(text: str) -> list[Dependency]:
    """Parse a pnpm lockfile (v5 through v9 key styles)."""
    try:
        lock = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise LockfileError(f"Invalid YAML lockfile: {exc}") from exc
    if not isinstance(lock, dict):
        raise LockfileError("pnpm lockfile root is not a mapping")

    packages = lock.get("packages") or {}
    if not isinstance(packages, dict):
        raise LockfileError("pnpm 'packages' is not a mapping")

    deps: list[Dependency] = []
    for key in packages:
        dep = _pnpm_key_to_dependency(str(key))
        if dep is not None:
            deps.append(dep)
    return deduplicate(deps)


# ---------------------------------------------------------------------------
# 5. deno.lock
# ---------------------------------------------------------------------------

_NPM_PREFIX = "npm:"


def parse_deno_lock(text: str) -> list[Dependency]:
    """Parse a deno lockfile, keeping only npm registry specifiers."""
    lock = _load_json_object(text)
    specifiers = lock.get("specifiers")
    if specifiers is None and isinstance(lock.get("packages"), dict):
        specifiers = lock["packages"].get("specifiers")
    if not isinstance(specifiers, dict):
        raise LockfileError("deno lockfile has no 'specifiers' map")

    deps: list[Dependency] = []
    for specifier, resolved in specifiers.items():
        if not specifier.startswith(_NPM_PREFIX) or not isinstance(resolved, str):
            continue
        name, _ = split_descriptor(specifier[len(_NPM_PREFIX):])
        if resolved.startswith(_NPM_PREFIX):
            name, version = split_descriptor(resolved[len(_NPM_PREFIX):])
        else:
            version = resolved
        version = version.split("_", 1)[0]
        if name and version:
            deps.append(Dependency(name, version))
    return deduplicate(deps)


# ---------------------------------------------------------------------------
# Extraction entry point
# ---------------------------------------------------------------------------

LOCKFILE_PARSERS: tuple[tuple[str, Callable[[str], list[Dependency]]], ...] = (
    ("package-lock.json", parse_package_lock),
    ("npm-shrinkwrap.json", parse_package_lock),
    ("yarn.lock", parse_yarn_lock),
    ("pnpm-lock.yaml", parse_pnpm_lock),
    ("bun.lock", parse_yarn_lock),
    ("deno.lock", parse_deno_lock),
)


def _attempt(
    root: Path, filename: str, parser: Callable[[str], list[Dependency]]
) -> Callable[[], LockfileResult | None]:
    def run() -> LockfileResult | None:
        path = root / filename
        if not path.is_file():
            return None
        try:
            text = path.read_text(encoding="utf-8-sig")
            return LockfileResult(lockfile=filename, dependencies=parser(text))
        except (OSError, UnicodeDecodeError, LockfileError) as exc:
            logger.debug("Skipping %s: %s", path, exc)
            return None

    return run


def extract_dependencies(root: Path) -> LockfileResult | None:
    """Extract dependencies from the highest-priority lockfile that parses.

    Args:
        root: Project root directory. Nested lockfiles are not considered.

    Returns:
        A ``LockfileResult``, or None when no lockfile is recognised.
    """
    return first_success(
        _attempt(root, filename, parser) for filename, parser in LOCKFILE_PARSERS
    )
