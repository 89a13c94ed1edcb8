"""Helpers for the ``package.json`` manifest.

Covers reading the manifest, the approximate dependency list used when no
lockfile is available, and the lifecycle script check (``preinstall``,
``postinstall`` and ``install`` run automatically on install).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from tangkal.core.analyzer.models import Finding, FindingKind, Severity
from tangkal.core.dependency.models import Dependency, deduplicate

logger = logging.getLogger(__name__)

MANIFEST_NAME: str = "package.json"

DANGEROUS_SCRIPTS: tuple[str, ...] = ("preinstall", "postinstall", "install")

_DEPENDENCY_SECTIONS: tuple[str, ...] = ("dependencies", "devDependencies")


def parse_manifest(text: str) -> dict[str, Any] | None:
    """Parse manifest text, returning None for malformed or non-object JSON."""
    try:
        data = json.loads(text.lstrip("\ufeff"))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def read_manifest(root: Path) -> dict[str, Any] | None:
    """Read ``package.json`` from *root*, or None if absent or malformed."""
    path = root / MANIFEST_NAME
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError):
        logger.debug("No readable manifest at %s", path)
        return None
    return parse_manifest(text)


def _section(manifest: dict[str, Any], name: str) -> dict[str, Any]:
    section = manifest.get(name)
    return section if isinstance(section, dict) else {}


def declared_names(manifest: dict[str, Any]) -> list[str]:
    """Return directly declared dependency names (runtime, then dev)."""
    names: dict[str, None] = {}
    for section in _DEPENDENCY_SECTIONS:
        for name in _section(manifest, section):
            names[name] = None
    return list(names)


def manifest_dependencies(manifest: dict[str, Any]) -> list[Dependency]:
    """Approximate dependencies from the manifest's declared ranges.

    Leading ``^`` and ``~`` are stripped from each range. This is weaker
    than lockfile resolution: ``>=1.0.0`` or ``1.x`` pass through untouched.
    """
    merged: dict[str, str] = {}
    for section in _DEPENDENCY_SECTIONS:
        for name, spec in _section(manifest, section).items():
            if isinstance(spec, str):
                merged[name] = spec
    return deduplicate(
        Dependency(name, spec.lstrip("^~")) for name, spec in merged.items()
    )


def check_lifecycle_scripts(manifest: dict[str, Any], file: str = MANIFEST_NAME) -> list[Finding]:
    """Flag install-time lifecycle scripts.

    Args:
        manifest: Parsed ``package.json``.
        file: Path used for attribution.

    Returns:
        One CRITICAL finding per non-empty dangerous script, carrying the
        script body verbatim as the snippet.
    """
    scripts = _section(manifest, "scripts")
    findings: list[Finding] = []
    for name in DANGEROUS_SCRIPTS:
        body = scripts.get(name)
        if isinstance(body, str) and body:
            findings.append(Finding(
                kind=FindingKind.LIFECYCLE_SCRIPT,
                label=name,
                file=file,
                line=0,
                severity=Severity.CRITICAL,
                description="Dangerous lifecycle script that runs automatically on install.",
                snippet=body,
            ))
    return findings
