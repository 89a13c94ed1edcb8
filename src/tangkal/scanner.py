"""Scan orchestration for a single target directory.

``scan_directory`` is the programmatic entry point used by the CLI:

1. Discover scannable files under the target, honouring ignore rules.
2. Analyze each file. Files over ``MAX_PARSE_SIZE`` bytes take the streaming
   path; everything else is read whole. Reads run in worker threads so the
   network audit progresses while the file scan continues.
3. When ``package.json`` is reached: check lifecycle scripts, run the
   typosquat check, and start the network audit in the background
   (lockfile dependencies, else the manifest's declared ranges).
4. Await the audit, attribute its findings, and rank everything by
   severity, most severe first.

Usage::

    findings = asyncio.run(scan_directory(Path("./repo")))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from tangkal.core.analyzer import MAX_PARSE_SIZE, ContentAnalyzer, Finding
from tangkal.core.dependency import (
    PopularPackages,
    check_lifecycle_scripts,
    check_typosquat,
    declared_names,
    extract_dependencies,
    manifest_dependencies,
    read_manifest,
)
from tangkal.core.dependency.manifest import MANIFEST_NAME
from tangkal.discovery import discover_files
from tangkal.exceptions import ScanTargetError
from tangkal.registry.auditor import DEFAULT_REPUTATION_CEILING, NetworkAuditor
from tangkal.registry.http_client import DEFAULT_MAX_CONCURRENCY, HttpDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanOptions:
    """Per-scan settings.

    Attributes:
        skip_network_audit: Skip registry and vulnerability lookups. The
            typosquat check then uses the built-in seed list only.
        reputation_ceiling: Reputation checks run only when the dependency
            count is below this value.
        max_concurrency: Maximum simultaneous outbound requests.
    """

    skip_network_audit: bool = False
    reputation_ceiling: int = DEFAULT_REPUTATION_CEILING
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY


def rank_findings(findings: list[Finding]) -> list[Finding]:
    """Order by severity, most severe first; stable within a severity."""
    return sorted(findings, key=lambda f: f.severity, reverse=True)


async def scan_directory(
    directory: Path | str,
    options: ScanOptions | None = None,
    *,
    popular: PopularPackages | None = None,
    dispatcher: HttpDispatcher | None = None,
    now: Callable[[], datetime] | None = None,
    progress: Callable[[str], None] | None = None,
) -> list[Finding]:
    """Scan *directory* and return ranked findings.

    Args:
        directory: Scan target.
        options: Scan settings; defaults to ``ScanOptions()``.
        popular: Popularity list service, shared across scans if supplied.
        dispatcher: HTTP dispatcher; one is created (and closed) if omitted.
        now: Clock for the reputation age check.
        progress: Called with a short message when the dependency audit
            starts and when it completes.

    Returns:
        All findings, ranked by severity.

    Raises:
        ScanTargetError: If *directory* is missing or not a directory.
    """
    root = Path(directory).resolve()
    if not root.is_dir():
        raise ScanTargetError(f"Scan target is not a directory: {directory}")

    options = options or ScanOptions()
    owns_dispatcher = dispatcher is None
    http = dispatcher or HttpDispatcher(max_concurrency=options.max_concurrency)
    try:
        scan = _DirectoryScan(
            root, options, popular or PopularPackages(), http,
            now=now, progress=progress,
        )
        return await scan.run()
    finally:
        if owns_dispatcher:
            await http.aclose()


class _DirectoryScan:
    """State for one run of ``scan_directory``."""

    def __init__(
        self,
        root: Path,
        options: ScanOptions,
        popular: PopularPackages,
        http: HttpDispatcher,
        *,
        now: Callable[[], datetime] | None = None,
        progress: Callable[[str], None] | None = None,
    ) -> None:
        self.root = root
        self.options = options
        self.popular = popular
        self.http = http
        self.now = now
        self.progress = progress
        self.analyzer = ContentAnalyzer()

    async def run(self) -> list[Finding]:
        files = await asyncio.to_thread(discover_files, self.root)
        logger.info("Scanning %d files under %s", len(files), self.root)

        findings: list[Finding] = []
        audit: asyncio.Task[list[Finding]] | None = None

        for rel in files:
            findings.extend(await asyncio.to_thread(self._analyze_file, rel))
            if rel != MANIFEST_NAME:
                continue
            manifest = await asyncio.to_thread(read_manifest, self.root)
            if manifest is None:
                logger.debug("Manifest at %s is not a JSON object", self.root / rel)
                continue
            findings.extend(check_lifecycle_scripts(manifest, rel))
            findings.extend(check_typosquat(manifest, await self._popular_names(), rel))
            if not self.options.skip_network_audit:
                audit = asyncio.create_task(self._audit(manifest))

        if audit is None and not self.options.skip_network_audit:
            audit = asyncio.create_task(self._audit(None))

        if audit is not None:
            findings.extend(await audit)
        return rank_findings(findings)

    def _analyze_file(self, rel: str) -> list[Finding]:
        path = self.root / rel
        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.debug("Cannot stat %s: %s", path, exc)
            return []
        if size > MAX_PARSE_SIZE:
            return self.analyzer.analyze_stream(path, rel)
        try:
            text = path.read_text(encoding="utf-8-sig", errors="replace")
        except OSError as exc:
            logger.debug("Cannot read %s: %s", path, exc)
            return []
        return self.analyzer.analyze_content(text, rel)

    async def _popular_names(self) -> list[str]:
        if self.options.skip_network_audit:
            return PopularPackages.seed()
        return await self.popular.get(self.http)

    async def _audit(self, manifest: dict[str, Any] | None) -> list[Finding]:
        """Run the network audit; vulnerabilities go to the lockfile."""
        lock = await asyncio.to_thread(extract_dependencies, self.root)
        if lock is not None and lock.dependencies:
            dependencies, vulnerability_file = lock.dependencies, lock.lockfile
        elif manifest is not None:
            logger.info("No usable lockfile; auditing declared dependencies")
            dependencies, vulnerability_file = manifest_dependencies(manifest), MANIFEST_NAME
        else:
            return []
        if not dependencies:
            return []

        direct = declared_names(manifest) if manifest is not None else []
        logger.info("Auditing %d dependencies", len(dependencies))
        self._report(f"Running dependency audit on {len(dependencies)} packages...")
        auditor = NetworkAuditor(
            self.http, reputation_ceiling=self.options.reputation_ceiling, now=self.now,
        )
        report = await auditor.audit(dependencies, direct)
        self._report(f"Audit complete: scanned {len(dependencies)} packages")
        return [
            *(f.with_file(vulnerability_file) for f in report.vulnerabilities),
            *(f.with_file(MANIFEST_NAME) for f in report.reputation),
        ]

    def _report(self, message: str) -> None:
        if self.progress is not None:
            self.progress(message)
