"""Known-vulnerability lookup against the OSV database.

Dependencies are sent to ``/v1/querybatch`` in chunks of ``BATCH_SIZE``;
chunks are processed one after another. Each chunk's response lists advisory
stubs per queried package. The distinct ids not yet seen during this audit
are fetched from ``/v1/vulns/<id>`` concurrently (bounded by the shared
dispatcher), and one finding is produced per (package, advisory) pair.

A chunk whose batch query fails, or whose response is malformed, is logged
and skipped; the other chunks are unaffected.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

from tangkal.core.analyzer.models import Finding, FindingKind
from tangkal.core.dependency.models import Dependency
from tangkal.exceptions import NetworkError
from tangkal.registry.advisories import Advisory, parse_advisory
from tangkal.registry.http_client import BATCH_TIMEOUT, DETAIL_TIMEOUT, HttpDispatcher

logger = logging.getLogger(__name__)

OSV_BATCH_URL: str = "https://api.osv.dev/v1/querybatch"
OSV_DETAIL_URL: str = "https://api.osv.dev/v1/vulns/{id}"

BATCH_SIZE: int = 500

ECOSYSTEM: str = "npm"


class AdvisoryCache:
    """Advisory records seen during one audit, keyed by id.

    Entries are write-once: a second ``put`` for the same id is ignored.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Advisory] = {}

    def __contains__(self, advisory_id: object) -> bool:
        return advisory_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, advisory_id: str) -> Advisory | None:
        return self._entries.get(advisory_id)

    def put(self, advisory_id: str, advisory: Advisory) -> None:
        self._entries.setdefault(advisory_id, advisory)

    def missing(self, advisory_ids: list[str]) -> list[str]:
        """Return the ids from *advisory_ids* that are not cached yet."""
        return [i for i in dict.fromkeys(advisory_ids) if i not in self._entries]


def vulnerability_finding(dependency: Dependency, advisory: Advisory) -> Finding:
    """Build the finding reported for one vulnerable package."""
    summary = advisory.headline
    return Finding(
        kind=FindingKind.VULNERABILITY,
        label=dependency.name,
        file="",
        line=0,
        severity=advisory.severity,
        description=summary,
        package_version=dependency.version,
        advisory_id=advisory.id,
        advisory_summary=summary,
        advisory_url=advisory.url,
        fixed_version=advisory.fixed_version,
        references=advisory.references,
    )


class VulnerabilityAuditor:
    """Batch vulnerability auditor for resolved dependencies."""

    def __init__(self, dispatcher: HttpDispatcher, *, batch_size: int = BATCH_SIZE) -> None:
        self._http = dispatcher
        self.batch_size = batch_size

    async def audit(self, dependencies: list[Dependency]) -> list[Finding]:
        """Query every dependency and return one finding per advisory hit.

        Args:
            dependencies: Deduplicated dependency list.

        Returns:
            Vulnerability findings with an empty ``file``; the caller
            attributes them.
        """
        cache = AdvisoryCache()
        findings: list[Finding] = []
        for start in range(0, len(dependencies), self.batch_size):
            chunk = dependencies[start:start + self.batch_size]
            try:
                findings.extend(await self._audit_chunk(chunk, cache))
            except NetworkError as exc:
                logger.warning(
                    "Skipping vulnerability batch of %d packages at offset %d: %s",
                    len(chunk), start, exc,
                )
        return findings

    async def _audit_chunk(
        self, chunk: list[Dependency], cache: AdvisoryCache
    ) -> list[Finding]:
        stubs_per_package = await self._query_batch(chunk)

        stubs: dict[str, dict[str, Any]] = {}
        for package_stubs in stubs_per_package:
            for stub in package_stubs:
                stubs.setdefault(stub["id"], stub)
        await self._fetch_details(stubs, cache)

        findings: list[Finding] = []
        for dependency, package_stubs in zip(chunk, stubs_per_package):
            for stub in package_stubs:
                advisory = cache.get(stub["id"]) or parse_advisory(stub)
                if advisory is not None:
                    findings.append(vulnerability_finding(dependency, advisory))
        return findings

    async def _query_batch(self, chunk: list[Dependency]) -> list[list[dict[str, Any]]]:
        payload = {
            "queries": [
                {
                    "package": {"name": dep.name, "ecosystem": ECOSYSTEM},
                    "version": dep.version,
                }
                for dep in chunk
            ]
        }
        data = await self._http.post_json(OSV_BATCH_URL, payload, timeout=BATCH_TIMEOUT)
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise NetworkError("Malformed OSV batch response: missing 'results'")

        per_package: list[list[dict[str, Any]]] = []
        for result in results:
            vulns = result.get("vulns") if isinstance(result, dict) else None
            if not isinstance(vulns, list):
                per_package.append([])
                continue
            per_package.append([
                v for v in vulns
                if isinstance(v, dict) and isinstance(v.get("id"), str) and v["id"]
            ])
        return per_package

    async def _fetch_details(
        self, stubs: dict[str, dict[str, Any]], cache: AdvisoryCache
    ) -> None:
        missing = cache.missing(list(stubs))
        if not missing:
            return
        details = await asyncio.gather(*(self._fetch_detail(i) for i in missing))
        for advisory_id, advisory in zip(missing, details):
            # A failed detail fetch falls back to the batch stub.
            fallback = advisory or parse_advisory(stubs[advisory_id])
            if fallback is not None:
                cache.put(advisory_id, fallback)

    async def _fetch_detail(self, advisory_id: str) -> Advisory | None:
        url = OSV_DETAIL_URL.format(id=quote(advisory_id, safe=""))
        try:
            data = await self._http.get_json(url, timeout=DETAIL_TIMEOUT)
        except NetworkError as exc:
            logger.debug("Advisory detail unavailable for %s: %s", advisory_id, exc)
            return None
        return parse_advisory(data)
