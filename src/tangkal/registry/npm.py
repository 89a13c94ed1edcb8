"""Reputation checks against the public npm registry.

For each directly declared package:

- registry metadata is fetched; a package created fewer than
  ``NEW_PACKAGE_DAYS`` days ago is flagged HIGH;
- weekly download counts are fetched; fewer than ``LOW_DOWNLOADS`` is
  flagged MEDIUM (failures of this sub-fetch are ignored);
- a 404 for the package is itself a signal: unscoped names are flagged
  CRITICAL (possible malware or typosquat), scoped names LOW (likely a
  private package).

Any other network failure yields no finding for that package.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from tangkal.core.analyzer.models import Finding, FindingKind, Severity
from tangkal.exceptions import NetworkError, PackageNotFoundError
from tangkal.registry.http_client import METADATA_TIMEOUT, HttpDispatcher

logger = logging.getLogger(__name__)

NPM_PACKAGE_URL: str = "https://registry.npmjs.org/{package}"
NPM_DOWNLOADS_URL: str = "https://api.npmjs.org/downloads/point/last-week/{package}"

NEW_PACKAGE_DAYS: int = 14
LOW_DOWNLOADS: int = 50

_SECONDS_PER_DAY = 86400


def registry_url(name: str) -> str:
    """Registry metadata URL; the scope separator is percent-encoded."""
    return NPM_PACKAGE_URL.format(package=name.replace("/", "%2F"))


def downloads_url(name: str) -> str:
    return NPM_DOWNLOADS_URL.format(package=name)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 registry timestamp into an aware datetime."""
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _reputation(name: str, severity: Severity, description: str) -> Finding:
    return Finding(
        kind=FindingKind.REPUTATION,
        label=name,
        file="",
        line=0,
        severity=severity,
        description=description,
    )


def not_found_finding(name: str) -> Finding:
    """Finding for a package the public registry does not know."""
    if name.startswith("@"):
        return _reputation(
            name, Severity.LOW,
            "Scoped package not found in public registry (likely private).",
        )
    return _reputation(
        name, Severity.CRITICAL,
        "Unscoped package not found in registry (possible malware or typosquat).",
    )


class ReputationChecker:
    """Per-package registry reputation checks.

    Args:
        dispatcher: Shared HTTP dispatcher.
        now: Clock returning an aware datetime; injectable for tests.
    """

    def __init__(
        self,
        dispatcher: HttpDispatcher,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._http = dispatcher
        self._now = now or _utc_now

    async def check_all(self, names: Iterable[str]) -> list[Finding]:
        """Check every name concurrently, preserving input order."""
        unique = list(dict.fromkeys(names))
        results = await asyncio.gather(*(self.check(name) for name in unique))
        return [finding for findings in results for finding in findings]

    async def check(self, name: str) -> list[Finding]:
        """Return reputation findings for one package."""
        try:
            metadata = await self._http.get_json(registry_url(name), timeout=METADATA_TIMEOUT)
        except PackageNotFoundError:
            return [not_found_finding(name)]
        except NetworkError as exc:
            logger.debug("Reputation check skipped for %s: %s", name, exc)
            return []

        findings: list[Finding] = []
        age_days = self._age_days(metadata)
        if age_days is not None and age_days < NEW_PACKAGE_DAYS:
            findings.append(_reputation(
                name, Severity.HIGH,
                f"Package is brand new (created {round(age_days)} days ago).",
            ))

        downloads = await self._weekly_downloads(name)
        if downloads is not None and downloads < LOW_DOWNLOADS:
            findings.append(_reputation(
                name, Severity.MEDIUM,
                f"Extremely low downloads ({downloads}/week). "
                "Potential typosquat or abandoned.",
            ))
        return findings

    def _age_days(self, metadata: Any) -> float | None:
        if not isinstance(metadata, dict):
            return None
        times = metadata.get("time")
        if not isinstance(times, dict):
            return None
        created = parse_timestamp(times.get("created"))
        if created is None:
            return None
        return (self._now() - created).total_seconds() / _SECONDS_PER_DAY

    async def _weekly_downloads(self, name: str) -> int | None:
        try:
            data = await self._http.get_json(downloads_url(name), timeout=METADATA_TIMEOUT)
        except NetworkError:
            return None
        count = data.get("downloads") if isinstance(data, dict) else None
        if isinstance(count, bool) or not isinstance(count, int):
            return None
        return count
