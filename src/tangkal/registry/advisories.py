"""Advisory model for records returned by the OSV vulnerability database.

OSV records arrive in two shapes: the full record from ``/v1/vulns/<id>``
and a stub (``id`` plus ``modified``) inside ``/v1/querybatch`` responses.
``parse_advisory`` turns either into a tagged variant:

- ``OsvAdvisory`` -- the record has the known OSV shape; fields are typed.
- ``UnknownAdvisory`` -- anything else with an ``id``; the raw record is kept
  so severity can still be estimated from its text.

Both variants expose the same accessors used to build findings.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Union

from tangkal.core.analyzer.models import Severity

logger = logging.getLogger(__name__)

OSV_VULNERABILITY_URL: str = "https://osv.dev/vulnerability/{id}"
SNYK_SEARCH_URL: str = "https://security.snyk.io/vuln?search={alias}"
EXPLOIT_DB_SEARCH_URL: str = "https://www.exploit-db.com/search?cve={number}"

DEFAULT_SUMMARY: str = "Vulnerability detected"

# Checked in order against the serialized record when no label is present.
_SEVERITY_KEYWORDS: tuple[tuple[str, Severity], ...] = (
    ("critical", Severity.CRITICAL),
    ("high", Severity.HIGH),
    ("medium", Severity.MEDIUM),
)


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OsvAdvisory:
    """An advisory in the documented OSV schema.

    Attributes:
        id: Advisory identifier (``GHSA-...``, ``CVE-...``).
        summary: One-line summary, possibly empty.
        details: Long-form description, possibly empty.
        aliases: Other identifiers for the same issue.
        fixed_versions: Every ``fixed`` event across all affected ranges.
        severity_label: ``database_specific.severity`` if present.
        has_cvss: True when the top-level ``severity`` list is non-empty.
        raw: The record as received.
    """

    id: str
    summary: str = ""
    details: str = ""
    aliases: tuple[str, ...] = ()
    fixed_versions: tuple[str, ...] = ()
    severity_label: str | None = None
    has_cvss: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def severity(self) -> Severity:
        if self.severity_label:
            level = Severity.from_label(self.severity_label)
            if level is not None:
                return level
        if self.has_cvss:
            return Severity.HIGH
        return keyword_severity(self.raw)

    @property
    def fixed_version(self) -> str | None:
        # Plain string comparison; "1.10.0" sorts below "1.9.0".
        return max(self.fixed_versions) if self.fixed_versions else None

    @property
    def headline(self) -> str:
        if self.summary:
            return self.summary
        if self.details:
            first_line = self.details.splitlines()[0].strip()
            if first_line:
                return first_line
        return DEFAULT_SUMMARY

    @property
    def url(self) -> str:
        return OSV_VULNERABILITY_URL.format(id=self.id)

    @property
    def references(self) -> tuple[str, ...]:
        return cve_references(self.aliases)


@dataclass(frozen=True)
class UnknownAdvisory:
    """An advisory whose shape could not be interpreted."""

    id: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def severity(self) -> Severity:
        return keyword_severity(self.raw)

    @property
    def fixed_version(self) -> str | None:
        return None

    @property
    def headline(self) -> str:
        return DEFAULT_SUMMARY

    @property
    def url(self) -> str:
        return OSV_VULNERABILITY_URL.format(id=self.id)

    @property
    def references(self) -> tuple[str, ...]:
        return ()


Advisory = Union[OsvAdvisory, UnknownAdvisory]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def keyword_severity(record: Any) -> Severity:
    """Estimate severity by scanning the serialized record for keywords."""
    try:
        text = json.dumps(record, default=str).lower()
    except (TypeError, ValueError):
        text = str(record).lower()
    for keyword, level in _SEVERITY_KEYWORDS:
        if keyword in text:
            return level
    return Severity.LOW


def cve_references(aliases: tuple[str, ...]) -> tuple[str, ...]:
    """Build Snyk and Exploit-DB search links for every ``CVE-`` alias."""
    refs: list[str] = []
    for alias in aliases:
        if alias.startswith("CVE-"):
            refs.append(SNYK_SEARCH_URL.format(alias=alias))
            refs.append(EXPLOIT_DB_SEARCH_URL.format(number=alias[len("CVE-"):]))
    return tuple(refs)


def _fixed_events(affected: list[Any]) -> tuple[str, ...] | None:
    """Collect ``fixed`` events; None when a range is not in OSV shape."""
    fixed: list[str] = []
    for entry in affected:
        if not isinstance(entry, dict):
            continue
        ranges = entry.get("ranges") or []
        if not isinstance(ranges, list):
            return None
        for rng in ranges:
            if not isinstance(rng, dict):
                continue
            events = rng.get("events") or []
            if not isinstance(events, list):
                return None
            for event in events:
                if isinstance(event, dict) and isinstance(event.get("fixed"), str):
                    fixed.append(event["fixed"])
    return tuple(fixed)


def _str_field(record: dict[str, Any], name: str) -> str:
    value = record.get(name)
    return value if isinstance(value, str) else ""


def parse_advisory(record: Any) -> Advisory | None:
    """Classify an OSV record into an advisory variant.

    Args:
        record: A decoded JSON value from an OSV response.

    Returns:
        ``OsvAdvisory`` for records in the known shape, ``UnknownAdvisory``
        for other objects carrying an ``id``, or None when there is no id.
    """
    if not isinstance(record, dict):
        return None
    advisory_id = record.get("id")
    if not isinstance(advisory_id, str) or not advisory_id:
        return None

    aliases = record.get("aliases", [])
    affected = record.get("affected", [])
    database_specific = record.get("database_specific", {})
    scores = record.get("severity") or []
    fixed_versions = _fixed_events(affected) if isinstance(affected, list) else None
    if not (
        isinstance(aliases, list)
        and fixed_versions is not None
        and isinstance(database_specific, dict)
        and isinstance(scores, list)
    ):
        logger.debug("Advisory %s has an unexpected shape", advisory_id)
        return UnknownAdvisory(id=advisory_id, raw=record)

    label = database_specific.get("severity")
    return OsvAdvisory(
        id=advisory_id,
        summary=_str_field(record, "summary"),
        details=_str_field(record, "details"),
        aliases=tuple(a for a in aliases if isinstance(a, str)),
        fixed_versions=fixed_versions,
        severity_label=label if isinstance(label, str) else None,
        has_cvss=bool(scores),
        raw=record,
    )
