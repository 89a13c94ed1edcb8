"""Data models for scan output: Severity, FindingKind, Finding.

These are the core data types produced by every stage of the pipeline
(content analysis, manifest checks, typosquat detection, network audit).
They are intentionally decoupled from the analysis engine so that
downstream modules (CLI formatters, the network auditor) can import them
without pulling in the rule tables or the syntax-tree parser.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

# Maximum length of a code excerpt carried by a finding.
SNIPPET_LIMIT: int = 100


# ---------------------------------------------------------------------------
# Severity: Ordered threat severity levels
# ---------------------------------------------------------------------------


class Severity(IntEnum):
    """Four-level severity scale for findings.

    The integer encoding enables direct comparison: LOW < MEDIUM < HIGH < CRITICAL.
    """

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @classmethod
    def from_label(cls, label: str) -> Severity | None:
        """Map a textual severity (any case, ``moderate`` included) to a level."""
        normalized = label.strip().upper()
        if normalized == "MODERATE":
            normalized = "MEDIUM"
        try:
            return cls[normalized]
        except KeyError:
            return None


# ---------------------------------------------------------------------------
# FindingKind: how a finding was produced
# ---------------------------------------------------------------------------


class FindingKind(str, Enum):
    """Tagged category of a finding."""

    PATTERN = "Pattern"
    HEURISTIC = "Heuristic"
    SYNTAX_RULE = "SyntaxRule"
    LIFECYCLE_SCRIPT = "LifecycleScript"
    TYPOSQUAT = "Typosquat"
    REPUTATION = "Reputation"
    VULNERABILITY = "Vulnerability"


# ---------------------------------------------------------------------------
# Finding: A single reported signal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    """A single signal of suspicious or risky content.

    Findings are immutable (frozen). The orchestrator attaches a ``file`` to
    audit findings after creation via :meth:`with_file`, which returns a copy.

    Attributes:
        kind: The category of check that produced this finding.
        label: Short human name (rule name, script name, package name).
        file: Relative path of the offending file, ``""`` if file-independent.
        line: 1-based line number, ``0`` when not line-scoped.
        severity: Threat severity (LOW through CRITICAL).
        description: Human-readable explanation.
        snippet: Optional excerpt of the offending content.
        package_version: Version of the affected package (vulnerabilities).
        advisory_id: Advisory identifier, e.g. ``GHSA-xxxx``.
        advisory_summary: One-line advisory summary.
        advisory_url: Link to the advisory page.
        fixed_version: Latest known fixed version, if any.
        references: External links derived from advisory aliases.
    """

    kind: FindingKind
    label: str
    file: str
    line: int
    severity: Severity
    description: str
    snippet: str | None = None
    package_version: str | None = None
    advisory_id: str | None = None
    advisory_summary: str | None = None
    advisory_url: str | None = None
    fixed_version: str | None = None
    references: tuple[str, ...] = field(default_factory=tuple)

    def with_file(self, path: str) -> Finding:
        """Return a copy of this finding attributed to *path*."""
        return dataclasses.replace(self, file=path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "label": self.label,
            "file": self.file,
            "line": self.line,
            "severity": self.severity.name.lower(),
            "description": self.description,
        }
        if self.snippet is not None:
            data["snippet"] = self.snippet
        if self.kind is FindingKind.VULNERABILITY:
            data.update({
                "package_version": self.package_version,
                "advisory_id": self.advisory_id,
                "advisory_summary": self.advisory_summary,
                "advisory_url": self.advisory_url,
                "fixed_version": self.fixed_version,
                "references": list(self.references),
            })
        return data


def truncate_snippet(text: str, limit: int = SNIPPET_LIMIT) -> str:
    """Strip surrounding whitespace and cap *text* at *limit* characters."""
    return text.strip()[:limit]
