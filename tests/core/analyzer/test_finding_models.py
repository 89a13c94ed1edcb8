"""Tests for Severity, FindingKind and Finding."""

from __future__ import annotations

import dataclasses

import pytest

from tangkal.core.analyzer.models import (
    Finding,
    FindingKind,
    Severity,
    truncate_snippet,
)


def _finding(**overrides: object) -> Finding:
    fields: dict[str, object] = dict(
        kind=FindingKind.PATTERN,
        label="Shell Execution",
        file="src/index.js",
        line=3,
        severity=Severity.MEDIUM,
        description="Executes system commands.",
        snippet="exec('ls')",
    )
    fields.update(overrides)
    return Finding(**fields)  # type: ignore[arg-type]


class TestSeverity:
    """Ordering and label mapping."""

    def test_ordering(self) -> None:
        assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("critical", Severity.CRITICAL),
            ("HIGH", Severity.HIGH),
            ("Moderate", Severity.MEDIUM),
            ("medium", Severity.MEDIUM),
            (" low ", Severity.LOW),
        ],
    )
    def test_from_label(self, label: str, expected: Severity) -> None:
        assert Severity.from_label(label) is expected

    def test_unknown_label(self) -> None:
        assert Severity.from_label("severe") is None


class TestFinding:
    """Immutability, re-attribution and serialization."""

    def test_is_frozen(self) -> None:
        finding = _finding()
        with pytest.raises(dataclasses.FrozenInstanceError):
            finding.file = "other.js"  # type: ignore[misc]

    def test_with_file_returns_copy(self) -> None:
        original = _finding(file="")
        moved = original.with_file("package-lock.json")
        assert moved.file == "package-lock.json"
        assert original.file == ""
        assert moved.label == original.label

    def test_to_dict_for_code_finding(self) -> None:
        data = _finding().to_dict()
        assert data == {
            "kind": "Pattern",
            "label": "Shell Execution",
            "file": "src/index.js",
            "line": 3,
            "severity": "medium",
            "description": "Executes system commands.",
            "snippet": "exec('ls')",
        }

    def test_to_dict_for_vulnerability(self) -> None:
        data = _finding(
            kind=FindingKind.VULNERABILITY,
            label="lodash",
            severity=Severity.HIGH,
            snippet=None,
            package_version="4.17.15",
            advisory_id="GHSA-p6mc-m468-83gw",
            advisory_summary="Prototype Pollution",
            advisory_url="https://osv.dev/vulnerability/GHSA-p6mc-m468-83gw",
            fixed_version="4.17.19",
            references=("https://security.snyk.io/vuln?search=CVE-2020-8203",),
        ).to_dict()
        assert data["kind"] == "Vulnerability"
        assert data["fixed_version"] == "4.17.19"
        assert data["references"] == ["https://security.snyk.io/vuln?search=CVE-2020-8203"]
        assert "snippet" not in data


class TestTruncateSnippet:
    """Snippet trimming."""

    def test_strips_and_caps(self) -> None:
        assert truncate_snippet("   " + "a" * 150 + "  ") == "a" * 100

    def test_short_text_unchanged(self) -> None:
        assert truncate_snippet("  x = 1 ") == "x = 1"
