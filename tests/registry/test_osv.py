"""Tests for the batched OSV vulnerability auditor."""

from __future__ import annotations

import asyncio
import json
from collections import Counter
from typing import Any, Callable

import httpx
import pytest

from tangkal.core.analyzer.models import FindingKind, Severity
from tangkal.core.dependency.models import Dependency
from tangkal.registry.advisories import parse_advisory
from tangkal.registry.http_client import HttpDispatcher
from tangkal.registry.osv import AdvisoryCache, VulnerabilityAuditor

_DETAIL = {
    "id": "GHSA-p6mc-m468-83gw",
    "summary": "Prototype Pollution in lodash",
    "aliases": ["CVE-2020-8203"],
    "affected": [{"ranges": [{"events": [{"introduced": "0"}, {"fixed": "4.17.19"}]}]}],
    "database_specific": {"severity": "HIGH"},
}


class _OsvStub:
    """Routes batch and detail requests; records what was asked."""

    def __init__(
        self,
        vulnerable: dict[str, list[str]],
        details: dict[str, dict[str, Any]] | None = None,
        failing_batches: set[int] | None = None,
    ) -> None:
        self.vulnerable = vulnerable
        self.details = details or {}
        self.failing_batches = failing_batches or set()
        self.batch_sizes: list[int] = []
        self.detail_calls: Counter[str] = Counter()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            queries = json.loads(request.content)["queries"]
            index = len(self.batch_sizes)
            self.batch_sizes.append(len(queries))
            if index in self.failing_batches:
                return httpx.Response(500)
            results = [
                {"vulns": [{"id": i, "modified": "2024-01-01T00:00:00Z"}
                           for i in self.vulnerable.get(q["package"]["name"], [])]}
                if q["package"]["name"] in self.vulnerable else {}
                for q in queries
            ]
            return httpx.Response(200, json={"results": results})
        advisory_id = request.url.path.rsplit("/", 1)[-1]
        self.detail_calls[advisory_id] += 1
        if advisory_id in self.details:
            return httpx.Response(200, json=self.details[advisory_id])
        return httpx.Response(404)


def _audit(stub: Callable[[httpx.Request], httpx.Response], deps: list[Dependency]):
    async def main():
        async with HttpDispatcher(transport=httpx.MockTransport(stub)) as http:
            return await VulnerabilityAuditor(http).audit(deps)

    return asyncio.run(main())


class TestAdvisoryCache:
    """Write-once cache keyed by advisory id."""

    def test_missing_dedupes_and_excludes_cached(self) -> None:
        cache = AdvisoryCache()
        cache.put("A", parse_advisory({"id": "A"}))
        assert cache.missing(["A", "B", "B", "C"]) == ["B", "C"]

    def test_put_is_write_once(self) -> None:
        cache = AdvisoryCache()
        first = parse_advisory({"id": "A", "summary": "first"})
        cache.put("A", first)
        cache.put("A", parse_advisory({"id": "A", "summary": "second"}))
        assert cache.get("A") is first
        assert len(cache) == 1


class TestVulnerabilityFindings:
    """One finding per (package, advisory)."""

    def test_detail_fields(self) -> None:
        stub = _OsvStub({"lodash": ["GHSA-p6mc-m468-83gw"]}, {"GHSA-p6mc-m468-83gw": _DETAIL})
        findings = _audit(stub, [Dependency("lodash", "4.17.15"), Dependency("ms", "2.1.3")])
        assert len(findings) == 1
        finding = findings[0]
        assert finding.kind is FindingKind.VULNERABILITY
        assert finding.label == "lodash"
        assert finding.package_version == "4.17.15"
        assert finding.severity is Severity.HIGH
        assert finding.advisory_id == "GHSA-p6mc-m468-83gw"
        assert finding.advisory_summary == "Prototype Pollution in lodash"
        assert finding.fixed_version == "4.17.19"
        assert finding.advisory_url == "https://osv.dev/vulnerability/GHSA-p6mc-m468-83gw"
        assert len(finding.references) == 2
        assert finding.file == ""

    def test_failed_detail_falls_back_to_stub(self) -> None:
        stub = _OsvStub({"left-pad": ["GHSA-aaaa-bbbb-cccc"]})
        findings = _audit(stub, [Dependency("left-pad", "1.0.0")])
        assert len(findings) == 1
        assert findings[0].advisory_id == "GHSA-aaaa-bbbb-cccc"
        assert findings[0].advisory_summary == "Vulnerability detected"
        assert findings[0].fixed_version is None

    @pytest.mark.parametrize("affected", [[{"ranges": 7}], [{"ranges": [{"events": 5}]}]])
    def test_malformed_detail_still_reported(self, affected: list[Any]) -> None:
        detail = {"id": "GHSA-xxxx-yyyy-zzzz", "affected": affected}
        stub = _OsvStub({"left-pad": ["GHSA-xxxx-yyyy-zzzz"]}, {"GHSA-xxxx-yyyy-zzzz": detail})
        findings = _audit(stub, [Dependency("left-pad", "1.0.0")])
        assert len(findings) == 1
        assert findings[0].advisory_id == "GHSA-xxxx-yyyy-zzzz"
        assert findings[0].fixed_version is None
        assert findings[0].severity is Severity.LOW

    def test_shared_advisory_fetched_once(self) -> None:
        deps = [Dependency(f"pkg{i}", "1.0.0") for i in range(700)]
        vulnerable = {"pkg1": ["GHSA-p6mc-m468-83gw"], "pkg2": ["GHSA-p6mc-m468-83gw"],
                      "pkg650": ["GHSA-p6mc-m468-83gw"]}
        stub = _OsvStub(vulnerable, {"GHSA-p6mc-m468-83gw": _DETAIL})
        findings = _audit(stub, deps)
        assert sorted(f.label for f in findings) == ["pkg1", "pkg2", "pkg650"]
        assert stub.detail_calls == Counter({"GHSA-p6mc-m468-83gw": 1})

    def test_no_dependencies_no_requests(self) -> None:
        stub = _OsvStub({})
        assert _audit(stub, []) == []
        assert stub.batch_sizes == []


class TestChunking:
    """Batches of 500, processed independently."""

    def test_1200_dependencies_make_three_batches(self) -> None:
        deps = [Dependency(f"pkg{i}", "1.0.0") for i in range(1200)]
        stub = _OsvStub({})
        _audit(stub, deps)
        assert stub.batch_sizes == [500, 500, 200]

    def test_failing_chunk_leaves_others_intact(self) -> None:
        deps = [Dependency(f"pkg{i}", "1.0.0") for i in range(1200)]
        vulnerable = {"pkg0": ["OSV-A"], "pkg600": ["OSV-B"], "pkg1100": ["OSV-C"]}
        stub = _OsvStub(vulnerable, failing_batches={1})
        findings = _audit(stub, deps)
        assert sorted(f.label for f in findings) == ["pkg0", "pkg1100"]
        assert stub.batch_sizes == [500, 500, 200]

    def test_malformed_response_skipped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        assert _audit(handler, [Dependency("a", "1.0.0")]) == []
