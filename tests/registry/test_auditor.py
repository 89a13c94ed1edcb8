"""Tests for NetworkAuditor orchestration of both audit paths."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import httpx

from tangkal.core.analyzer.models import FindingKind, Severity
from tangkal.core.dependency.models import Dependency
from tangkal.registry.auditor import NetworkAuditor
from tangkal.registry.http_client import HttpDispatcher

NOW = datetime(2026, 10, 19, tzinfo=timezone.utc)

DEPS = [Dependency("a", "1.0.0"), Dependency("b", "2.0.0"), Dependency("c", "3.0.0")]


class _FakeServices:
    """Minimal npm registry, download API and OSV."""

    def __init__(self, missing: set[str] = frozenset(), vulnerable: set[str] = frozenset()) -> None:
        self.missing = missing
        self.vulnerable = vulnerable
        self.registry_paths: list[str] = []
        self.batches = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == "api.osv.dev" and request.method == "POST":
            self.batches += 1
            queries = json.loads(request.content)["queries"]
            return httpx.Response(200, json={"results": [
                {"vulns": [{"id": f"GHSA-{q['package']['name']}"}]}
                if q["package"]["name"] in self.vulnerable else {}
                for q in queries
            ]})
        if host == "api.osv.dev":
            return httpx.Response(404)
        if host == "registry.npmjs.org":
            name = request.url.path.lstrip("/")
            self.registry_paths.append(name)
            if name in self.missing:
                return httpx.Response(404)
            return httpx.Response(200, json={"time": {"created": "2016-01-01T00:00:00Z"}})
        return httpx.Response(200, json={"downloads": 100_000})


def _audit(services: _FakeServices, deps, direct, ceiling: int = 200):
    async def main():
        async with HttpDispatcher(transport=httpx.MockTransport(services)) as http:
            auditor = NetworkAuditor(http, reputation_ceiling=ceiling, now=lambda: NOW)
            return await auditor.audit(deps, direct)

    return asyncio.run(main())


class TestNetworkAuditor:
    """Path selection and report shape."""

    def test_reputation_only_for_direct_names(self) -> None:
        services = _FakeServices()
        report = _audit(services, DEPS, ["a"])
        assert services.registry_paths == ["a"]
        assert services.batches == 1
        assert report.findings == []

    def test_ceiling_skips_reputation(self) -> None:
        services = _FakeServices(missing={"a"})
        report = _audit(services, DEPS, ["a", "b"], ceiling=3)
        assert services.registry_paths == []
        assert services.batches == 1
        assert report.reputation == []

    def test_below_ceiling_runs_reputation(self) -> None:
        services = _FakeServices(missing={"a"})
        report = _audit(services, DEPS, ["a"], ceiling=4)
        assert [f.label for f in report.reputation] == ["a"]

    def test_report_keeps_paths_apart(self) -> None:
        services = _FakeServices(missing={"a"}, vulnerable={"b"})
        report = _audit(services, DEPS, ["a"])
        assert [f.kind for f in report.vulnerabilities] == [FindingKind.VULNERABILITY]
        assert report.vulnerabilities[0].label == "b"
        assert [f.severity for f in report.reputation] == [Severity.CRITICAL]
        assert len(report.findings) == 2

    def test_no_direct_names(self) -> None:
        services = _FakeServices()
        _audit(services, DEPS, [])
        assert services.registry_paths == []
