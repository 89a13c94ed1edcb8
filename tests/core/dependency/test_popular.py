"""Tests for the fetch-once popularity list service."""

from __future__ import annotations

import asyncio

import httpx

from tangkal.core.dependency.popular import SEED_PACKAGES, PopularPackages
from tangkal.registry.http_client import HttpDispatcher


def _run(popular: PopularPackages, handler, callers: int = 1) -> tuple[list[list[str]], int]:
    """Call ``get`` from *callers* concurrent tasks; return results and fetch count."""
    calls = 0

    def counting(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return handler(request)

    async def main() -> list[list[str]]:
        async with HttpDispatcher(transport=httpx.MockTransport(counting)) as http:
            return list(await asyncio.gather(*(popular.get(http) for _ in range(callers))))

    return asyncio.run(main()), calls


class TestPopularPackages:
    """Single-flight loading with seed fallback."""

    def test_remote_list_merged_with_seed(self) -> None:
        popular = PopularPackages()
        results, calls = _run(
            popular, lambda r: httpx.Response(200, json=["lodash", "left-pad"])
        )
        names = results[0]
        assert calls == 1
        assert names[: len(SEED_PACKAGES)] == list(SEED_PACKAGES)
        assert "left-pad" in names
        assert names.count("lodash") == 1

    def test_concurrent_callers_share_one_fetch(self) -> None:
        popular = PopularPackages()
        results, calls = _run(
            popular, lambda r: httpx.Response(200, json=["left-pad"]), callers=5
        )
        assert calls == 1
        assert all(r == results[0] for r in results)

    def test_cached_after_first_load(self) -> None:
        popular = PopularPackages()
        _run(popular, lambda r: httpx.Response(200, json=["left-pad"]))
        _, calls = _run(popular, lambda r: httpx.Response(200, json=["other"]))
        assert calls == 0
        assert popular.loaded

    def test_failure_falls_back_to_seed(self) -> None:
        popular = PopularPackages()
        results, _ = _run(popular, lambda r: httpx.Response(503))
        assert results[0] == list(SEED_PACKAGES)

    def test_non_list_body_falls_back_to_seed(self) -> None:
        popular = PopularPackages()
        results, _ = _run(popular, lambda r: httpx.Response(200, json={"names": []}))
        assert results[0] == list(SEED_PACKAGES)

    def test_seed_returns_copy(self) -> None:
        seed = PopularPackages.seed()
        seed.append("mutated")
        assert "mutated" not in PopularPackages.seed()
