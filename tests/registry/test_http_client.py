"""Tests for HttpDispatcher -- all traffic goes through MockTransport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from tangkal.exceptions import NetworkError, PackageNotFoundError
from tangkal.registry.http_client import USER_AGENT, HttpDispatcher

_URL = "https://registry.npmjs.org/lodash"


def _get(handler, url: str = _URL):
    async def main():
        async with HttpDispatcher(transport=httpx.MockTransport(handler)) as http:
            return await http.get_json(url)

    return asyncio.run(main())


class TestResponses:
    """Success and error mapping."""

    def test_returns_parsed_json(self) -> None:
        assert _get(lambda r: httpx.Response(200, json={"name": "lodash"})) == {"name": "lodash"}

    def test_sends_user_agent(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["user-agent"])
            return httpx.Response(200, json={})

        _get(handler)
        assert seen == [USER_AGENT]

    def test_404_is_package_not_found(self) -> None:
        with pytest.raises(PackageNotFoundError):
            _get(lambda r: httpx.Response(404))

    def test_server_error_is_network_error(self) -> None:
        with pytest.raises(NetworkError) as excinfo:
            _get(lambda r: httpx.Response(500))
        assert not isinstance(excinfo.value, PackageNotFoundError)

    def test_invalid_json(self) -> None:
        with pytest.raises(NetworkError):
            _get(lambda r: httpx.Response(200, content=b"<html>"))

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkError):
            _get(handler)

    def test_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            _get(handler)

    def test_post_json_sends_payload(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        async def main():
            async with HttpDispatcher(transport=httpx.MockTransport(handler)) as http:
                return await http.post_json("https://api.osv.dev/v1/querybatch", {"q": 1})

        assert asyncio.run(main()) == {"ok": True}
        assert bodies == [{"q": 1}]


class TestConcurrencyCap:
    """No more than ``max_concurrency`` requests are in flight."""

    @staticmethod
    def _burst(requests: int, max_concurrency: int) -> HttpDispatcher:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={})

        async def main() -> HttpDispatcher:
            http = HttpDispatcher(
                max_concurrency=max_concurrency, transport=httpx.MockTransport(handler)
            )
            async with http:
                await asyncio.gather(*(http.get_json(f"{_URL}?i={i}") for i in range(requests)))
            return http

        return asyncio.run(main())

    def test_burst_of_100_stays_under_default_cap(self) -> None:
        http = self._burst(100, 10)
        assert http.request_count == 100
        assert 1 <= http.peak_in_flight <= 10
        assert http.in_flight == 0

    def test_custom_cap(self) -> None:
        http = self._burst(30, 3)
        assert http.peak_in_flight <= 3

    def test_cap_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            HttpDispatcher(max_concurrency=0)
