"""Shared async HTTP dispatcher for every outbound call.

Provides a thin wrapper around ``httpx.AsyncClient`` with a user-agent
header, per-call timeouts, a single concurrency cap shared by all callers
(registry metadata, download statistics, vulnerability batches, advisory
details), and typed errors.

Raises ``PackageNotFoundError`` on HTTP 404 and ``NetworkError`` on every
other failure (timeouts, transport errors, non-2xx, invalid JSON), so callers
can treat "not found" as a signal and everything else as fail-open.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from tangkal import __version__
from tangkal.exceptions import NetworkError, PackageNotFoundError

logger = logging.getLogger(__name__)

# Maximum number of requests in flight at once, across all callers.
DEFAULT_MAX_CONCURRENCY: int = 10

# Timeouts (seconds).
METADATA_TIMEOUT: float = 3.0
DETAIL_TIMEOUT: float = 5.0
BATCH_TIMEOUT: float = 10.0

# User-Agent sent with every request.
USER_AGENT: str = f"tangkal/{__version__}"


class HttpDispatcher:
    """Concurrency-capped JSON client.

    Requests beyond the cap queue on a semaphore; release order is not
    guaranteed, only the ceiling. ``in_flight`` and ``peak_in_flight`` expose
    the live and maximum number of concurrent requests.

    Usage::

        async with HttpDispatcher() as http:
            data = await http.get_json("https://registry.npmjs.org/lodash")
    """

    def __init__(
        self,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            transport=transport,
        )
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self.in_flight = 0
        self.peak_in_flight = 0
        self.request_count = 0

    async def __aenter__(self) -> HttpDispatcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_json(self, url: str, *, timeout: float = METADATA_TIMEOUT) -> Any:
        """GET *url* and return the parsed JSON body."""
        return await self._request("GET", url, timeout=timeout)

    async def post_json(
        self, url: str, payload: Any, *, timeout: float = BATCH_TIMEOUT
    ) -> Any:
        """POST *payload* as JSON to *url* and return the parsed JSON body."""
        return await self._request("POST", url, timeout=timeout, json=payload)

    async def _request(self, method: str, url: str, *, timeout: float, **kwargs: Any) -> Any:
        async with self._semaphore:
            self.in_flight += 1
            self.request_count += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                response = await self._client.request(method, url, timeout=timeout, **kwargs)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.debug("HTTP %d from %s", status, url)
                if status == 404:
                    raise PackageNotFoundError(url) from exc
                raise NetworkError(f"HTTP {status} from {url}") from exc
            except httpx.TimeoutException as exc:
                logger.debug("Timeout fetching %s", url)
                raise NetworkError(f"Timeout fetching {url}") from exc
            except httpx.HTTPError as exc:
                logger.debug("Request error for %s: %s", url, exc)
                raise NetworkError(f"Request error for {url}: {exc}") from exc
            except ValueError as exc:
                raise NetworkError(f"Invalid JSON from {url}") from exc
            finally:
                self.in_flight -= 1
