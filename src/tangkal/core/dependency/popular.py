"""Popularity list service used by the typosquat detector.

The list of high-impact npm package names is fetched once per process from a
public dataset, merged with a small built-in seed list, and cached. A failed
fetch (or a body that is not a JSON list) falls back to the seed list.

Usage::

    popular = PopularPackages()
    names = await popular.get(dispatcher)
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tangkal.exceptions import NetworkError

if TYPE_CHECKING:
    from tangkal.registry.http_client import HttpDispatcher

logger = logging.getLogger(__name__)

POPULAR_LIST_URL: str = (
    "https://raw.githubusercontent.com/wooorm/npm-high-impact/main/data.json"
)

POPULAR_LIST_TIMEOUT: float = 5.0

SEED_PACKAGES: tuple[str, ...] = (
    "react",
    "react-dom",
    "next",
    "vue",
    "express",
    "lodash",
    "commander",
    "chalk",
    "axios",
    "tslib",
    "typescript",
    "eslint",
    "jest",
    "moment",
    "date-fns",
    "uuid",
    "classnames",
    "prop-types",
    "webpack",
    "babel-core",
    "body-parser",
    "cookie-parser",
    "dotenv",
    "mongoose",
    "nodemon",
)


class PopularPackages:
    """Lazily loaded, fetch-once list of popular package names.

    Concurrent callers of ``get`` share a single fetch: the first caller
    holds the lock while loading, later callers see the cached list.
    """

    def __init__(self, url: str = POPULAR_LIST_URL) -> None:
        self.url = url
        self._names: list[str] | None = None
        self._lock = asyncio.Lock()

    @staticmethod
    def seed() -> list[str]:
        """Return the built-in seed list."""
        return list(SEED_PACKAGES)

    @property
    def loaded(self) -> bool:
        """True once a list (remote or fallback) has been cached."""
        return self._names is not None

    async def get(self, dispatcher: HttpDispatcher) -> list[str]:
        """Return the popular names, fetching them on first use.

        Args:
            dispatcher: Shared HTTP dispatcher used for the one fetch.

        Returns:
            Seed names followed by the remote names, without duplicates.
        """
        if self._names is not None:
            return self._names
        async with self._lock:
            if self._names is None:
                self._names = await self._load(dispatcher)
        return self._names

    async def _load(self, dispatcher: HttpDispatcher) -> list[str]:
        try:
            data = await dispatcher.get_json(self.url, timeout=POPULAR_LIST_TIMEOUT)
        except NetworkError as exc:
            logger.warning("Popular package list unavailable, using seed list: %s", exc)
            return self.seed()
        if not isinstance(data, list):
            logger.warning("Popular package list is not a JSON array, using seed list")
            return self.seed()
        names = dict.fromkeys(SEED_PACKAGES)
        for name in data:
            if isinstance(name, str) and name:
                names[name] = None
        logger.debug("Loaded %d popular package names", len(names))
        return list(names)
