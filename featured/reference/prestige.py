"""Artisan prestige lookups against the external reference dataset."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterable

import httpx

from featured.errors import UpstreamQueryError
from featured.logic.models import PrestigeStats
from featured.utils.retry import RETRY_EXCEPTIONS, retry_async

logger = logging.getLogger(__name__)

SCHOOL_PREFIX = "NS-"
STATS_SELECT = "elite_factor,elite_count"
DEFAULT_CONCURRENCY = int(os.environ.get("REFERENCE_CONCURRENCY", "20"))


class PrestigeClient:
    """PostgREST client for the maker and school prestige tables."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        session: httpx.AsyncClient | None = None,
        retry_delay: float = 0.5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {"apikey": api_key, "Authorization": f"Bearer {api_key}"} if api_key else {}
        self.session = session or httpx.AsyncClient(timeout=15.0)
        self.retry_delay = retry_delay

    async def close(self) -> None:
        await self.session.aclose()

    async def fetch_maker(self, code: str) -> PrestigeStats | None:
        return await self._lookup("artisan_makers", "maker_id", code)

    async def fetch_school(self, code: str) -> PrestigeStats | None:
        return await self._lookup("artisan_schools", "school_id", code)

    async def _lookup(self, table: str, key: str, code: str) -> PrestigeStats | None:
        url = f"{self.base_url}/rest/v1/{table}"
        params = {"select": STATS_SELECT, key: f"eq.{code}"}
        get = retry_async(
            self.session.get,
            exceptions=(httpx.TransportError, *RETRY_EXCEPTIONS),
            base_delay=self.retry_delay,
        )
        try:
            response = await get(url, params=params, headers=self.headers)
            response.raise_for_status()
            return _stats_from_rows(response.json())
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as exc:
            raise UpstreamQueryError(f"{table} lookup for {code} failed: {exc}") from exc


def _stats_from_rows(rows: Any) -> PrestigeStats | None:
    if not isinstance(rows, list) or not rows:
        return None
    row = rows[0]
    if row.get("elite_factor") is None:
        return None
    return PrestigeStats.from_raw(row["elite_factor"], row.get("elite_count"))


def client_from_env() -> PrestigeClient | None:
    base_url = os.environ.get("REFERENCE_API_URL")
    if not base_url:
        return None
    return PrestigeClient(base_url, os.environ.get("REFERENCE_API_KEY"))


@dataclass(slots=True)
class Resolution:
    stats: dict[str, PrestigeStats | None] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def found(self) -> dict[str, PrestigeStats]:
        return {code: stats for code, stats in self.stats.items() if stats is not None}

    @property
    def not_found(self) -> list[str]:
        return [code for code, stats in self.stats.items() if stats is None]


class ReferenceStatsProvider:
    """Resolves artisan codes to prestige stats, caching every answer for its lifetime.

    One provider is built per batch run, so the cache never outlives the run.
    Not-found answers are cached as ``None``; failed lookups are not cached.
    """

    def __init__(self, client: PrestigeClient, *, concurrency: int | None = None) -> None:
        self.client = client
        self._semaphore = asyncio.Semaphore(concurrency or DEFAULT_CONCURRENCY)
        self._cache: dict[str, PrestigeStats | None] = {}

    async def close(self) -> None:
        await self.client.close()

    async def resolve(self, code: str) -> PrestigeStats | None:
        if code in self._cache:
            return self._cache[code]
        async with self._semaphore:
            stats = await self.client.fetch_maker(code)
            if stats is None and code.upper().startswith(SCHOOL_PREFIX):
                stats = await self.client.fetch_school(code)
        self._cache[code] = stats
        return stats

    async def resolve_many(self, codes: Iterable[str]) -> Resolution:
        unique = list(dict.fromkeys(code for code in codes if code))
        outcomes = await asyncio.gather(*(self.resolve(code) for code in unique), return_exceptions=True)
        resolution = Resolution()
        for code, outcome in zip(unique, outcomes):
            if isinstance(outcome, UpstreamQueryError):
                logger.warning("Prestige lookup failed for %s: %s", code, outcome)
                resolution.failed.append(code)
            elif isinstance(outcome, Exception):
                logger.error("Unexpected error resolving %s: %r", code, outcome)
                resolution.failed.append(code)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                resolution.stats[code] = outcome
        return resolution
