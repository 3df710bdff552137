"""Full-catalog featured score sweep.

Runs every four hours from Celery beat (or the cron endpoint):

1. load 30-day engagement counts for every item in one query
2. copy prestige stats onto items whose artisan has none yet
3. page through available items, score them and write scores in
   concurrent chunks
4. zero the score of every unavailable item that still holds one

Failures are logged and contained; the job always returns its counters.
A soft time budget stops paging before the scheduler kills it; the stale
pass in step 4 still runs.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from dotenv import load_dotenv
from sqlalchemy.engine import Engine

from featured.db.session import create_engine_from_env
from featured.errors import BudgetExceeded, PersistenceError, UpstreamQueryError
from featured.jobs.prestige import sync_unsynced_prestige
from featured.logic.models import NO_ENGAGEMENT, EngagementCounts
from featured.logic.scoring import score_item
from featured.reference.prestige import ReferenceStatsProvider, client_from_env
from featured.store.catalog import CatalogStore, chunked
from featured.utils.dates import utc_now, window_start
from featured.utils.executor import run_blocking

logger = logging.getLogger(__name__)

PAGE_SIZE = int(os.environ.get("FEATURED_PAGE_SIZE", "1000"))
WRITE_CHUNK = int(os.environ.get("FEATURED_WRITE_CHUNK", "500"))
TIME_BUDGET_SECONDS = float(os.environ.get("FEATURED_TIME_BUDGET_SECONDS", "300"))
TIME_MARGIN_SECONDS = float(os.environ.get("FEATURED_TIME_MARGIN_SECONDS", "30"))


@dataclass(slots=True)
class BatchResult:
    items_processed: int = 0
    items_updated: int = 0
    items_zeroed: int = 0
    stale_zeroed: int = 0
    duration_ms: int = 0
    budget_exhausted: bool = False

    def as_dict(self) -> dict[str, int | bool]:
        return {
            "itemsProcessed": self.items_processed,
            "itemsUpdated": self.items_updated,
            "itemsZeroed": self.items_zeroed,
            "staleZeroed": self.stale_zeroed,
            "durationMs": self.duration_ms,
            "budgetExhausted": self.budget_exhausted,
        }


class ExecutionBudget:
    def __init__(
        self,
        seconds: float = TIME_BUDGET_SECONDS,
        *,
        margin: float = TIME_MARGIN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.seconds = seconds
        self.margin = margin
        self.clock = clock
        self.started = clock()

    def elapsed(self) -> float:
        return self.clock() - self.started

    def elapsed_ms(self) -> int:
        return int(self.elapsed() * 1000)

    def exhausted(self) -> bool:
        return self.elapsed() >= self.seconds - self.margin

    def check(self) -> None:
        if self.exhausted():
            raise BudgetExceeded(f"{self.elapsed():.1f}s of {self.seconds:.0f}s budget used")


class FeaturedScoreJob:
    def __init__(
        self,
        engine: Engine,
        provider: ReferenceStatsProvider | None = None,
        *,
        page_size: int = PAGE_SIZE,
        write_chunk: int = WRITE_CHUNK,
        budget: ExecutionBudget | None = None,
        now: datetime | None = None,
    ) -> None:
        self.store = CatalogStore(engine)
        self.provider = provider
        self.page_size = page_size
        self.write_chunk = write_chunk
        self.budget = budget
        self.now = now

    async def run(self) -> BatchResult:
        budget = self.budget or ExecutionBudget()
        now = self.now or utc_now()
        result = BatchResult()
        try:
            engagement = await self._load_engagement(now)
            budget.check()
            await self._sync_prestige()
            budget.check()
            await self._score_pages(engagement, now, result, budget)
        except BudgetExceeded as exc:
            result.budget_exhausted = True
            logger.warning("Featured score sweep stopped early: %s", exc)
        # the stale pass runs even after a budget cutoff
        result.stale_zeroed = await self._zero_stale()
        result.duration_ms = budget.elapsed_ms()
        logger.info(
            "Featured scores complete: processed=%s updated=%s zeroed=%s stale_zeroed=%s duration_ms=%s",
            result.items_processed,
            result.items_updated,
            result.items_zeroed,
            result.stale_zeroed,
            result.duration_ms,
        )
        return result

    async def _load_engagement(self, now: datetime) -> dict[int, EngagementCounts]:
        try:
            engagement = await run_blocking(self.store.engagement_aggregates, window_start(now))
        except UpstreamQueryError as exc:
            logger.error("Engagement aggregate failed, scoring without heat: %s", exc)
            return {}
        logger.info("Engagement loaded for %s items", len(engagement))
        return engagement

    async def _sync_prestige(self) -> None:
        if self.provider is None:
            logger.warning("REFERENCE_API_URL not configured; skipping prestige sync")
            return
        try:
            await sync_unsynced_prestige(self.store, self.provider)
        except Exception:
            logger.exception("Prestige sync failed; scoring with stored prestige")

    async def _score_pages(
        self,
        engagement: dict[int, EngagementCounts],
        now: datetime,
        result: BatchResult,
        budget: ExecutionBudget,
    ) -> None:
        after_id = 0
        page = 0
        while True:
            budget.check()
            try:
                items = await run_blocking(self.store.fetch_page, after_id, self.page_size)
            except UpstreamQueryError as exc:
                logger.error("Listing page %s (after id %s) failed: %s", page, after_id, exc)
                break
            if not items:
                break

            updates: list[tuple[int, float]] = []
            for item in items:
                if not item.has_images:
                    updates.append((item.id, 0.0))
                    result.items_zeroed += 1
                    continue
                updates.append((item.id, score_item(item, engagement.get(item.id, NO_ENGAGEMENT), now)))
            result.items_processed += len(items)

            for chunk in chunked(updates, self.write_chunk):
                budget.check()
                result.items_updated += await self._write_chunk(chunk)

            logger.info("Scored page %s: %s items (through id %s)", page, len(items), items[-1].id)
            if len(items) < self.page_size:
                break
            after_id = items[-1].id
            page += 1

    async def _write_chunk(self, chunk: list[tuple[int, float]]) -> int:
        outcomes = await asyncio.gather(
            *(run_blocking(self.store.update_score, item_id, score) for item_id, score in chunk),
            return_exceptions=True,
        )
        written = 0
        for (item_id, _), outcome in zip(chunk, outcomes):
            if isinstance(outcome, PersistenceError):
                logger.error("Score write failed for listing %s: %s", item_id, outcome)
            elif isinstance(outcome, Exception):
                logger.error("Unexpected error writing listing %s: %r", item_id, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                written += 1
        return written

    async def _zero_stale(self) -> int:
        try:
            zeroed = await run_blocking(self.store.zero_stale_scores)
        except PersistenceError as exc:
            logger.error("Zeroing unavailable listings failed: %s", exc)
            return 0
        logger.info("Zeroed %s unavailable listings", zeroed)
        return zeroed


async def run_featured_scores(engine: Engine | None = None) -> BatchResult:
    load_dotenv()
    engine = engine or create_engine_from_env()
    client = client_from_env()
    provider = ReferenceStatsProvider(client) if client else None
    try:
        return await FeaturedScoreJob(engine, provider).run()
    finally:
        if provider:
            await provider.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    print(json.dumps(asyncio.run(run_featured_scores()).as_dict()))
