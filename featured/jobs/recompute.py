"""Single-item featured score recompute.

Called inline by admin data corrections (certification fix, artisan fix,
hide/unhide) so the item does not wait for the next sweep. Uses the same
scoring core as the batch job; only the engagement query shape differs.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from dotenv import load_dotenv
from sqlalchemy.engine import Engine

from featured.db.session import create_engine_from_env
from featured.errors import PersistenceError
from featured.logic.models import ZERO_PRESTIGE, EngagementCounts, ScoreBreakdown
from featured.logic.quality import is_real_artisan
from featured.logic.scoring import explain_score, score_item
from featured.reference.prestige import ReferenceStatsProvider, client_from_env
from featured.store.catalog import SIGNAL_SOURCES, CatalogStore
from featured.utils.dates import utc_now, window_start
from featured.utils.executor import run_blocking

logger = logging.getLogger(__name__)


async def load_item_engagement(store: CatalogStore, item_id: int, since: datetime) -> EngagementCounts:
    """Count each engagement signal for one item with its own scoped query."""
    signals = list(SIGNAL_SOURCES)
    counts = await asyncio.gather(*(run_blocking(store.count_signal, item_id, signal, since) for signal in signals))
    return EngagementCounts(**dict(zip(signals, counts)))


class IncrementalRecompute:
    def __init__(
        self,
        engine: Engine,
        provider: ReferenceStatsProvider | None = None,
        *,
        now: datetime | None = None,
    ) -> None:
        self.store = CatalogStore(engine)
        self.provider = provider
        self.now = now

    async def recompute(self, item_id: int, artisan_resync_hint: str | None = None) -> float:
        """Recompute, persist and return one item's score.

        Raises NotFoundError when the item does not exist. Upstream and
        persistence failures propagate to the caller.
        """
        if artisan_resync_hint:
            await self._resync_prestige(item_id, artisan_resync_hint)

        snapshot, _ = await run_blocking(self.store.fetch_item, item_id)
        now = self.now or utc_now()
        engagement = await load_item_engagement(self.store, item_id, window_start(now))
        score = score_item(snapshot, engagement, now)
        try:
            await run_blocking(self.store.update_score, item_id, score)
        except PersistenceError:
            logger.error("Featured score write failed for listing %s", item_id)
            raise
        logger.info("Recomputed featured score for listing %s: %s (%s)", item_id, score, engagement)
        return score

    async def explain(self, item_id: int) -> ScoreBreakdown:
        snapshot, stored = await run_blocking(self.store.fetch_item, item_id)
        now = self.now or utc_now()
        engagement = await load_item_engagement(self.store, item_id, window_start(now))
        return explain_score(snapshot, engagement, now, stored_score=stored)

    async def _resync_prestige(self, item_id: int, artisan_id: str) -> None:
        if not is_real_artisan(artisan_id):
            await run_blocking(self.store.write_item_prestige, item_id, ZERO_PRESTIGE)
            return
        if self.provider is None:
            logger.warning("REFERENCE_API_URL not configured; not resyncing prestige for listing %s", item_id)
            return
        stats = await self.provider.resolve(artisan_id)
        if stats is None:
            logger.info("Artisan %s not in reference dataset; zeroing prestige on listing %s", artisan_id, item_id)
        await run_blocking(self.store.write_item_prestige, item_id, stats or ZERO_PRESTIGE)


async def recompute_item(item_id: int, artisan_id: str | None = None, engine: Engine | None = None) -> float:
    load_dotenv()
    engine = engine or create_engine_from_env()
    client = client_from_env() if artisan_id else None
    provider = ReferenceStatsProvider(client) if client else None
    try:
        return await IncrementalRecompute(engine, provider).recompute(item_id, artisan_id)
    finally:
        if provider:
            await provider.close()


async def explain_item(engine: Engine, item_id: int, now: datetime | None = None) -> ScoreBreakdown:
    """Read-only score breakdown for one item; nothing is written."""
    return await IncrementalRecompute(engine, now=now).explain(item_id)
