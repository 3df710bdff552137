"""Copy artisan prestige stats from the reference dataset onto catalog rows."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Sequence

from sqlalchemy.engine import Engine

from featured.errors import PersistenceError, UpstreamQueryError
from featured.logic.models import ZERO_PRESTIGE
from featured.reference.prestige import ReferenceStatsProvider
from featured.store.catalog import CatalogStore
from featured.utils.executor import run_blocking

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PrestigeSyncResult:
    updated: int = 0
    not_found: int = 0
    errors: int = 0
    duration_ms: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


async def sync_unsynced_prestige(store: CatalogStore, provider: ReferenceStatsProvider) -> PrestigeSyncResult:
    """Resolve every artisan code that has no prestige stats yet.

    Codes the reference dataset does not know are written as zero so they are
    not looked up again on the next run.
    """
    started = time.monotonic()
    result = PrestigeSyncResult()
    try:
        codes = await run_blocking(store.unsynced_artisan_ids)
    except UpstreamQueryError as exc:
        logger.error("Could not list unsynced artisan codes: %s", exc)
        result.errors += 1
        return result
    if not codes:
        return result

    resolution = await provider.resolve_many(codes)
    result.errors += len(resolution.failed)
    for code, stats in resolution.stats.items():
        if stats is None:
            result.not_found += 1
        try:
            await run_blocking(store.write_artisan_prestige, code, stats or ZERO_PRESTIGE, only_unsynced=True)
        except PersistenceError as exc:
            logger.error("Prestige write failed for %s: %s", code, exc)
            result.errors += 1
        else:
            result.updated += 1
    result.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "Prestige sync: %s codes, %s updated, %s not found, %s errors",
        len(codes), result.updated, result.not_found, result.errors,
    )
    return result


async def sync_prestige(
    engine: Engine,
    provider: ReferenceStatsProvider,
    codes: Sequence[str] | None = None,
) -> PrestigeSyncResult:
    """Refresh prestige stats for ``codes``, or for every artisan in the catalog."""
    started = time.monotonic()
    store = CatalogStore(engine)
    if codes is None:
        codes = await run_blocking(store.all_artisan_ids)
        logger.info("Full prestige sync over %s artisan codes", len(codes))
    resolution = await provider.resolve_many(codes)
    result = PrestigeSyncResult(not_found=len(resolution.not_found), errors=len(resolution.failed))
    for code, stats in resolution.found.items():
        try:
            await run_blocking(store.write_artisan_prestige, code, stats)
        except PersistenceError as exc:
            logger.error("Prestige write failed for %s: %s", code, exc)
            result.errors += 1
        else:
            result.updated += 1
    result.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("Prestige sync complete: %s", result.as_dict())
    return result
