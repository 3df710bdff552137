"""FastAPI application exposing the featured score triggers."""

from __future__ import annotations

import functools
import logging
import os
import secrets
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from featured.db.session import create_engine_from_env
from featured.errors import NotFoundError, PersistenceError, UpstreamQueryError
from featured.jobs.featured_scores import FeaturedScoreJob
from featured.jobs.prestige import sync_prestige
from featured.jobs.recompute import IncrementalRecompute, explain_item
from featured.logic.heat import HEAT_MAX
from featured.logic.models import ScoreBreakdown
from featured.reference.prestige import ReferenceStatsProvider, client_from_env

logger = logging.getLogger(__name__)

app = FastAPI(title="Featured Score API")


class RecomputeRequest(BaseModel):
    artisan_id: str | None = None


class RecomputeResponse(BaseModel):
    item_id: int
    score: float


class SyncPrestigeRequest(BaseModel):
    artisan_codes: list[str] | None = None
    all: bool = False


@functools.lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine_from_env()


async def get_provider() -> AsyncIterator[ReferenceStatsProvider | None]:
    client = client_from_env()
    provider = ReferenceStatsProvider(client) if client else None
    try:
        yield provider
    finally:
        if provider:
            await provider.close()


def require_cron_secret(
    authorization: str | None = Header(default=None),
    x_cron_secret: str | None = Header(default=None),
) -> None:
    secret = os.environ.get("CRON_SECRET")
    if not secret:
        logger.warning("CRON_SECRET not configured; rejecting request")
        raise HTTPException(status_code=401, detail="Unauthorized")
    if authorization and secrets.compare_digest(authorization, f"Bearer {secret}"):
        return
    if x_cron_secret and secrets.compare_digest(x_cron_secret, secret):
        return
    raise HTTPException(status_code=401, detail="Unauthorized")


@app.get("/cron/featured-scores", dependencies=[Depends(require_cron_secret)])
async def compute_featured_scores(
    engine: Engine = Depends(get_engine),
    provider: ReferenceStatsProvider | None = Depends(get_provider),
) -> JSONResponse:
    result = await FeaturedScoreJob(engine, provider).run()
    return JSONResponse({"success": True, **result.as_dict()})


@app.post(
    "/admin/items/{item_id}/recompute",
    response_model=RecomputeResponse,
    dependencies=[Depends(require_cron_secret)],
)
async def recompute_item(
    item_id: int,
    payload: RecomputeRequest | None = None,
    engine: Engine = Depends(get_engine),
    provider: ReferenceStatsProvider | None = Depends(get_provider),
) -> RecomputeResponse:
    hint = payload.artisan_id if payload else None
    try:
        score = await IncrementalRecompute(engine, provider).recompute(item_id, hint)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Listing {item_id} not found") from exc
    except (UpstreamQueryError, PersistenceError) as exc:
        logger.error("Recompute failed for listing %s: %s", item_id, exc)
        raise HTTPException(status_code=502, detail="Recompute failed") from exc
    return RecomputeResponse(item_id=item_id, score=score)


@app.post("/admin/sync-prestige", dependencies=[Depends(require_cron_secret)])
async def sync_prestige_stats(
    payload: SyncPrestigeRequest,
    engine: Engine = Depends(get_engine),
    provider: ReferenceStatsProvider | None = Depends(get_provider),
) -> JSONResponse:
    if not payload.all and not payload.artisan_codes:
        raise HTTPException(status_code=400, detail="Must provide artisan_codes or all: true")
    if provider is None:
        raise HTTPException(status_code=503, detail="Reference dataset not configured")
    codes = None if payload.all else payload.artisan_codes
    try:
        result = await sync_prestige(engine, provider, codes)
    except UpstreamQueryError as exc:
        raise HTTPException(status_code=502, detail="Prestige sync failed") from exc
    return JSONResponse({"success": True, **result.as_dict()})


@app.get("/admin/items/{item_id}/score-breakdown", dependencies=[Depends(require_cron_secret)])
async def score_breakdown(item_id: int, engine: Engine = Depends(get_engine)) -> JSONResponse:
    try:
        breakdown = await explain_item(engine, item_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Listing {item_id} not found") from exc
    except UpstreamQueryError as exc:
        raise HTTPException(status_code=502, detail="Score breakdown failed") from exc
    return JSONResponse(breakdown_payload(breakdown))


def breakdown_payload(breakdown: ScoreBreakdown) -> dict[str, Any]:
    quality = breakdown.quality
    return {
        "item_id": breakdown.item_id,
        "quality": {
            "total": quality.total,
            "raw_stature": quality.raw_stature,
            "price_damping": quality.price_damping,
            "stature": quality.stature,
            "cert_points": quality.cert_points,
            "completeness": {item.name: item.points for item in quality.completeness},
            "completeness_total": quality.completeness_total,
        },
        "heat": {
            "total": breakdown.heat_total,
            "max": HEAT_MAX,
            "items": [
                {
                    "signal": term.signal,
                    "raw": term.raw,
                    "weight": term.weight,
                    "cap": term.cap,
                    "contribution": term.contribution,
                }
                for term in breakdown.heat
            ],
        },
        "freshness": breakdown.freshness,
        "score": {
            "computed": breakdown.score,
            "stored": breakdown.stored_score,
            "stale": breakdown.stale,
            "has_images": breakdown.has_images,
        },
        "formula": f"({quality.total} + {breakdown.heat_total}) x {breakdown.freshness}",
    }
