"""Featured score combiner shared by the batch sweep and single-item recompute.

    featured_score = round2((quality + heat) * freshness)

Items without images are disqualified and always score 0.
"""

from __future__ import annotations

import math
from datetime import datetime

from featured.logic.freshness import MULTIPLIERS, compute_freshness
from featured.logic.heat import HEAT_MAX, compute_heat, heat_terms
from featured.logic.models import CatalogItemSnapshot, EngagementCounts, ScoreBreakdown
from featured.logic.quality import QUALITY_MAX, compute_quality, quality_breakdown


def round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


SCORE_MAX = round2((QUALITY_MAX + HEAT_MAX) * max(MULTIPLIERS))


def compute_score(snapshot: CatalogItemSnapshot, quality: float, heat: float, freshness: float) -> float:
    if not snapshot.has_images:
        return 0.0
    return round2((quality + heat) * freshness)


def score_item(snapshot: CatalogItemSnapshot, engagement: EngagementCounts, now: datetime) -> float:
    """Score one item from its snapshot and engagement counts."""
    if not snapshot.has_images:
        return 0.0
    quality = compute_quality(snapshot, snapshot.prestige)
    heat = compute_heat(engagement)
    freshness = compute_freshness(snapshot, now)
    return compute_score(snapshot, quality, heat, freshness)


def explain_score(
    snapshot: CatalogItemSnapshot,
    engagement: EngagementCounts,
    now: datetime,
    *,
    stored_score: float | None = None,
) -> ScoreBreakdown:
    quality = quality_breakdown(snapshot, snapshot.prestige)
    terms = heat_terms(engagement)
    freshness = compute_freshness(snapshot, now)
    heat = sum(term.contribution for term in terms)
    return ScoreBreakdown(
        item_id=snapshot.id,
        quality=quality,
        heat=terms,
        freshness=freshness,
        score=compute_score(snapshot, quality.total, heat, freshness),
        has_images=snapshot.has_images,
        stored_score=stored_score,
    )
