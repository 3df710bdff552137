"""Age-based freshness multiplier."""

from __future__ import annotations

from datetime import datetime

from featured.logic.models import CatalogItemSnapshot
from featured.utils.dates import age_in_days

NEUTRAL = 1.0

# (upper bound in days, multiplier); first match wins.
BRACKETS: tuple[tuple[float, float], ...] = (
    (3, 1.4),
    (7, 1.2),
    (30, 1.0),
    (90, 0.85),
    (180, 0.5),
)
OLDEST = 0.3

MULTIPLIERS = frozenset([NEUTRAL, OLDEST, *(multiplier for _, multiplier in BRACKETS)])


def multiplier_for_age(age_days: float | None) -> float:
    if age_days is None:
        return NEUTRAL
    for upper, multiplier in BRACKETS:
        if age_days < upper:
            return multiplier
    return OLDEST


def compute_freshness(snapshot: CatalogItemSnapshot, now: datetime) -> float:
    if snapshot.is_initial_import:
        return NEUTRAL
    return multiplier_for_age(age_in_days(snapshot.first_seen_at, now))
