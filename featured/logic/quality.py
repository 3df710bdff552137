"""Quality score: artisan stature, certification points and listing completeness.

quality = stature + cert_points + completeness

``stature`` is the artisan's elite factor scaled by ``STATURE_WEIGHT`` and
damped linearly by price up to ``DAMPING_CEILING`` (in the reference
currency). Items without a price skip damping. Sentinel artisan ids never
earn stature, whatever prestige values are attached to the row.
"""

from __future__ import annotations

import pathlib
import re
from typing import Any

import yaml

from featured.logic.models import CatalogItemSnapshot, Contribution, PrestigeStats, QualityBreakdown

TABLES_PATH = pathlib.Path(__file__).with_name("scoring.yml")

STATURE_WEIGHT = 200.0

IMAGE_POINTS = 3
IMAGE_CAP = 15
PRICE_POINTS = 10
ATTRIBUTION_POINTS = 8
MEASUREMENT_POINTS = 5
DESCRIPTION_POINTS = 5
DESCRIPTION_MIN_LENGTH = 100
ERA_POINTS = 4
SCHOOL_POINTS = 3
HIGH_CONFIDENCE_POINTS = 5

COMPLETENESS_MAX = (
    IMAGE_CAP
    + PRICE_POINTS
    + ATTRIBUTION_POINTS
    + MEASUREMENT_POINTS
    + DESCRIPTION_POINTS
    + ERA_POINTS
    + SCHOOL_POINTS
    + HIGH_CONFIDENCE_POINTS
)

_SEPARATORS_RE = re.compile(r"[\s_\-]+")


def load_tables(path: pathlib.Path = TABLES_PATH) -> dict[str, Any]:
    return yaml.safe_load(path.read_text())


def normalize_key(value: str) -> str:
    return _SEPARATORS_RE.sub(" ", value.strip().lower()).strip()


def _build_cert_points(tiers: list[dict[str, Any]]) -> dict[str, float]:
    points: dict[str, float] = {}
    for tier in tiers:
        for alias in [tier["tier"], *tier.get("aliases", [])]:
            points[normalize_key(alias)] = float(tier["points"])
    return points


_TABLES = load_tables()

REFERENCE_CURRENCY: str = _TABLES["reference_currency"].upper()
DAMPING_CEILING = float(_TABLES["damping_ceiling"])
CURRENCY_RATES: dict[str, float] = {code.upper(): float(rate) for code, rate in _TABLES["currency_rates"].items()}
CERT_POINTS = _build_cert_points(_TABLES["cert_tiers"])
SENTINEL_ARTISAN_IDS = frozenset(normalize_key(value) for value in _TABLES["sentinel_artisan_ids"])
CERT_MAX = max(CERT_POINTS.values())
QUALITY_MAX = STATURE_WEIGHT + CERT_MAX + COMPLETENESS_MAX


def cert_points(cert_type: str | None) -> float:
    if not cert_type:
        return 0.0
    return CERT_POINTS.get(normalize_key(cert_type), 0.0)


def is_real_artisan(artisan_id: str | None) -> bool:
    if not artisan_id or not artisan_id.strip():
        return False
    return normalize_key(artisan_id) not in SENTINEL_ARTISAN_IDS


def reference_price(price_value: float | None, currency: str | None) -> float:
    """Convert a price into the reference currency; unusable prices map to 0."""
    if price_value is None or price_value <= 0:
        return 0.0
    rate = CURRENCY_RATES.get((currency or REFERENCE_CURRENCY).upper())
    if rate is None:
        return 0.0
    return float(price_value) * rate


def price_damping(price_value: float | None, currency: str | None) -> float:
    if price_value is None:
        return 1.0
    return min(reference_price(price_value, currency) / DAMPING_CEILING, 1.0)


def _has_measurements(snapshot: CatalogItemSnapshot) -> bool:
    return any(value for value in (snapshot.length_cm, snapshot.height_cm, snapshot.width_cm))


def _completeness(snapshot: CatalogItemSnapshot) -> list[Contribution]:
    high_confidence = (snapshot.artisan_confidence or "").strip().upper() == "HIGH"
    long_description = bool(snapshot.description) and len(snapshot.description) > DESCRIPTION_MIN_LENGTH
    flags = [
        ("price", PRICE_POINTS, bool(snapshot.price_value)),
        ("attribution", ATTRIBUTION_POINTS, bool(snapshot.attribution)),
        ("measurements", MEASUREMENT_POINTS, _has_measurements(snapshot)),
        ("description", DESCRIPTION_POINTS, long_description),
        ("era", ERA_POINTS, bool(snapshot.era)),
        ("school", SCHOOL_POINTS, bool(snapshot.school)),
        ("high_confidence", HIGH_CONFIDENCE_POINTS, high_confidence),
    ]
    image_points = float(min(snapshot.image_count * IMAGE_POINTS, IMAGE_CAP))
    contributions = [Contribution("images", image_points, snapshot.image_count > 0)]
    for name, points, present in flags:
        contributions.append(Contribution(name, float(points) if present else 0.0, present))
    return contributions


def quality_breakdown(snapshot: CatalogItemSnapshot, prestige: PrestigeStats | None) -> QualityBreakdown:
    elite_factor = prestige.elite_factor if prestige and is_real_artisan(snapshot.artisan_id) else 0.0
    raw_stature = elite_factor * STATURE_WEIGHT
    damping = price_damping(snapshot.price_value, snapshot.price_currency)
    return QualityBreakdown(
        raw_stature=raw_stature,
        price_damping=damping,
        stature=raw_stature * damping,
        cert_points=cert_points(snapshot.cert_type),
        completeness=_completeness(snapshot),
    )


def compute_quality(snapshot: CatalogItemSnapshot, prestige: PrestigeStats | None) -> float:
    return quality_breakdown(snapshot, prestige).total
