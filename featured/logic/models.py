"""Scoring data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence


@dataclass(slots=True, frozen=True)
class PrestigeStats:
    elite_factor: float = 0.0
    elite_count: int = 0

    @classmethod
    def from_raw(cls, elite_factor: Any, elite_count: Any) -> "PrestigeStats":
        factor = min(max(float(elite_factor or 0.0), 0.0), 1.0)
        count = max(int(elite_count or 0), 0)
        return cls(elite_factor=factor, elite_count=count)


ZERO_PRESTIGE = PrestigeStats()


@dataclass(slots=True, frozen=True)
class CatalogItemSnapshot:
    """Fields of one catalog item read for a single score computation."""

    id: int
    artisan_id: str | None = None
    prestige: PrestigeStats | None = None
    cert_type: str | None = None
    price_value: float | None = None
    price_currency: str | None = None
    artisan_confidence: str | None = None
    images: Sequence[Any] = ()
    first_seen_at: datetime | None = None
    is_initial_import: bool = False
    is_available: bool = True
    attribution: str | None = None
    school: str | None = None
    era: str | None = None
    province: str | None = None
    description: str | None = None
    length_cm: float | None = None
    height_cm: float | None = None
    width_cm: float | None = None

    @property
    def image_count(self) -> int:
        return len(self.images)

    @property
    def has_images(self) -> bool:
        return self.image_count > 0


@dataclass(slots=True, frozen=True)
class EngagementCounts:
    favorites: int = 0
    dealer_clicks: int = 0
    views: int = 0
    quickview_opens: int = 0
    pinch_zooms: int = 0

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "EngagementCounts":
        return cls(
            favorites=int(row.get("favorites") or 0),
            dealer_clicks=int(row.get("dealer_clicks") or 0),
            views=int(row.get("views") or 0),
            quickview_opens=int(row.get("quickview_opens") or 0),
            pinch_zooms=int(row.get("pinch_zooms") or 0),
        )


NO_ENGAGEMENT = EngagementCounts()


@dataclass(slots=True)
class Contribution:
    name: str
    points: float
    present: bool = True


@dataclass(slots=True)
class QualityBreakdown:
    raw_stature: float
    price_damping: float
    stature: float
    cert_points: float
    completeness: list[Contribution] = field(default_factory=list)

    @property
    def completeness_total(self) -> float:
        return sum(item.points for item in self.completeness)

    @property
    def total(self) -> float:
        return self.stature + self.cert_points + self.completeness_total


@dataclass(slots=True)
class HeatTerm:
    signal: str
    raw: int
    weight: float
    cap: float
    contribution: float


@dataclass(slots=True)
class ScoreBreakdown:
    item_id: int
    quality: QualityBreakdown
    heat: list[HeatTerm]
    freshness: float
    score: float
    has_images: bool
    stored_score: float | None = None

    @property
    def heat_total(self) -> float:
        return sum(term.contribution for term in self.heat)

    @property
    def stale(self) -> bool:
        if self.stored_score is None:
            return False
        return abs(self.score - self.stored_score) > 0.01
