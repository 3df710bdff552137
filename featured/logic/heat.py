"""Heat score from rolling-window engagement counters."""

from __future__ import annotations

from dataclasses import dataclass

from featured.logic.models import EngagementCounts, HeatTerm


@dataclass(slots=True, frozen=True)
class HeatWeight:
    signal: str
    weight: float
    cap: float


# Rarer, higher-intent signals carry more weight per event.
HEAT_WEIGHTS: tuple[HeatWeight, ...] = (
    HeatWeight("favorites", 15, 60),
    HeatWeight("dealer_clicks", 10, 40),
    HeatWeight("quickview_opens", 3, 24),
    HeatWeight("views", 1, 20),
    HeatWeight("pinch_zooms", 8, 16),
)

HEAT_MAX = float(sum(w.cap for w in HEAT_WEIGHTS))


def heat_terms(counts: EngagementCounts) -> list[HeatTerm]:
    terms: list[HeatTerm] = []
    for entry in HEAT_WEIGHTS:
        raw = max(int(getattr(counts, entry.signal)), 0)
        terms.append(
            HeatTerm(
                signal=entry.signal,
                raw=raw,
                weight=entry.weight,
                cap=entry.cap,
                contribution=float(min(raw * entry.weight, entry.cap)),
            )
        )
    return terms


def compute_heat(counts: EngagementCounts) -> float:
    return sum(term.contribution for term in heat_terms(counts))
