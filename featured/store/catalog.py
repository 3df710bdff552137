"""Row store access for catalog items, engagement counts and scores."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping

from sqlalchemy import JSON, DateTime, bindparam
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import text

from featured.errors import NotFoundError, PersistenceError, UpstreamQueryError
from featured.logic.models import CatalogItemSnapshot, EngagementCounts, PrestigeStats
from featured.logic.quality import is_real_artisan

logger = logging.getLogger(__name__)

LISTING_COLUMNS = (
    "id, artisan_id, artisan_elite_factor, artisan_elite_count, artisan_confidence, "
    "cert_type, price_value, price_currency, images, first_seen_at, is_initial_import, "
    "is_available, attribution, school, era, province, description, "
    "length_cm, height_cm, width_cm, featured_score"
)

# signal -> (source table, activity event type)
SIGNAL_SOURCES: dict[str, tuple[str, str | None]] = {
    "favorites": ("user_favorites", None),
    "dealer_clicks": ("dealer_clicks", None),
    "views": ("listing_views", None),
    "quickview_opens": ("activity_events", "quickview_open"),
    "pinch_zooms": ("activity_events", "image_pinch_zoom"),
}


def _signal_filter(table: str, event_type: str | None) -> str:
    clause = f"FROM {table} WHERE created_at >= :since"
    if event_type:
        clause += f" AND event_type = '{event_type}'"
    return clause


def _engagement_aggregate_sql() -> str:
    union = "\nUNION ALL\n".join(
        f"SELECT listing_id, '{signal}' AS signal {_signal_filter(table, event_type)}"
        for signal, (table, event_type) in SIGNAL_SOURCES.items()
    )
    sums = ",\n       ".join(
        f"SUM(CASE WHEN signal = '{signal}' THEN 1 ELSE 0 END) AS {signal}" for signal in SIGNAL_SOURCES
    )
    return f"""
        SELECT listing_id,
               {sums}
        FROM (
        {union}
        ) AS events
        WHERE listing_id IS NOT NULL
        GROUP BY listing_id
    """


def _listing_query(where: str):
    return text(f"SELECT {LISTING_COLUMNS} FROM listings WHERE {where}").columns(
        images=JSON, first_seen_at=DateTime
    )


PAGE_QUERY = _listing_query("is_available = TRUE AND id > :after ORDER BY id LIMIT :limit")
ITEM_QUERY = _listing_query("id = :id")
ENGAGEMENT_QUERY = text(_engagement_aggregate_sql()).bindparams(bindparam("since", type_=DateTime(timezone=True)))
SIGNAL_COUNT_QUERIES = {
    signal: text(
        f"SELECT COUNT(*) {_signal_filter(table, event_type)} AND listing_id = :listing_id"
    ).bindparams(bindparam("since", type_=DateTime(timezone=True)))
    for signal, (table, event_type) in SIGNAL_SOURCES.items()
}


def _float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def _images(value: Any) -> tuple[Any, ...]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    return ()


def snapshot_from_row(row: Mapping[str, Any]) -> CatalogItemSnapshot:
    factor = row["artisan_elite_factor"]
    prestige = None if factor is None else PrestigeStats.from_raw(factor, row["artisan_elite_count"])
    return CatalogItemSnapshot(
        id=int(row["id"]),
        artisan_id=row["artisan_id"],
        prestige=prestige,
        cert_type=row["cert_type"],
        price_value=_float_or_none(row["price_value"]),
        price_currency=row["price_currency"],
        artisan_confidence=row["artisan_confidence"],
        images=_images(row["images"]),
        first_seen_at=row["first_seen_at"],
        is_initial_import=bool(row["is_initial_import"]),
        is_available=bool(row["is_available"]),
        attribution=row["attribution"],
        school=row["school"],
        era=row["era"],
        province=row["province"],
        description=row["description"],
        length_cm=_float_or_none(row["length_cm"]),
        height_cm=_float_or_none(row["height_cm"]),
        width_cm=_float_or_none(row["width_cm"]),
    )


class CatalogStore:
    """Blocking row-store operations; callers run them in an executor."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # -- reads ---------------------------------------------------------

    def fetch_page(self, after_id: int, limit: int) -> list[CatalogItemSnapshot]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(PAGE_QUERY, {"after": after_id, "limit": limit}).mappings().all()
        except SQLAlchemyError as exc:
            raise UpstreamQueryError(f"Listing page after id {after_id} failed: {exc}") from exc
        return [snapshot_from_row(row) for row in rows]

    def fetch_item(self, item_id: int) -> tuple[CatalogItemSnapshot, float | None]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(ITEM_QUERY, {"id": item_id}).mappings().first()
        except SQLAlchemyError as exc:
            raise UpstreamQueryError(f"Listing {item_id} fetch failed: {exc}") from exc
        if row is None:
            raise NotFoundError(f"Listing {item_id} not found")
        return snapshot_from_row(row), _float_or_none(row["featured_score"])

    def engagement_aggregates(self, since) -> dict[int, EngagementCounts]:
        """Per-item engagement counts since ``since``, in one round trip."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(ENGAGEMENT_QUERY, {"since": since}).mappings().all()
        except SQLAlchemyError as exc:
            raise UpstreamQueryError(f"Engagement aggregate failed: {exc}") from exc
        return {int(row["listing_id"]): EngagementCounts.from_mapping(row) for row in rows}

    def count_signal(self, item_id: int, signal: str, since) -> int:
        query = SIGNAL_COUNT_QUERIES[signal]
        try:
            with self.engine.connect() as conn:
                count = conn.execute(query, {"listing_id": item_id, "since": since}).scalar_one()
        except SQLAlchemyError as exc:
            raise UpstreamQueryError(f"{signal} count for listing {item_id} failed: {exc}") from exc
        return int(count or 0)

    def unsynced_artisan_ids(self) -> list[str]:
        return self._artisan_ids("artisan_id IS NOT NULL AND artisan_elite_factor IS NULL")

    def all_artisan_ids(self) -> list[str]:
        return self._artisan_ids("artisan_id IS NOT NULL")

    def _artisan_ids(self, where: str) -> list[str]:
        query = text(f"SELECT DISTINCT artisan_id FROM listings WHERE {where} ORDER BY artisan_id")
        try:
            with self.engine.connect() as conn:
                values = conn.execute(query).scalars().all()
        except SQLAlchemyError as exc:
            raise UpstreamQueryError(f"Artisan id scan failed: {exc}") from exc
        return [value for value in values if is_real_artisan(value)]

    # -- writes --------------------------------------------------------

    def update_score(self, item_id: int, score: float) -> None:
        self._write(
            "UPDATE listings SET featured_score = :score WHERE id = :id",
            {"score": score, "id": item_id},
            f"score for listing {item_id}",
        )

    def zero_stale_scores(self) -> int:
        return self._write(
            "UPDATE listings SET featured_score = 0 WHERE is_available = FALSE AND featured_score > 0",
            {},
            "stale score sweep",
        )

    def write_artisan_prestige(self, artisan_id: str, stats: PrestigeStats, *, only_unsynced: bool = False) -> int:
        where = "artisan_id = :artisan_id"
        if only_unsynced:
            where += " AND artisan_elite_factor IS NULL"
        return self._write(
            f"UPDATE listings SET artisan_elite_factor = :factor, artisan_elite_count = :count WHERE {where}",
            {"factor": stats.elite_factor, "count": stats.elite_count, "artisan_id": artisan_id},
            f"prestige for artisan {artisan_id}",
        )

    def write_item_prestige(self, item_id: int, stats: PrestigeStats) -> int:
        return self._write(
            "UPDATE listings SET artisan_elite_factor = :factor, artisan_elite_count = :count WHERE id = :id",
            {"factor": stats.elite_factor, "count": stats.elite_count, "id": item_id},
            f"prestige for listing {item_id}",
        )

    def _write(self, statement: str, params: dict[str, Any], what: str) -> int:
        try:
            with self.engine.begin() as conn:
                rowcount = conn.execute(text(statement), params).rowcount
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Writing {what} failed: {exc}") from exc
        return rowcount or 0


def chunked(items: list, size: int) -> Iterable[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]
