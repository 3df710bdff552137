from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, MetaData, Table, Text, create_engine, select

from featured.logic.models import PrestigeStats

NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
NAIVE_NOW = NOW.replace(tzinfo=None)

metadata = MetaData()

listings = Table(
    "listings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("artisan_id", Text),
    Column("artisan_elite_factor", Float),
    Column("artisan_elite_count", Integer),
    Column("artisan_confidence", Text),
    Column("cert_type", Text),
    Column("price_value", Float),
    Column("price_currency", Text),
    Column("images", JSON, nullable=False, default=list),
    Column("first_seen_at", DateTime),
    Column("is_initial_import", Boolean, nullable=False, default=False),
    Column("is_available", Boolean, nullable=False, default=True),
    Column("attribution", Text),
    Column("school", Text),
    Column("era", Text),
    Column("province", Text),
    Column("description", Text),
    Column("length_cm", Float),
    Column("height_cm", Float),
    Column("width_cm", Float),
    Column("featured_score", Float, nullable=False, default=0),
)

user_favorites = Table(
    "user_favorites",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("listing_id", Integer, ForeignKey("listings.id")),
    Column("created_at", DateTime, nullable=False),
)

dealer_clicks = Table(
    "dealer_clicks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("listing_id", Integer, ForeignKey("listings.id")),
    Column("created_at", DateTime, nullable=False),
)

listing_views = Table(
    "listing_views",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("listing_id", Integer, ForeignKey("listings.id")),
    Column("created_at", DateTime, nullable=False),
)

activity_events = Table(
    "activity_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("listing_id", Integer, ForeignKey("listings.id")),
    Column("event_type", Text, nullable=False),
    Column("created_at", DateTime, nullable=False),
)

SIGNAL_TABLES = {
    "favorites": (user_favorites, None),
    "dealer_clicks": (dealer_clicks, None),
    "views": (listing_views, None),
    "quickview_opens": (activity_events, "quickview_open"),
    "pinch_zooms": (activity_events, "image_pinch_zoom"),
}


def add_listing(engine, **overrides) -> int:
    row = {
        "artisan_id": None,
        "images": ["a.jpg"],
        "first_seen_at": NAIVE_NOW - timedelta(days=10),
        "is_initial_import": False,
        "is_available": True,
        "featured_score": 0,
    }
    row.update(overrides)
    with engine.begin() as conn:
        return conn.execute(listings.insert().values(**row)).inserted_primary_key[0]


def add_events(engine, listing_id, signal, count, *, days_ago=1) -> None:
    table, event_type = SIGNAL_TABLES[signal]
    rows = []
    for idx in range(count):
        row = {"listing_id": listing_id, "created_at": NAIVE_NOW - timedelta(days=days_ago, minutes=idx)}
        if event_type:
            row["event_type"] = event_type
        rows.append(row)
    if rows:
        with engine.begin() as conn:
            conn.execute(table.insert(), rows)


def stored_listing(engine, listing_id):
    with engine.connect() as conn:
        return conn.execute(select(listings).where(listings.c.id == listing_id)).mappings().one()


class FakePrestigeClient:
    """Stands in for PrestigeClient; records every lookup."""

    def __init__(self, makers=None, schools=None, failing=()):
        self.makers = makers or {}
        self.schools = schools or {}
        self.failing = set(failing)
        self.calls = []

    async def fetch_maker(self, code):
        self.calls.append(("maker", code))
        if code in self.failing:
            from featured.errors import UpstreamQueryError

            raise UpstreamQueryError(f"lookup for {code} failed")
        return self.makers.get(code)

    async def fetch_school(self, code):
        self.calls.append(("school", code))
        return self.schools.get(code)

    async def close(self):
        return None


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'featured.db'}", future=True)
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def fake_client():
    return FakePrestigeClient(
        makers={"MAS590": PrestigeStats(0.9, 40), "KUN123": PrestigeStats(0.3, 4)},
        schools={"NS-SOSHU": PrestigeStats(0.4, 9)},
    )


@pytest.fixture()
def seeded_ids(engine):
    """Three available listings, one disqualified, one sold with a leftover score."""
    top = add_listing(
        engine,
        artisan_id="MAS590",
        artisan_elite_factor=0.9,
        artisan_elite_count=40,
        artisan_confidence="HIGH",
        cert_type="Juyo",
        price_value=2_000_000,
        price_currency="JPY",
        images=["1.jpg", "2.jpg", "3.jpg", "4.jpg", "5.jpg"],
        first_seen_at=NAIVE_NOW - timedelta(days=1),
        attribution="Masamune",
        school="Soshu",
        era="Kamakura",
        length_cm=70.3,
        description="A long and careful description of the blade. " * 4,
    )
    plain = add_listing(
        engine,
        artisan_id="UNKNOWN",
        price_value=1200,
        price_currency="USD",
        images=["1.jpg", "2.jpg"],
        first_seen_at=NAIVE_NOW - timedelta(days=120),
    )
    bare = add_listing(engine, cert_type="Hozon", images=[], is_initial_import=True)
    sold = add_listing(engine, is_available=False, featured_score=88.5)
    add_events(engine, top, "favorites", 2)
    add_events(engine, top, "dealer_clicks", 5)
    add_events(engine, top, "views", 30)
    add_events(engine, top, "quickview_opens", 3)
    add_events(engine, top, "pinch_zooms", 1)
    add_events(engine, plain, "views", 4)
    add_events(engine, plain, "favorites", 3, days_ago=45)
    return {"top": top, "plain": plain, "bare": bare, "sold": sold}
