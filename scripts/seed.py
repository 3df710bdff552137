"""Seed the database with demo listings and engagement events."""

from __future__ import annotations

import json
from datetime import timedelta

from sqlalchemy import text

from featured.db.session import create_engine_from_env
from featured.utils.dates import utc_now


DEMO_LISTINGS = [
    {
        "artisan_id": "MAS590",
        "cert_type": "Juyo",
        "price_value": 4500000,
        "price_currency": "JPY",
        "artisan_confidence": "HIGH",
        "images": ["front.jpg", "back.jpg", "detail.jpg", "tang.jpg", "papers.jpg"],
        "days_old": 2,
        "is_initial_import": False,
        "is_available": True,
        "attribution": "Masamune",
        "school": "Soshu",
        "era": "Kamakura",
        "length_cm": 70.3,
    },
    {
        "artisan_id": "UNKNOWN",
        "cert_type": None,
        "price_value": 1100,
        "price_currency": "USD",
        "artisan_confidence": "LOW",
        "images": ["tsuba.jpg"],
        "days_old": 45,
        "is_initial_import": False,
        "is_available": True,
        "attribution": None,
        "school": None,
        "era": "Edo",
        "length_cm": None,
    },
    {
        "artisan_id": None,
        "cert_type": "Hozon",
        "price_value": None,
        "price_currency": None,
        "artisan_confidence": None,
        "images": [],
        "days_old": 400,
        "is_initial_import": True,
        "is_available": False,
        "attribution": None,
        "school": None,
        "era": None,
        "length_cm": None,
    },
]


def main() -> None:
    engine = create_engine_from_env()
    now = utc_now()
    with engine.begin() as conn:
        for listing in DEMO_LISTINGS:
            params = {key: value for key, value in listing.items() if key != "days_old"}
            params["images"] = json.dumps(listing["images"])
            params["first_seen_at"] = now - timedelta(days=listing["days_old"])
            listing_id = conn.execute(
                text(
                    """
                    INSERT INTO listings (artisan_id, cert_type, price_value, price_currency, artisan_confidence,
                                          images, first_seen_at, is_initial_import, is_available,
                                          attribution, school, era, length_cm)
                    VALUES (:artisan_id, :cert_type, :price_value, :price_currency, :artisan_confidence,
                            CAST(:images AS JSONB), :first_seen_at, :is_initial_import, :is_available,
                            :attribution, :school, :era, :length_cm)
                    RETURNING id
                    """
                ),
                params,
            ).scalar_one()
            conn.execute(
                text("INSERT INTO listing_views (listing_id, created_at) VALUES (:listing_id, :ts)"),
                [{"listing_id": listing_id, "ts": now - timedelta(hours=hours)} for hours in range(6)],
            )
    print("Seed complete")


if __name__ == "__main__":
    main()
