"""Recompute one listing's featured score, optionally resyncing its artisan."""

from __future__ import annotations

import argparse
import asyncio
import logging

from featured.errors import NotFoundError
from featured.jobs.recompute import recompute_item


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("item_id", type=int)
    parser.add_argument("--artisan-id", help="artisan code whose prestige stats should be resynced first")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    try:
        score = asyncio.run(recompute_item(args.item_id, args.artisan_id))
    except NotFoundError as exc:
        raise SystemExit(str(exc)) from exc
    print(f"Listing {args.item_id} featured_score = {score}")


if __name__ == "__main__":
    main()
