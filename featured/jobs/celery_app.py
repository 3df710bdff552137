"""Celery configuration for scheduled jobs."""

from __future__ import annotations

import os

from celery import Celery
from celery.schedules import crontab

broker_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")
backend_url = os.environ.get("REDIS_URL", "redis://redis:6379/0")

celery_app = Celery(
    "featured",
    broker=broker_url,
    backend=backend_url,
    include=["featured.jobs.featured_scores", "featured.jobs.recompute"],
)
celery_app.conf.timezone = "UTC"
celery_app.conf.beat_schedule = {
    "featured-scores": {
        "task": "featured.jobs.featured_scores.run_featured_scores",
        "schedule": crontab(minute=os.environ.get("FEATURED_MINUTE", "0"), hour="*/4"),
    },
}


@celery_app.task(name="featured.jobs.featured_scores.run_featured_scores")
def run_featured_scores_task() -> dict:  # pragma: no cover - executed by worker
    import asyncio

    from featured.jobs.featured_scores import run_featured_scores

    return asyncio.run(run_featured_scores()).as_dict()


@celery_app.task(name="featured.jobs.recompute.recompute_item")
def recompute_item_task(item_id: int, artisan_id: str | None = None) -> float:  # pragma: no cover - executed by worker
    import asyncio

    from featured.jobs.recompute import recompute_item

    return asyncio.run(recompute_item(item_id, artisan_id))
