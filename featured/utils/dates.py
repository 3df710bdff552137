"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pendulum

SECONDS_PER_DAY = 24 * 60 * 60


def engagement_window_days() -> int:
    return int(os.environ.get("ENGAGEMENT_WINDOW_DAYS", "30"))


def utc_now() -> pendulum.DateTime:
    return pendulum.now("UTC")


def as_utc(value: datetime | str | None) -> datetime | None:
    """Normalise a stored timestamp; naive values are taken to be UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = pendulum.parse(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def age_in_days(first_seen: datetime | str | None, now: datetime) -> float | None:
    seen = as_utc(first_seen)
    if seen is None:
        return None
    return (as_utc(now) - seen).total_seconds() / SECONDS_PER_DAY


def window_start(now: datetime, days: int | None = None) -> datetime:
    """Start of the trailing engagement window, as an aware UTC datetime."""
    span = days if days is not None else engagement_window_days()
    return as_utc(now).astimezone(timezone.utc) - timedelta(days=span)
