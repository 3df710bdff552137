from datetime import timedelta

import pytest

from featured.logic.freshness import compute_freshness, multiplier_for_age
from featured.logic.models import CatalogItemSnapshot
from conftest import NAIVE_NOW, NOW


def seen(days, **overrides):
    return CatalogItemSnapshot(id=1, first_seen_at=NOW - timedelta(days=days), **overrides)


@pytest.mark.parametrize(
    "days, multiplier",
    [(0.5, 1.4), (2.99, 1.4), (3, 1.2), (5, 1.2), (15, 1.0), (60, 0.85), (120, 0.5), (179.9, 0.5), (180, 0.3), (900, 0.3)],
)
def test_freshness_brackets(days, multiplier):
    assert compute_freshness(seen(days), NOW) == multiplier


def test_initial_import_is_neutral_regardless_of_age():
    assert compute_freshness(seen(1, is_initial_import=True), NOW) == 1.0
    assert compute_freshness(seen(365, is_initial_import=True), NOW) == 1.0


def test_missing_first_seen_is_neutral():
    assert compute_freshness(CatalogItemSnapshot(id=1), NOW) == 1.0
    assert multiplier_for_age(None) == 1.0


def test_future_first_seen_counts_as_brand_new():
    assert compute_freshness(seen(-1), NOW) == 1.4


def test_naive_and_string_timestamps_are_read_as_utc():
    naive = CatalogItemSnapshot(id=1, first_seen_at=NAIVE_NOW - timedelta(days=5))
    text = CatalogItemSnapshot(id=1, first_seen_at=(NOW - timedelta(days=60)).isoformat())

    assert compute_freshness(naive, NOW) == 1.2
    assert compute_freshness(text, NOW) == 0.85


def test_freshness_never_increases_with_age():
    ages = [0, 1, 3, 6, 7, 29, 30, 89, 90, 179, 180, 1000]
    multipliers = [multiplier_for_age(age) for age in ages]

    assert multipliers == sorted(multipliers, reverse=True)
