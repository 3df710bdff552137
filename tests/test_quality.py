import pytest

from featured.logic.models import CatalogItemSnapshot, PrestigeStats
from featured.logic.quality import (
    COMPLETENESS_MAX,
    QUALITY_MAX,
    cert_points,
    compute_quality,
    is_real_artisan,
    price_damping,
    quality_breakdown,
    reference_price,
)

ELITE = PrestigeStats(1.0, 100)


def make_snapshot(**overrides):
    fields = {"id": 1, "artisan_id": "MAS590", "images": ("a.jpg",)}
    fields.update(overrides)
    return CatalogItemSnapshot(**fields)


def test_quality_ceiling_constants():
    assert COMPLETENESS_MAX == 55
    assert QUALITY_MAX == 295


@pytest.mark.parametrize(
    "value, points",
    [
        ("Tokuju", 40),
        ("tokubetsu_juyo", 40),
        ("TOKUBETSU JUYO", 40),
        ("JuBi", 35),
        ("Juyo Bijutsuhin", 35),
        ("Juyo", 28),
        ("tokubetsu-hozon", 14),
        ("TokuHozon", 14),
        ("TokuKicho", 10),
        ("hozon", 7),
        ("Kanteisho", 0),
        (None, 0),
        ("", 0),
    ],
)
def test_cert_points_accepts_aliases(value, points):
    assert cert_points(value) == points


def test_sentinel_artisans_are_not_real():
    assert is_real_artisan("MAS590")
    assert not is_real_artisan("UNKNOWN")
    assert not is_real_artisan("unknown")
    assert not is_real_artisan(" Unknown ")
    assert not is_real_artisan("")
    assert not is_real_artisan(None)


def test_reference_price_converts_and_rejects_unusable_values():
    assert reference_price(1000, None) == 1000
    assert reference_price(2000, "usd") == 300_000
    assert reference_price(1000, "XYZ") == 0
    assert reference_price(0, "JPY") == 0
    assert reference_price(-50, "JPY") == 0
    assert reference_price(None, "JPY") == 0


def test_price_damping_is_linear_up_to_the_ceiling():
    assert price_damping(None, None) == 1.0
    assert price_damping(250_000, "JPY") == 0.5
    assert price_damping(500_000, "JPY") == 1.0
    assert price_damping(9_000_000, "JPY") == 1.0
    assert price_damping(1000, "XYZ") == 0.0


def test_elite_artisan_at_full_price():
    snapshot = make_snapshot(price_value=5_000_000, price_currency="JPY")

    # stature 200 + one image 3 + price 10
    assert compute_quality(snapshot, ELITE) == 213


def test_cheap_item_damps_stature():
    snapshot = make_snapshot(price_value=30_000, price_currency="JPY")

    breakdown = quality_breakdown(snapshot, ELITE)

    assert breakdown.raw_stature == 200
    assert breakdown.stature == pytest.approx(12)
    assert breakdown.total == pytest.approx(25)


def test_missing_price_skips_damping():
    breakdown = quality_breakdown(make_snapshot(), ELITE)

    assert breakdown.price_damping == 1.0
    assert breakdown.stature == 200


def test_foreign_currency_is_converted_before_damping():
    snapshot = make_snapshot(price_value=2000, price_currency="USD")

    assert quality_breakdown(snapshot, ELITE).stature == pytest.approx(120)


def test_unknown_currency_zeroes_stature_but_keeps_price_points():
    snapshot = make_snapshot(price_value=1000, price_currency="XYZ")

    breakdown = quality_breakdown(snapshot, ELITE)

    assert breakdown.stature == 0
    assert breakdown.total == 13


@pytest.mark.parametrize("artisan_id", ["UNKNOWN", "unknown", None])
def test_sentinel_artisan_earns_no_stature(artisan_id):
    snapshot = make_snapshot(artisan_id=artisan_id)

    assert quality_breakdown(snapshot, ELITE).stature == 0


def test_unsynced_prestige_earns_no_stature():
    assert quality_breakdown(make_snapshot(), None).stature == 0


def test_fully_documented_listing():
    snapshot = make_snapshot(
        cert_type="Juyo",
        price_value=2_000_000,
        price_currency="JPY",
        artisan_confidence="high",
        images=tuple(f"{idx}.jpg" for idx in range(5)),
        attribution="Masamune",
        school="Soshu",
        era="Kamakura",
        length_cm=70.3,
        description="x" * 101,
    )

    breakdown = quality_breakdown(snapshot, PrestigeStats(0.5, 25))

    assert breakdown.completeness_total == COMPLETENESS_MAX
    assert breakdown.total == 100 + 28 + 55


def test_completeness_edges():
    images = {item.name: item for item in quality_breakdown(make_snapshot(images=("a",) * 7), None).completeness}
    assert images["images"].points == 15

    sparse = make_snapshot(images=("a", "b"), description="x" * 100, length_cm=0.0, height_cm=4.2)
    contributions = {item.name: item for item in quality_breakdown(sparse, None).completeness}

    assert contributions["images"].points == 6
    assert not contributions["description"].present
    assert contributions["measurements"].points == 5


def test_quality_never_decreases_as_price_rises():
    prices = [None, 1, 10_000, 100_000, 250_000, 499_999, 500_000, 10_000_000]
    totals = [compute_quality(make_snapshot(price_value=price), ELITE) for price in prices[1:]]

    assert totals == sorted(totals)
    assert compute_quality(make_snapshot(), ELITE) + 10 == totals[-1]
