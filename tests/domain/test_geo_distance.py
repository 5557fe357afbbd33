from __future__ import annotations

import pytest

from losslocator.domain.geo import bounding_box, distance_miles, km_to_miles


def test_distance_is_zero_for_same_point() -> None:
    assert distance_miles(32.7767, -96.797, 32.7767, -96.797) == 0.0


def test_distance_dallas_to_fort_worth() -> None:
    # downtown Dallas to downtown Fort Worth is roughly 30 miles
    assert distance_miles(32.7767, -96.797, 32.7555, -97.3308) == pytest.approx(31.0, abs=0.5)


def test_distance_is_symmetric() -> None:
    forward = distance_miles(32.7767, -96.797, 32.777, -96.7965)
    backward = distance_miles(32.777, -96.7965, 32.7767, -96.797)
    assert forward == pytest.approx(backward)
    assert forward < 0.05


def test_km_to_miles() -> None:
    assert km_to_miles(5.0) == pytest.approx(3.106855)


def test_bounding_box_contains_radius() -> None:
    min_lat, max_lat, min_lng, max_lng = bounding_box(32.7767, -96.797, 3.0)

    assert min_lat < 32.7767 < max_lat
    assert min_lng < -96.797 < max_lng
    assert distance_miles(32.7767, -96.797, max_lat, -96.797) == pytest.approx(3.0, rel=1e-3)
    assert distance_miles(32.7767, -96.797, 32.7767, max_lng) >= 3.0


def test_bounding_box_near_pole_spans_all_longitudes() -> None:
    _, max_lat, min_lng, max_lng = bounding_box(90.0, 10.0, 5.0)

    assert max_lat == 90.0
    assert (min_lng, max_lng) == (-180.0, 180.0)
