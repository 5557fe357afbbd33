from __future__ import annotations

import pytest

from losslocator.domain.model import (
    Cluster,
    ClusterMembershipError,
    EventType,
    GeoAnnotation,
    ResolutionLevel,
    SourceType,
    VerificationStatus,
)
from tests.helpers.signals import make_signal


def test_seed_takes_first_signal_window_and_position() -> None:
    signal = make_signal(SourceType.WEATHER)

    cluster = Cluster.seed([signal])

    assert cluster.event_type is EventType.WIND
    assert cluster.time_window.start == cluster.time_window.end == signal.occurred_at
    assert cluster.centroid == signal.coordinates
    assert cluster.located_count == 1
    assert cluster.signal_ids == {signal.id}
    assert cluster.source_types_present == {SourceType.WEATHER}


def test_seed_requires_a_signal() -> None:
    with pytest.raises(ClusterMembershipError):
        Cluster.seed([])


def test_attach_averages_centroid_and_extends_window() -> None:
    first = make_signal(position=(32.0, -96.0))
    second = make_signal(SourceType.CAD, position=(33.0, -97.0), minutes=-30)
    cluster = Cluster.seed([first])

    cluster.attach(second)

    assert cluster.centroid is not None
    assert cluster.centroid.latitude == pytest.approx(32.5)
    assert cluster.centroid.longitude == pytest.approx(-96.5)
    assert cluster.located_count == 2
    assert cluster.time_window.start == second.occurred_at
    assert cluster.time_window.end == first.occurred_at
    assert cluster.size == 2


def test_unlocated_signal_leaves_centroid_alone() -> None:
    cluster = Cluster.seed([make_signal(position=(32.0, -96.0))])

    cluster.attach(make_signal(SourceType.NEWS, position=None, minutes=5))

    assert cluster.centroid is not None
    assert cluster.centroid.latitude == 32.0
    assert cluster.located_count == 1
    assert cluster.size == 2


def test_attach_rejects_other_event_type_and_repeats() -> None:
    signal = make_signal()
    cluster = Cluster.seed([signal])

    with pytest.raises(ClusterMembershipError):
        cluster.attach(make_signal(event_type=EventType.HAIL))
    with pytest.raises(ClusterMembershipError):
        cluster.attach(signal)


def test_attach_merges_geo_annotations() -> None:
    zip_level = GeoAnnotation(resolution_level=ResolutionLevel.ZIP, zip_codes=("75201",))
    point = GeoAnnotation(
        resolution_level=ResolutionLevel.POINT,
        zip_codes=("75202",),
        county_fips="48113",
        state_code="TX",
    )
    cluster = Cluster.seed([make_signal(geo=zip_level)])

    cluster.attach(make_signal(SourceType.CAD, geo=point))

    assert cluster.geo is not None
    assert cluster.geo.resolution_level is ResolutionLevel.POINT
    assert cluster.geo.zip_codes == ("75201", "75202")
    assert cluster.geo.county_fips == "48113"


def test_apply_score_never_regresses() -> None:
    cluster = Cluster.seed([make_signal()])
    cluster.apply_score(75, VerificationStatus.REPORTED)

    cluster.apply_score(40, VerificationStatus.PROBABLE)

    assert cluster.confidence_score == 75
    assert cluster.verification_status is VerificationStatus.REPORTED


def test_weather_only_flag() -> None:
    cluster = Cluster.seed([make_signal()])
    assert cluster.is_weather_only

    cluster.attach(make_signal(SourceType.NEWS, minutes=1))
    assert not cluster.is_weather_only
