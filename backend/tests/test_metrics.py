import pytest

from tracker.engine.geo import GeoPoint, bounds_of, haversine
from tracker.engine.metrics import MetricsAggregator, average_speed_kmh, calories_burned

# 0.001 degree of longitude on the equator
HOP_M = 111.19492664455873


def test_haversine_equator_hop():
    assert haversine(GeoPoint(0, 0), GeoPoint(0, 0.001)) == pytest.approx(HOP_M)


def test_haversine_same_point_is_zero():
    p = GeoPoint(52.52, 13.405)
    assert haversine(p, p) == 0.0


def test_haversine_is_symmetric():
    a, b = GeoPoint(52.52, 13.405), GeoPoint(48.8566, 2.3522)
    assert haversine(a, b) == pytest.approx(haversine(b, a))
    # Berlin -> Paris, roughly 878 km
    assert haversine(a, b) == pytest.approx(878_000, rel=0.01)


def test_bounds_of_points():
    b = bounds_of([GeoPoint(1, 5), GeoPoint(-2, 7), GeoPoint(0, 6)])
    assert b.to_dict() == {"minLat": -2, "minLon": 5, "maxLat": 1, "maxLon": 7}
    assert bounds_of([]) is None


def test_average_speed_guards_zero_elapsed():
    assert average_speed_kmh(500, 0) == 0.0
    # 10 km in one hour
    assert average_speed_kmh(10_000, 3_600_000) == pytest.approx(10.0)


def test_calories_floor():
    assert calories_burned(5_500, 70) == 385
    assert calories_burned(111, 70) == 7
    assert calories_burned(0, 80) == 0


def test_first_point_sets_baseline_only():
    m = MetricsAggregator()
    assert m.add_point(GeoPoint(0, 0), 0) == 0.0
    assert m.distance_m == 0.0
    assert m.current_speed_kmh == 0.0

    added = m.add_point(GeoPoint(0, 0.001), 1000)
    assert added == pytest.approx(HOP_M)
    assert m.distance_m == pytest.approx(HOP_M)
    # 111.19 m in one second
    assert m.current_speed_kmh == pytest.approx(HOP_M * 3.6)


def test_begin_run_skips_gap_but_keeps_distance():
    m = MetricsAggregator()
    m.add_point(GeoPoint(0, 0), 0)
    m.add_point(GeoPoint(0, 0.001), 1000)

    m.begin_run()
    assert m.add_point(GeoPoint(0, 0.5), 5000) == 0.0
    assert m.distance_m == pytest.approx(HOP_M)

    m.add_point(GeoPoint(0, 0.501), 6000)
    assert m.distance_m == pytest.approx(2 * HOP_M)


def test_reset_clears_distance():
    m = MetricsAggregator()
    m.add_point(GeoPoint(0, 0), 0)
    m.add_point(GeoPoint(0, 0.001), 1000)
    m.reset()
    assert m.distance_m == 0.0
    assert m.add_point(GeoPoint(0, 0.002), 2000) == 0.0


def test_no_time_between_samples_reports_zero_speed():
    m = MetricsAggregator()
    m.add_point(GeoPoint(0, 0), 1000)
    m.add_point(GeoPoint(0, 0.001), 1000)
    assert m.current_speed_kmh == 0.0
    assert m.average_speed_kmh(2000) == pytest.approx(HOP_M / 1000 / (2000 / 3_600_000))
