from datetime import datetime, timezone

from tracker.core.time_utils import compute_pace, format_stopwatch, seconds_to_hhmmss, to_local_datetime


def test_seconds_to_hhmmss():
    assert seconds_to_hhmmss(2732) == "00:45:32"
    assert seconds_to_hhmmss(0) == "00:00:00"


def test_format_stopwatch():
    assert format_stopwatch(2_732_450) == "00:45:32"
    assert format_stopwatch(2_732_450, include_millis=True) == "00:45:32:45"
    assert format_stopwatch(3_600_009, include_millis=True) == "01:00:00:00"


def test_compute_pace_per_km():
    assert compute_pace(1_500_000, 5000) == "5:00/km"
    assert compute_pace(1_000, 0) == "0:00/km"


def test_to_local_datetime_named_zone():
    dt = datetime(2026, 1, 1, 12, 0)
    local = to_local_datetime(dt, "America/New_York")
    assert local.hour == 7
    assert local.utcoffset().total_seconds() == -5 * 3600


def test_to_local_datetime_unknown_zone_falls_back():
    dt = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert to_local_datetime(dt, "Not/AZone") == dt
