import math
from typing import Optional

from tracker.core.constants import METERS_PER_KM, MILLIS_PER_HOUR
from tracker.engine.geo import GeoPoint, haversine


def average_speed_kmh(distance_m: float, elapsed_ms: int) -> float:
    """Average speed in km/h; 0 when no time has elapsed."""
    if elapsed_ms <= 0:
        return 0.0
    return (distance_m / METERS_PER_KM) / (elapsed_ms / MILLIS_PER_HOUR)


def calories_burned(distance_m: int, body_weight_kg: float) -> int:
    """Rough running estimate: one kcal per kg of body weight per km."""
    return math.floor((distance_m / METERS_PER_KM) * body_weight_kg)


class MetricsAggregator:
    """Turns the accepted point stream into cumulative motion metrics.

    The first point of every Tracking run only sets the baseline, so the
    gap covered while paused never counts toward distance.
    """

    def __init__(self):
        self.distance_m = 0.0
        self.current_speed_kmh = 0.0
        self._previous: Optional[GeoPoint] = None
        self._previous_elapsed_ms = 0

    def reset(self) -> None:
        self.distance_m = 0.0
        self.begin_run()

    def begin_run(self) -> None:
        self._previous = None
        self._previous_elapsed_ms = 0
        self.current_speed_kmh = 0.0

    def add_point(self, point: GeoPoint, elapsed_ms: int) -> float:
        """Account for a newly accepted point; returns the meters it added."""
        previous = self._previous
        previous_elapsed_ms = self._previous_elapsed_ms
        self._previous = point
        self._previous_elapsed_ms = elapsed_ms
        if previous is None:
            self.current_speed_kmh = 0.0
            return 0.0

        hop_m = haversine(previous, point)
        self.distance_m += hop_m
        self.current_speed_kmh = average_speed_kmh(hop_m, elapsed_ms - previous_elapsed_ms)
        return hop_m

    def average_speed_kmh(self, elapsed_ms: int) -> float:
        return average_speed_kmh(self.distance_m, elapsed_ms)
