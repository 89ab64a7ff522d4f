from dataclasses import dataclass
from enum import Enum

from tracker.engine.geo import GeoPoint
from tracker.engine.metrics import average_speed_kmh


class SessionState(str, Enum):
    idle = "idle"
    tracking = "tracking"
    paused = "paused"
    stopped = "stopped"


@dataclass(frozen=True)
class SessionSnapshot:
    """Consistent view of a session at one publish instant.

    `elapsed_millis` and `distance_meters` always come from the same
    point in the event stream.
    """

    state: SessionState
    elapsed_millis: int = 0
    path: tuple[GeoPoint, ...] = ()
    distance_meters: float = 0.0
    current_speed_kmh: float = 0.0
    segment_starts: tuple[int, ...] = ()
    sequence: int = 0

    @property
    def average_speed_kmh(self) -> float:
        return average_speed_kmh(self.distance_meters, self.elapsed_millis)


IDLE_SNAPSHOT = SessionSnapshot(state=SessionState.idle)
