from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from tracker.core.errors import InvalidState
from tracker.engine.geo import GeoPoint
from tracker.engine.metrics import average_speed_kmh, calories_burned
from tracker.engine.snapshot import SessionSnapshot, SessionState


@dataclass(frozen=True)
class RunRecord:
    """Finalized summary of a completed session, handed to storage."""

    timestamp: datetime
    average_speed_kmh: float
    distance_meters: int
    duration_millis: int
    calories_burned: int
    snapshot_image_ref: Any = None
    path: tuple[GeoPoint, ...] = ()
    segment_starts: tuple[int, ...] = ()
    # Assigned by the store once persisted
    id: Optional[int] = None

    def segments(self) -> list[tuple[GeoPoint, ...]]:
        ends = self.segment_starts[1:] + (len(self.path),)
        return [self.path[start:end] for start, end in zip(self.segment_starts, ends)]


def build_run_record(
    snapshot: SessionSnapshot,
    body_weight_kg: float,
    image_ref: Any = None,
    timestamp: Optional[datetime] = None,
) -> RunRecord:
    """Build the record for a stopped session.

    Distance is truncated to whole meters before the speed and calorie
    figures are derived from it; speed is rounded to one decimal.
    """
    if snapshot.state is not SessionState.stopped:
        raise InvalidState(f"run can only be recorded once stopped, not while {snapshot.state.value}")
    if snapshot.elapsed_millis <= 0:
        raise InvalidState("run has zero duration")

    distance_m = int(snapshot.distance_meters)
    avg_speed = round(average_speed_kmh(distance_m, snapshot.elapsed_millis) * 10) / 10
    return RunRecord(
        timestamp=timestamp or datetime.now(timezone.utc),
        average_speed_kmh=avg_speed,
        distance_meters=distance_m,
        duration_millis=snapshot.elapsed_millis,
        calories_burned=calories_burned(distance_m, body_weight_kg),
        snapshot_image_ref=image_ref,
        path=snapshot.path,
        segment_starts=snapshot.segment_starts,
    )
