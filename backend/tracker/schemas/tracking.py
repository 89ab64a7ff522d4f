from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from tracker.engine.service import Command
from tracker.engine.snapshot import SessionState


class GeoPointRead(BaseModel):
    latitude: float
    longitude: float


class SampleCreate(BaseModel):
    """One position reading pushed by the device."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy_m: Optional[float] = Field(default=None, ge=0)


class SampleAccepted(BaseModel):
    accepted: bool


class CommandRequest(BaseModel):
    command: Command
    # Only used by FINISH; weight falls back to the stored setting
    body_weight_kg: Optional[float] = Field(default=None, gt=0)
    image_ref: Optional[str] = None


class SnapshotRead(BaseModel):
    """Session state as sent to observers."""

    state: SessionState
    sequence: int
    elapsed_millis: int
    elapsed: str  # "HH:MM:SS:cc" stopwatch text
    distance_meters: float
    current_speed_kmh: float
    average_speed_kmh: float
    path: list[GeoPointRead]
    segment_starts: list[int]


class RunRecordRead(BaseModel):
    """A finished run as returned to the frontend."""

    id: Optional[int] = None
    timestamp: datetime
    average_speed_kmh: float
    distance_meters: int
    duration_millis: int
    duration: str  # "HH:MM:SS"
    pace: str      # e.g. "5:45/km"
    calories_burned: int
    image_ref: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RunTrackRead(RunRecordRead):
    track: Optional[dict] = None   # GeoJSON MultiLineString
    bounds: Optional[dict] = None
    points_count: int = 0
