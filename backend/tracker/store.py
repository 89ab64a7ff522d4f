"""SQLAlchemy persistence for finished runs."""

from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from tracker.engine.geo import bounds_of
from tracker.engine.record import RunRecord
from tracker.models.tracked_run import TrackedRun


def track_geojson(record: RunRecord) -> Optional[dict]:
    """GeoJSON MultiLineString with one line per tracking segment."""
    if not record.path:
        return None
    lines = [[[p.longitude, p.latitude] for p in segment] for segment in record.segments()]
    return {"type": "MultiLineString", "coordinates": lines}


def record_to_row(record: RunRecord) -> TrackedRun:
    bounds = bounds_of(record.path)
    return TrackedRun(
        timestamp=record.timestamp,
        avg_speed_kmh=record.average_speed_kmh,
        distance_m=record.distance_meters,
        duration_ms=record.duration_millis,
        calories_burned=record.calories_burned,
        image_ref=str(record.snapshot_image_ref) if record.snapshot_image_ref is not None else None,
        track=track_geojson(record),
        bounds=bounds.to_dict() if bounds else None,
        points_count=len(record.path),
    )


class SqlRunStore:
    """Persistence collaborator: one row per finished session."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def insert(self, record: RunRecord) -> int:
        db: Session = self.session_factory()
        try:
            row = record_to_row(record)
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.debug(f"Inserted tracked run {row.id}")
            return row.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
