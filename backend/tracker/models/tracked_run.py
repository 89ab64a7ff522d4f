from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func
from tracker.db import Base


class TrackedRun(Base):
    __tablename__ = "tracked_runs"

    id = Column(Integer, primary_key=True, index=True)

    # When the session was finished (UTC)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    avg_speed_kmh = Column(Numeric(5, 1), nullable=False)  # e.g. 10.4
    distance_m = Column(Integer, nullable=False)
    duration_ms = Column(BigInteger, nullable=False)
    calories_burned = Column(Integer, nullable=False)

    # Opaque handle from the snapshot/image collaborator
    image_ref = Column(String, nullable=True)

    track = Column(JSON, nullable=True)   # MultiLineString, one line per tracking segment
    bounds = Column(JSON, nullable=True)  # {minLat, minLon, maxLat, maxLon}
    points_count = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
