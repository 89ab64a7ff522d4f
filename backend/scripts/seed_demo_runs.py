from datetime import datetime, timedelta, timezone
import math
import random

from tracker.core.config import settings
from tracker.db import Base, SessionLocal, engine
from tracker.engine.controller import SessionController
from tracker.engine.producers import ManualClock, PushPositionSource
from tracker.models.tracked_run import TrackedRun
from tracker.store import SqlRunStore

# Loop start, roughly a city park
ORIGIN_LAT = 52.5163
ORIGIN_LON = 13.3777


def clear_demo_runs(db, days: int = 120) -> None:
    """Delete runs in the last N days so we can reseed cleanly."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    db.query(TrackedRun).filter(TrackedRun.timestamp >= cutoff).delete()
    db.commit()


def record_loop(controller: SessionController, clock: ManualClock, source: PushPositionSource,
                radius_m: float, pace_s_per_km: float, pause_at: float | None = None) -> None:
    """Run one circular loop through the engine, sampling every 5 s."""
    circumference_m = 2 * math.pi * radius_m
    step_s = 5
    steps = int(circumference_m / 1000 * pace_s_per_km / step_s)
    deg_lat = radius_m / 111_320
    deg_lon = radius_m / (111_320 * math.cos(math.radians(ORIGIN_LAT)))

    controller.start()
    for i in range(steps + 1):
        angle = 2 * math.pi * i / steps
        source.push_point(ORIGIN_LAT + deg_lat * math.sin(angle), ORIGIN_LON + deg_lon * math.cos(angle))
        if pause_at is not None and i == int(steps * pause_at):
            controller.pause()
            clock.advance(60_000)  # traffic light, not counted
            controller.start()
        clock.advance(step_s * 1000)
    controller.stop()


def seed_demo_runs() -> None:
    """Record a dozen demo runs (easy, tempo, long) through the engine."""
    clock = ManualClock()
    source = PushPositionSource()
    controller = SessionController(clock, source, store=SqlRunStore(SessionLocal))

    count = 0
    for week in range(4):
        for radius_m, pace, pause_at in [
            (800, 330, None),   # easy
            (600, 270, 0.5),    # tempo with a stop
            (1600, 345, None),  # long
        ]:
            record_loop(controller, clock, source, radius_m * random.uniform(0.9, 1.1), pace, pause_at)
            controller.finish(settings.body_weight_kg, image_ref=f"demo-{week}-{count}")
            count += 1

    print(f"Seeded {count} demo runs")


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        clear_demo_runs(db, days=150)
    finally:
        db.close()
    seed_demo_runs()


if __name__ == "__main__":
    main()
