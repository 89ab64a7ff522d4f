import asyncio
import threading
from typing import Optional, Union

import anyio
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from loguru import logger
from sqlalchemy.orm import Session

from tracker.core.config import settings
from tracker.core.errors import InvalidState, ProducerUnavailable
from tracker.core.time_utils import compute_pace, format_stopwatch, seconds_to_hhmmss, to_local_datetime
from tracker.db import SessionLocal, get_db
from tracker.engine.geo import GeoPoint, PositionSample
from tracker.engine.record import RunRecord
from tracker.engine.service import Command, TrackingService
from tracker.engine.snapshot import SessionSnapshot
from tracker.models.tracked_run import TrackedRun
from tracker.schemas.tracking import (
    CommandRequest,
    GeoPointRead,
    RunRecordRead,
    RunTrackRead,
    SampleAccepted,
    SampleCreate,
    SnapshotRead,
)
from tracker.store import SqlRunStore

router = APIRouter(prefix="/tracking", tags=["tracking"])

_service: Optional[TrackingService] = None
_service_lock = threading.Lock()


def get_tracking_service() -> TrackingService:
    """The process-wide session owner, created on first use."""
    global _service
    with _service_lock:
        if _service is None:
            _service = TrackingService.from_settings(settings, store=SqlRunStore(SessionLocal))
        return _service


def shutdown_tracking_service() -> None:
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
            _service = None


def snapshot_to_read(snapshot: SessionSnapshot) -> SnapshotRead:
    return SnapshotRead(
        state=snapshot.state,
        sequence=snapshot.sequence,
        elapsed_millis=snapshot.elapsed_millis,
        elapsed=format_stopwatch(snapshot.elapsed_millis, include_millis=True),
        distance_meters=snapshot.distance_meters,
        current_speed_kmh=snapshot.current_speed_kmh,
        average_speed_kmh=snapshot.average_speed_kmh,
        path=[GeoPointRead(latitude=p.latitude, longitude=p.longitude) for p in snapshot.path],
        segment_starts=list(snapshot.segment_starts),
    )


def record_to_read(record: RunRecord) -> RunRecordRead:
    return RunRecordRead(
        id=record.id,
        timestamp=to_local_datetime(record.timestamp, settings.timezone),
        average_speed_kmh=record.average_speed_kmh,
        distance_meters=record.distance_meters,
        duration_millis=record.duration_millis,
        duration=seconds_to_hhmmss(record.duration_millis // 1000),
        pace=compute_pace(record.duration_millis, record.distance_meters),
        calories_burned=record.calories_burned,
        image_ref=str(record.snapshot_image_ref) if record.snapshot_image_ref is not None else None,
    )


def row_to_read(row: TrackedRun) -> RunTrackRead:
    return RunTrackRead(
        id=row.id,
        timestamp=to_local_datetime(row.timestamp, settings.timezone),
        average_speed_kmh=float(row.avg_speed_kmh),
        distance_meters=row.distance_m,
        duration_millis=row.duration_ms,
        duration=seconds_to_hhmmss(row.duration_ms // 1000),
        pace=compute_pace(row.duration_ms, row.distance_m),
        calories_burned=row.calories_burned,
        image_ref=row.image_ref,
        track=row.track,
        bounds=row.bounds,
        points_count=row.points_count or 0,
    )


@router.post("/commands", response_model=Union[RunRecordRead, SnapshotRead])
def post_command(
    payload: CommandRequest,
    service: TrackingService = Depends(get_tracking_service),
):
    """
    Apply one control signal to the active session.

    FINISH answers with the saved run; everything else with the new
    session snapshot.
    """
    try:
        result = service.dispatch(
            payload.command,
            body_weight_kg=payload.body_weight_kg,
            image_ref=payload.image_ref,
        )
    except InvalidState as e:
        # InvalidTransition included
        raise HTTPException(status_code=409, detail=str(e))
    except ProducerUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))

    if payload.command is Command.finish:
        return record_to_read(result)
    return snapshot_to_read(result)


@router.get("/snapshot", response_model=SnapshotRead)
def get_snapshot(service: TrackingService = Depends(get_tracking_service)):
    return snapshot_to_read(service.snapshot())


@router.get("/bounds")
def get_bounds(service: TrackingService = Depends(get_tracking_service)):
    """Box covering the path so far, for camera framing; null when empty."""
    bounds = service.controller.bounds()
    return bounds.to_dict() if bounds else None


@router.post("/samples", response_model=SampleAccepted, status_code=202)
def post_sample(
    payload: SampleCreate,
    service: TrackingService = Depends(get_tracking_service),
):
    sample = PositionSample(
        GeoPoint(payload.latitude, payload.longitude),
        accuracy_m=payload.accuracy_m,
    )
    return SampleAccepted(accepted=service.push_sample(sample))


@router.get("/runs", response_model=list[RunTrackRead])
def list_runs(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    # Most recent first
    rows = db.query(TrackedRun).order_by(TrackedRun.timestamp.desc()).limit(limit).all()
    return [row_to_read(row) for row in rows]


@router.get("/runs/{run_id}", response_model=RunTrackRead)
def get_run(run_id: int, db: Session = Depends(get_db)):
    row = db.query(TrackedRun).filter(TrackedRun.id == run_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Run not found")
    return row_to_read(row)


class SnapshotRelay:
    """Carries snapshots from the hub's delivery thread onto the event loop.

    Snapshots land in a bounded memory stream; if the websocket falls that
    far behind, the stream is closed and the client told to resync.
    """

    def __init__(self, max_buffer_size: int):
        self.loop = asyncio.get_running_loop()
        self.send_stream, self.receive_stream = anyio.create_memory_object_stream(max_buffer_size)
        self.lagged = False

    def forward(self, snapshot: SessionSnapshot) -> None:
        # Called on the subscription's delivery thread
        try:
            self.loop.call_soon_threadsafe(self._push, snapshot)
        except RuntimeError:
            # Event loop already gone along with the connection
            pass

    def _push(self, snapshot: SessionSnapshot) -> None:
        try:
            self.send_stream.send_nowait(snapshot)
        except anyio.WouldBlock:
            logger.warning("Stream client fell behind; closing")
            self.lagged = True
            self.send_stream.close()
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            pass


async def _pump_snapshots(websocket: WebSocket, relay: SnapshotRelay, cancel_scope) -> None:
    try:
        async with relay.receive_stream:
            async for snapshot in relay.receive_stream:
                await websocket.send_json(snapshot_to_read(snapshot).model_dump(mode="json"))
        # 1013 = try again later; the client should reconnect and resync
        await websocket.close(code=1013 if relay.lagged else 1000)
    except WebSocketDisconnect:
        logger.debug("Stream client went away mid-send")
    finally:
        cancel_scope.cancel()


async def _watch_disconnect(websocket: WebSocket, cancel_scope) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("Stream client disconnected")
                return
    finally:
        cancel_scope.cancel()


@router.websocket("/stream")
async def stream_snapshots(
    websocket: WebSocket,
    service: TrackingService = Depends(get_tracking_service),
):
    """Attach as an observer; the current snapshot is sent first."""
    await websocket.accept()
    relay = SnapshotRelay(service.controller.hub.maxsize)
    subscription = service.attach(relay.forward)
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_disconnect, websocket, tg.cancel_scope)
            tg.start_soon(_pump_snapshots, websocket, relay, tg.cancel_scope)
    finally:
        service.detach(subscription)
        relay.send_stream.close()
