from dataclasses import replace

import pytest

from tracker.core.config import Settings
from tracker.core.errors import InvalidTransition
from tracker.engine.controller import SessionController
from tracker.engine.geo import GeoPoint, PositionSample
from tracker.engine.producers import ManualClock, PushPositionSource, ReplayPositionSource, TimerClock
from tracker.engine.record import RunRecord
from tracker.engine.service import Command, TrackingService
from tracker.engine.snapshot import SessionState


def _service(weight=80.0, store=None):
    clock = ManualClock()
    controller = SessionController(clock, PushPositionSource(), store=store)
    return TrackingService(controller, weight_provider=lambda: weight), clock


def test_commands_map_one_to_one():
    service, clock = _service()
    assert service.dispatch(Command.start_or_resume).state is SessionState.tracking
    assert service.dispatch(Command.pause).state is SessionState.paused
    assert service.dispatch(Command.start_or_resume).state is SessionState.tracking
    clock.advance(1000)
    assert service.dispatch(Command.stop).state is SessionState.stopped
    assert isinstance(service.dispatch(Command.finish), RunRecord)
    assert service.snapshot().state is SessionState.idle


def test_finish_uses_configured_weight(store):
    service, clock = _service(weight=60.0, store=store)
    service.dispatch(Command.start_or_resume)
    service.push_sample(PositionSample(GeoPoint(0, 0)))
    clock.advance(60_000)
    service.push_sample(PositionSample(GeoPoint(0, 0.02)))
    service.dispatch(Command.stop)

    record = service.dispatch(Command.finish, image_ref="img")
    # 2223 m * 60 kg
    assert record.distance_meters == 2223
    assert record.calories_burned == 133
    # The returned record carries the id the store assigned
    assert record.id == 1
    assert store.records == [replace(record, id=None)]


def test_finish_weight_override():
    service, clock = _service(weight=60.0)
    service.dispatch(Command.start_or_resume)
    service.push_sample(PositionSample(GeoPoint(0, 0)))
    clock.advance(60_000)
    service.push_sample(PositionSample(GeoPoint(0, 0.02)))
    service.dispatch(Command.stop)
    assert service.dispatch(Command.finish, body_weight_kg=100).calories_burned == 222


def test_invalid_command_is_signalled():
    service, _ = _service()
    with pytest.raises(InvalidTransition):
        service.dispatch(Command.pause)
    with pytest.raises(InvalidTransition):
        service.dispatch(Command.cancel)


def test_command_values_match_control_signals():
    assert Command("START_OR_RESUME") is Command.start_or_resume
    assert {c.value for c in Command} == {"START_OR_RESUME", "PAUSE", "STOP", "FINISH", "CANCEL"}


def test_push_sample_requires_push_source():
    controller = SessionController(ManualClock(), ReplayPositionSource([]))
    service = TrackingService(controller, weight_provider=lambda: 80.0)
    service.dispatch(Command.start_or_resume)
    assert service.push_sample(PositionSample(GeoPoint(0, 0))) is False
    service.close()


def test_from_settings_wires_producers():
    settings = Settings(timer_interval_ms=20, min_accuracy_m=15, observer_queue_size=8, body_weight_kg=55)
    service = TrackingService.from_settings(settings)
    controller = service.controller
    assert isinstance(controller.clock, TimerClock)
    assert controller.clock.interval_ms == 20
    assert isinstance(controller.position_source, PushPositionSource)
    assert controller.position_source.min_accuracy_m == 15
    assert controller.hub.maxsize == 8
    assert service._weight_provider() == 55


def test_from_settings_replays_configured_track(tmp_path):
    track = tmp_path / "loop.gpx"
    settings = Settings(track_path=str(track), location_interval_ms=3000, min_accuracy_m=20)
    service = TrackingService.from_settings(settings)
    source = service.controller.position_source
    assert isinstance(source, ReplayPositionSource)
    assert source.path == str(track)
    assert source.interval_ms == 3000
    assert source.spacing_ms == 3000
    assert source.min_accuracy_m == 20


def test_from_settings_fastest_interval_is_floor():
    settings = Settings(track_path="loop.gpx", location_interval_ms=1000, fastest_location_interval_ms=2000)
    source = TrackingService.from_settings(settings).controller.position_source
    assert source.interval_ms == 1000
    assert source.spacing_ms == 2000


def test_from_settings_without_track_takes_pushed_samples():
    settings = Settings(track_path="")
    assert settings.track_path is None
    source = TrackingService.from_settings(settings).controller.position_source
    assert isinstance(source, PushPositionSource)


def test_attach_and_detach():
    service, _ = _service()
    sub = service.attach()
    service.dispatch(Command.start_or_resume)
    service.detach(sub)
    assert [s.state for s in sub.drain()] == [SessionState.idle, SessionState.tracking]
