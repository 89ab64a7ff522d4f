"""Supervisor owning the one active tracking session.

The HTTP layer (or any other host) talks to a TrackingService; it maps
the external control signals 1:1 onto controller operations and wires
in the configuration and persistence collaborators.
"""

from enum import Enum
from typing import Any, Callable, Optional

from tracker.core.config import Settings, settings as default_settings
from tracker.engine.controller import RunStore, SessionController
from tracker.engine.geo import PositionSample
from tracker.engine.hub import ObservationHub, Observer, Subscription
from tracker.engine.producers import (
    Clock,
    PositionSource,
    PushPositionSource,
    ReplayPositionSource,
    TimerClock,
)
from tracker.engine.snapshot import SessionSnapshot


class Command(str, Enum):
    start_or_resume = "START_OR_RESUME"
    pause = "PAUSE"
    stop = "STOP"
    finish = "FINISH"
    cancel = "CANCEL"


def _position_source_from_settings(settings: Settings) -> PositionSource:
    if settings.track_path:
        return ReplayPositionSource.from_file(
            settings.track_path,
            interval_ms=settings.location_interval_ms,
            fastest_interval_ms=settings.fastest_location_interval_ms,
            min_accuracy_m=settings.min_accuracy_m,
        )
    return PushPositionSource(settings.min_accuracy_m)


class TrackingService:
    def __init__(
        self,
        controller: SessionController,
        weight_provider: Optional[Callable[[], float]] = None,
    ):
        self.controller = controller
        self._weight_provider = weight_provider or (lambda: default_settings.body_weight_kg)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[RunStore] = None,
        clock: Optional[Clock] = None,
        position_source: Optional[PositionSource] = None,
    ) -> "TrackingService":
        if position_source is None:
            position_source = _position_source_from_settings(settings)
        controller = SessionController(
            clock or TimerClock(settings.timer_interval_ms),
            position_source,
            hub=ObservationHub(settings.observer_queue_size),
            store=store,
        )
        return cls(controller, weight_provider=lambda: settings.body_weight_kg)

    def dispatch(
        self,
        command: Command,
        body_weight_kg: Optional[float] = None,
        image_ref: Any = None,
    ):
        """Apply one control signal.

        Returns the run record for FINISH and the resulting snapshot
        for every other command.
        """
        if command is Command.finish:
            weight = body_weight_kg if body_weight_kg is not None else self._weight_provider()
            return self.controller.finish(weight, image_ref)
        handlers = {
            Command.start_or_resume: self.controller.start,
            Command.pause: self.controller.pause,
            Command.stop: self.controller.stop,
            Command.cancel: self.controller.cancel,
        }
        return handlers[command]()

    def snapshot(self) -> SessionSnapshot:
        return self.controller.snapshot()

    def attach(self, callback: Optional[Observer] = None) -> Subscription:
        return self.controller.hub.attach(callback)

    def detach(self, subscription: Subscription) -> None:
        self.controller.hub.detach(subscription)

    def push_sample(self, sample: PositionSample) -> bool:
        """Feed a device-reported sample; only push sources take them."""
        source = self.controller.position_source
        if not isinstance(source, PushPositionSource):
            return False
        return source.push(sample)

    def close(self) -> None:
        self.controller.close()
