"""Event producers feeding the session controller.

A Clock emits ticks carrying its current time in milliseconds and a
PositionSource emits position samples, both only between `start` and
`stop`. `stop` only signals; it never waits for a producer thread, so
it is safe to call while holding the controller lock. Events that
race past a stop are filtered out by the controller.
"""

import threading
import time
from typing import Callable, Optional, Sequence

from loguru import logger

from tracker.core.errors import ProducerUnavailable
from tracker.engine.geo import GeoPoint, PositionSample
from tracker.engine.tracks import load_track_samples

TickHandler = Callable[[int], None]
SampleHandler = Callable[[PositionSample], None]


def _spawn(name: str, target, *args) -> None:
    thread = threading.Thread(target=target, args=args, name=name, daemon=True)
    try:
        thread.start()
    except RuntimeError as e:
        raise ProducerUnavailable(f"could not start {name}: {e}") from e


class Clock:
    def now_ms(self) -> int:
        raise NotImplementedError

    def start(self, on_tick: TickHandler) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class TimerClock(Clock):
    """Ticks every `interval_ms` on a background thread."""

    def __init__(self, interval_ms: int = 50):
        self.interval_ms = interval_ms
        self._stop_event: Optional[threading.Event] = None

    def now_ms(self) -> int:
        return time.monotonic_ns() // 1_000_000

    def start(self, on_tick: TickHandler) -> None:
        stop_event = threading.Event()
        _spawn("tracking-clock", self._run, on_tick, stop_event)
        self._stop_event = stop_event

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None

    def _run(self, on_tick: TickHandler, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval_ms / 1000):
            try:
                on_tick(self.now_ms())
            except Exception:
                logger.exception("Tick handler failed")


class ManualClock(Clock):
    """Clock advanced explicitly by the caller (tests, simulations)."""

    def __init__(self, start_ms: int = 0):
        self._now = start_ms
        self._on_tick: Optional[TickHandler] = None

    @property
    def running(self) -> bool:
        return self._on_tick is not None

    def now_ms(self) -> int:
        return self._now

    def start(self, on_tick: TickHandler) -> None:
        self._on_tick = on_tick

    def stop(self) -> None:
        self._on_tick = None

    def advance(self, ms: int) -> None:
        """Move time forward and tick once if running."""
        self._now += ms
        handler = self._on_tick
        if handler is not None:
            handler(self._now)


class PositionSource:
    """Base source; drops samples less accurate than `min_accuracy_m`."""

    def __init__(self, min_accuracy_m: Optional[float] = None):
        self.min_accuracy_m = min_accuracy_m
        self._on_sample: Optional[SampleHandler] = None

    @property
    def running(self) -> bool:
        return self._on_sample is not None

    def accepts(self, sample: PositionSample) -> bool:
        if self.min_accuracy_m is None or sample.accuracy_m is None:
            return True
        return sample.accuracy_m <= self.min_accuracy_m

    def start(self, on_sample: SampleHandler) -> None:
        self._on_sample = on_sample

    def stop(self) -> None:
        self._on_sample = None

    def _emit(self, sample: PositionSample) -> bool:
        handler = self._on_sample
        if handler is None:
            return False
        if not self.accepts(sample):
            logger.debug(f"Dropping sample with accuracy {sample.accuracy_m}m")
            return False
        handler(sample)
        return True


class PushPositionSource(PositionSource):
    """Samples are pushed in from outside, e.g. by a device over HTTP."""

    def push(self, sample: PositionSample) -> bool:
        """Forward a sample; False when not running or filtered out."""
        return self._emit(sample)

    def push_point(self, latitude: float, longitude: float, accuracy_m: Optional[float] = None) -> bool:
        return self.push(PositionSample(GeoPoint(latitude, longitude), accuracy_m))


class ReplayPositionSource(PositionSource):
    """Replays recorded samples at a fixed interval on a background thread.

    Replay continues where it left off after a stop/start pair, so a
    paused session resumes further along the recorded track.
    """

    def __init__(
        self,
        samples: Optional[Sequence[PositionSample]] = None,
        interval_ms: int = 5000,
        min_accuracy_m: Optional[float] = None,
        path=None,
        fastest_interval_ms: int = 0,
    ):
        super().__init__(min_accuracy_m)
        self.interval_ms = interval_ms
        self.fastest_interval_ms = fastest_interval_ms
        self.path = path
        self._samples = list(samples) if samples is not None else None
        self._index = 0
        self._stop_event: Optional[threading.Event] = None

    @property
    def spacing_ms(self) -> int:
        """Gap between emitted samples; never below the fastest interval."""
        return max(self.interval_ms, self.fastest_interval_ms)

    @classmethod
    def from_file(cls, path, **kwargs) -> "ReplayPositionSource":
        # Loaded on start so a bad file surfaces as ProducerUnavailable
        return cls(path=path, **kwargs)

    def start(self, on_sample: SampleHandler) -> None:
        if self._samples is None:
            try:
                self._samples = load_track_samples(self.path)
            except (OSError, ValueError) as e:
                raise ProducerUnavailable(f"cannot load track {self.path}: {e}") from e
        stop_event = threading.Event()
        super().start(on_sample)
        try:
            _spawn("tracking-replay", self._run, stop_event)
        except ProducerUnavailable:
            super().stop()
            raise
        self._stop_event = stop_event

    def stop(self) -> None:
        super().stop()
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None

    def _run(self, stop_event: threading.Event) -> None:
        while self._index < len(self._samples) and not stop_event.wait(self.spacing_ms / 1000):
            if stop_event.is_set():
                break
            sample = self._samples[self._index]
            self._index += 1
            try:
                self._emit(sample)
            except Exception:
                logger.exception("Sample handler failed")
        logger.debug("Replay thread exiting")
