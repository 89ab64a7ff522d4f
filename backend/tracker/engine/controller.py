"""Session state machine.

All commands and producer events are applied one at a time under a
single lock. Producer events carry the generation ("epoch") in which
the producer was enabled; disabling bumps the epoch, so anything sourced
before a pause or stop is dropped rather than applied afterwards.
"""

import threading
from dataclasses import replace
from functools import partial
from typing import Any, Optional, Protocol

from loguru import logger

from tracker.core.errors import InvalidTransition, ProducerUnavailable
from tracker.engine.geo import Bounds, PositionSample
from tracker.engine.hub import ObservationHub
from tracker.engine.metrics import MetricsAggregator
from tracker.engine.path import PathAccumulator
from tracker.engine.producers import Clock, PositionSource
from tracker.engine.record import RunRecord, build_run_record
from tracker.engine.snapshot import SessionSnapshot, SessionState


class RunStore(Protocol):
    def insert(self, record: RunRecord) -> int: ...


class SessionController:
    def __init__(
        self,
        clock: Clock,
        position_source: PositionSource,
        hub: Optional[ObservationHub] = None,
        store: Optional[RunStore] = None,
    ):
        self.clock = clock
        self.position_source = position_source
        self.hub = hub or ObservationHub()
        self.store = store

        self._lock = threading.RLock()
        self._state = SessionState.idle
        self._path = PathAccumulator()
        self._metrics = MetricsAggregator()
        self._epoch = 0
        self._elapsed_ms = 0
        self._lap_base_ms = 0
        self._run_started_ms = 0
        self._sequence = 0

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def snapshot(self) -> SessionSnapshot:
        """Latest published snapshot, for late joiners."""
        with self._lock:
            return self.hub.latest

    def bounds(self) -> Optional[Bounds]:
        with self._lock:
            return self._path.bounds()

    # --------- Commands --------- #

    def start(self) -> SessionSnapshot:
        """Start a fresh session from idle, or resume a paused one."""
        with self._lock:
            if self._state not in (SessionState.idle, SessionState.paused):
                raise InvalidTransition("start", self._state)
            resuming = self._state is SessionState.paused
            epoch = self._enable_producers()

            if resuming:
                self._path.start_segment()
                self._metrics.begin_run()
            else:
                self._reset()
            self._epoch = epoch
            self._lap_base_ms = self._elapsed_ms
            self._run_started_ms = self.clock.now_ms()
            logger.info("Resuming session" if resuming else "Starting new session")
            return self._transition(SessionState.tracking)

    def pause(self) -> SessionSnapshot:
        with self._lock:
            if self._state is not SessionState.tracking:
                raise InvalidTransition("pause", self._state)
            self._freeze_elapsed()
            self._disable_producers()
            return self._transition(SessionState.paused)

    def stop(self) -> SessionSnapshot:
        with self._lock:
            if self._state not in (SessionState.tracking, SessionState.paused):
                raise InvalidTransition("stop", self._state)
            if self._state is SessionState.tracking:
                self._freeze_elapsed()
                self._disable_producers()
            return self._transition(SessionState.stopped)

    def finish(self, body_weight_kg: float, image_ref: Any = None) -> RunRecord:
        """Record the stopped session, hand it to the store, free the slot."""
        with self._lock:
            if self._state is not SessionState.stopped:
                raise InvalidTransition("finish", self._state)
            record = build_run_record(self.hub.latest, body_weight_kg, image_ref)
            if self.store is not None:
                record = replace(record, id=self.store.insert(record))
                logger.info(f"Saved run {record.id}: {record.distance_meters}m in {record.duration_millis}ms")
            self._reset()
            self._transition(SessionState.idle)
            return record

    def cancel(self) -> SessionSnapshot:
        """Drop the current session without recording it."""
        with self._lock:
            if self._state is SessionState.idle:
                raise InvalidTransition("cancel", self._state)
            if self._state is SessionState.tracking:
                self._disable_producers()
            self._reset()
            logger.info("Session cancelled")
            return self._transition(SessionState.idle)

    def close(self) -> None:
        with self._lock:
            if self._state is SessionState.tracking:
                self._disable_producers()
        self.hub.close()

    # --------- Producer events --------- #

    def _on_tick(self, epoch: int, now_ms: int) -> None:
        with self._lock:
            if epoch != self._epoch or self._state is not SessionState.tracking:
                logger.debug("Discarding stale tick")
                return
            elapsed = self._elapsed_at(now_ms)
            if elapsed == self._elapsed_ms:
                return
            self._elapsed_ms = elapsed
            self._publish()

    def _on_sample(self, epoch: int, sample: PositionSample) -> None:
        with self._lock:
            if epoch != self._epoch or self._state is not SessionState.tracking:
                logger.debug("Discarding stale sample")
                return
            self._elapsed_ms = self._elapsed_at(self.clock.now_ms())
            self._path.append(sample.point)
            self._metrics.add_point(sample.point, self._elapsed_ms)
            self._publish()

    # --------- Internals --------- #

    def _start_producer(self, name: str, start, handler) -> None:
        try:
            start(handler)
        except ProducerUnavailable:
            raise
        except Exception as e:
            raise ProducerUnavailable(f"{name} failed to start: {e}") from e

    def _enable_producers(self) -> int:
        epoch = self._epoch + 1
        self._start_producer("clock", self.clock.start, partial(self._on_tick, epoch))
        try:
            self._start_producer(
                "position source",
                self.position_source.start,
                partial(self._on_sample, epoch),
            )
        except ProducerUnavailable:
            self.clock.stop()
            # Burn the epoch so ticks from the rolled-back clock stay stale
            self._epoch = epoch
            logger.warning("Position source unavailable; clock rolled back")
            raise
        return epoch

    def _disable_producers(self) -> None:
        self.clock.stop()
        self.position_source.stop()
        self._epoch += 1
        self._metrics.current_speed_kmh = 0.0

    def _elapsed_at(self, now_ms: int) -> int:
        return max(self._elapsed_ms, self._lap_base_ms + now_ms - self._run_started_ms)

    def _freeze_elapsed(self) -> None:
        self._elapsed_ms = self._elapsed_at(self.clock.now_ms())

    def _reset(self) -> None:
        self._path.reset()
        self._metrics.reset()
        self._elapsed_ms = 0
        self._lap_base_ms = 0

    def _transition(self, state: SessionState) -> SessionSnapshot:
        logger.info(f"Session {self._state.value} -> {state.value}")
        self._state = state
        return self._publish()

    def _publish(self) -> SessionSnapshot:
        self._sequence += 1
        snapshot = SessionSnapshot(
            state=self._state,
            elapsed_millis=self._elapsed_ms,
            path=self._path.points(),
            distance_meters=self._metrics.distance_m,
            current_speed_kmh=self._metrics.current_speed_kmh,
            segment_starts=self._path.segment_starts(),
            sequence=self._sequence,
        )
        self.hub.publish(snapshot)
        return snapshot
