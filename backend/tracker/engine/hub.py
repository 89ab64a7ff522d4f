"""Fan-out of session snapshots to any number of observers.

Each observer owns a delivery queue fed by `publish`. Publishing never
blocks: an observer whose queue fills up is closed and flagged as
lagged instead of stalling the producer.
"""

import queue
import threading
from typing import Callable, Iterator, Optional

from loguru import logger

from tracker.core.errors import SubscriptionClosed
from tracker.engine.snapshot import IDLE_SNAPSHOT, SessionSnapshot

_CLOSED = object()

Observer = Callable[[SessionSnapshot], None]


class Subscription:
    """One attached observer's view of the snapshot stream."""

    def __init__(self, hub: "ObservationHub", maxsize: int, callback: Optional[Observer] = None):
        self._hub = hub
        self.maxsize = maxsize
        # Bound is enforced in offer() so the close marker always fits
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self.lagged = False
        self.callback = callback
        self._thread: Optional[threading.Thread] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, snapshot: SessionSnapshot) -> bool:
        """Enqueue without blocking; returns False if the queue overflowed."""
        if self._closed:
            return True
        if self._queue.qsize() >= self.maxsize:
            return False
        self._queue.put_nowait(snapshot)
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[SessionSnapshot]:
        """Next snapshot in publish order.

        Returns None if `timeout` expires; raises SubscriptionClosed once
        the subscription is closed and everything queued was delivered.
        """
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            # Leave the marker for any other reader
            self._queue.put_nowait(_CLOSED)
            raise SubscriptionClosed(lagged=self.lagged)
        return item

    def drain(self) -> list[SessionSnapshot]:
        """Everything currently queued, without waiting."""
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                return items
            items.append(item)

    def __iter__(self) -> Iterator[SessionSnapshot]:
        while True:
            try:
                snapshot = self.get()
            except SubscriptionClosed:
                return
            yield snapshot

    def _close(self, lagged: bool = False) -> None:
        if self._closed:
            return
        self._closed = True
        self.lagged = lagged
        self._queue.put_nowait(_CLOSED)

    def detach(self) -> None:
        self._hub.detach(self)

    def _start_delivery(self) -> None:
        self._thread = threading.Thread(target=self._deliver, name="snapshot-observer", daemon=True)
        self._thread.start()

    def _deliver(self) -> None:
        for snapshot in self:
            try:
                self.callback(snapshot)
            except Exception:
                logger.exception("Observer callback failed; continuing delivery")


class ObservationHub:
    def __init__(self, maxsize: int = 256):
        self.maxsize = maxsize
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._latest = IDLE_SNAPSHOT

    @property
    def latest(self) -> SessionSnapshot:
        with self._lock:
            return self._latest

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def attach(self, callback: Optional[Observer] = None, maxsize: Optional[int] = None) -> Subscription:
        """Attach an observer; the current snapshot is queued right away."""
        subscription = Subscription(self, maxsize or self.maxsize, callback)
        with self._lock:
            subscription.offer(self._latest)
            self._subscriptions.append(subscription)
        if callback is not None:
            subscription._start_delivery()
        logger.debug(f"Observer attached ({len(self)} total)")
        return subscription

    def detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription._close()

    def publish(self, snapshot: SessionSnapshot) -> None:
        with self._lock:
            self._latest = snapshot
            lagging = [s for s in self._subscriptions if not s.offer(snapshot)]
            for subscription in lagging:
                self._subscriptions.remove(subscription)
                subscription._close(lagged=True)
        for subscription in lagging:
            logger.warning(f"Observer dropped after falling {subscription.maxsize} snapshots behind")

    def close(self) -> None:
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription._close()
