from typing import Optional

from tracker.engine.geo import Bounds, GeoPoint, bounds_of


class PathAccumulator:
    """Ordered, append-only store of accepted points for one session.

    Points are grouped into segments, one per Tracking run, so a
    pause/resume boundary never renders as a straight joining line.
    Not thread-safe on its own; the controller serializes access.
    """

    def __init__(self):
        self._points: list[GeoPoint] = []
        self._segment_starts: list[int] = []
        self._frozen: Optional[tuple[GeoPoint, ...]] = ()
        self._open_segment = True

    def __len__(self) -> int:
        return len(self._points)

    def append(self, point: GeoPoint) -> None:
        if self._open_segment:
            self._segment_starts.append(len(self._points))
            self._open_segment = False
        self._points.append(point)
        self._frozen = None

    def start_segment(self) -> None:
        # Lazily opened so an empty run leaves no empty segment behind
        self._open_segment = True

    def reset(self) -> None:
        self._points.clear()
        self._segment_starts.clear()
        self._frozen = ()
        self._open_segment = True

    def points(self) -> tuple[GeoPoint, ...]:
        """Immutable copy of the path, rebuilt only after it changes."""
        if self._frozen is None:
            self._frozen = tuple(self._points)
        return self._frozen

    def segment_starts(self) -> tuple[int, ...]:
        return tuple(self._segment_starts)

    def segments(self) -> list[tuple[GeoPoint, ...]]:
        points = self.points()
        ends = self._segment_starts[1:] + [len(points)]
        return [points[start:end] for start, end in zip(self._segment_starts, ends)]

    def last(self) -> Optional[GeoPoint]:
        return self._points[-1] if self._points else None

    def bounds(self) -> Optional[Bounds]:
        return bounds_of(self._points)
