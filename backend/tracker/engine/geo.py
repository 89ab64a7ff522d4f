"""Geographic value types and great-circle math."""

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from tracker.core.constants import EARTH_RADIUS_M


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class PositionSample:
    """One raw reading from a position source."""

    point: GeoPoint
    accuracy_m: Optional[float] = None


@dataclass(frozen=True)
class Bounds:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    def to_dict(self) -> dict:
        return {
            "minLat": self.min_lat,
            "minLon": self.min_lon,
            "maxLat": self.max_lat,
            "maxLon": self.max_lon,
        }


def haversine(a: GeoPoint, b: GeoPoint) -> float:
    """Return great-circle distance in meters between two WGS84 points.

    Uses the standard haversine formula on a spherical earth; sufficient
    for the short hops between consecutive position samples.
    """
    phi1, phi2 = math.radians(a.latitude), math.radians(b.latitude)
    dphi = math.radians(b.latitude - a.latitude)
    dlambda = math.radians(b.longitude - a.longitude)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def bounds_of(points: Iterable[GeoPoint]) -> Optional[Bounds]:
    """Minimal lat/lon box covering all points, or None for no points."""
    lats = []
    lons = []
    for p in points:
        lats.append(p.latitude)
        lons.append(p.longitude)
    if not lats:
        return None
    return Bounds(min(lats), min(lons), max(lats), max(lons))
