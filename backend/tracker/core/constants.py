"""Shared tracking constants.

Centralizes values used by the engine and the HTTP layer so we can
document and adjust them in one place.
"""

# Mean earth radius used by the spherical (haversine) approximation, meters
EARTH_RADIUS_M = 6371000.0

METERS_PER_KM = 1000.0
MILLIS_PER_HOUR = 3600 * 1000
