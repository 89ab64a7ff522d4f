"""Load recorded tracks (GPX, FIT) as position samples for replay."""

from pathlib import Path

import gpxpy
import gpxpy.gpx
from fitparse import FitFile, FitParseError

from tracker.engine.geo import GeoPoint, PositionSample


def _semicircles_to_degrees(val):
    return val * (180 / 2**31) if val is not None else None


def load_gpx_samples(path) -> list[PositionSample]:
    """Every track point of a GPX file, in file order."""
    with open(path, "r", encoding="utf-8") as f:
        gpx = gpxpy.parse(f)

    samples = []
    for track in gpx.tracks:
        for segment in track.segments:
            for p in segment.points:
                # GPX only carries unitless HDOP, not an accuracy in meters
                samples.append(PositionSample(GeoPoint(p.latitude, p.longitude)))
    return samples


def load_fit_samples(path) -> list[PositionSample]:
    """Positioned `record` messages of a FIT file; records without a fix are skipped."""
    ff = FitFile(str(path))
    samples = []
    for record in ff.get_messages("record"):
        fields = {f.name: f.value for f in record}
        lat = _semicircles_to_degrees(fields.get("position_lat"))
        lon = _semicircles_to_degrees(fields.get("position_long"))
        if lat is None or lon is None:
            continue
        samples.append(PositionSample(GeoPoint(lat, lon)))
    return samples


def load_track_samples(path) -> list[PositionSample]:
    """Dispatch on file extension; malformed files raise ValueError."""
    suffix = Path(path).suffix.lower()
    try:
        if suffix == ".gpx":
            return load_gpx_samples(path)
        if suffix == ".fit":
            return load_fit_samples(path)
    except (gpxpy.gpx.GPXException, FitParseError) as e:
        raise ValueError(f"Malformed track file {path}: {e}") from e
    raise ValueError(f"Unsupported track file: {path}")
