#!/usr/bin/env python3
"""
Replay a recorded GPX or FIT track against a running tracker API.

Sends START_OR_RESUME, then one sample per interval, optionally pausing
halfway, then STOP and FINISH. Useful for exercising a deployed backend
and any attached observers end to end.

Usage examples:
  - Against a local backend:
      python scripts/replay_track.py --base-url http://localhost:8000 morning.gpx
  - Faster than real time, with a mid-run pause:
      python scripts/replay_track.py --base-url http://localhost:8000 --interval 0.2 --pause-at 0.5 long.fit
"""

from __future__ import annotations

import argparse
import sys
import time

try:
    import requests  # type: ignore
except Exception as exc:  # pragma: no cover
    print("This script requires the 'requests' package.\nInstall with: pip install requests", file=sys.stderr)
    raise

from tracker.engine.tracks import load_track_samples


def post_json(base_url: str, path: str, payload: dict) -> dict:
    url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    r = requests.post(url, json=payload, timeout=15)
    if r.status_code >= 300:
        raise RuntimeError(f"{path} -> HTTP {r.status_code}: {r.text}")
    return r.json()


def command(base_url: str, name: str, **extra) -> dict:
    return post_json(base_url, "tracking/commands", {"command": name, **extra})


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay a GPX/FIT track into the tracker API")
    ap.add_argument("track", help="Path to a .gpx or .fit file")
    ap.add_argument("--base-url", required=True, help="API base URL (e.g., http://localhost:8000)")
    ap.add_argument("--interval", type=float, default=1.0, help="Seconds between samples")
    ap.add_argument("--pause-at", type=float, default=None, help="Fraction of the track at which to pause for one interval")
    ap.add_argument("--weight", type=float, default=None, help="Body weight (kg) for the calorie estimate")
    args = ap.parse_args()

    samples = load_track_samples(args.track)
    if not samples:
        print(f"No positions in {args.track}", file=sys.stderr)
        sys.exit(1)

    pause_idx = int(len(samples) * args.pause_at) if args.pause_at is not None else None
    command(args.base_url, "START_OR_RESUME")
    for i, sample in enumerate(samples):
        post_json(args.base_url, "tracking/samples", {
            "latitude": sample.point.latitude,
            "longitude": sample.point.longitude,
            "accuracy_m": sample.accuracy_m,
        })
        if i == pause_idx:
            command(args.base_url, "PAUSE")
            time.sleep(args.interval)
            command(args.base_url, "START_OR_RESUME")
        time.sleep(args.interval)

    command(args.base_url, "STOP")
    extra = {"body_weight_kg": args.weight} if args.weight else {}
    run = command(args.base_url, "FINISH", **extra)
    print(f"Saved run: {run['distance_meters']} m in {run['duration']} ({run['pace']})")


if __name__ == "__main__":
    main()
