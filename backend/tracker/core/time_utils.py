def seconds_to_hhmmss(total_seconds: int) -> str:
    """
    Convert total seconds (int) -> 'HH:MM:SS'.
    Example: 2732 -> '00:45:32'
    """
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_stopwatch(millis: int, include_millis: bool = False) -> str:
    """
    Format elapsed milliseconds the way the stopwatch shows them.
    Example: 2732450 -> '00:45:32', or '00:45:32:45' with hundredths.
    """
    text = seconds_to_hhmmss(millis // 1000)
    if not include_millis:
        return text
    hundredths = (millis % 1000) // 10
    return f"{text}:{hundredths:02d}"


def compute_pace(duration_ms: int, distance_m: float) -> str:
    """
    Compute pace per kilometer as 'M:SS/km'.
    Example: duration=1500000 ms, distance=5000 m -> '5:00/km'
    """
    if distance_m <= 0:
        return "0:00/km"

    pace_sec = int((duration_ms / 1000) / (distance_m / 1000))

    minutes = pace_sec // 60
    seconds = pace_sec % 60
    return f"{minutes}:{seconds:02d}/km"


def to_local_datetime(dt, tz_name: str | None = None):
    """Convert a datetime from source tz (assume UTC if naive) to local or given tz.

    - If `tz_name` is 'local' or None: use system local timezone.
    - If `tz_name` is IANA tz name (e.g., 'America/New_York'): use that.
    - If `dt` has no tzinfo, assume UTC.
    """
    from datetime import timezone
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if tz_name and tz_name != "local":
        try:
            return dt.astimezone(ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            return dt.astimezone()
    return dt.astimezone()
