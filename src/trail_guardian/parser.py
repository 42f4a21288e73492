import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import gpxpy

from trail_guardian.models import GpsFix

logger = logging.getLogger(__name__)

# Nominal user range error used to turn HDOP into meters
ASSUMED_UERE_M = 5.0

SENSOR_EVENT_TYPES = {
    "baro": ("relative_altitude",),
    "attitude": ("pitch", "roll"),
    "user_accel": ("x", "y", "z"),
    "accel": ("x", "y", "z"),
    "weather": ("precipitation",),
}

# Numeric fields that may be omitted or null
OPTIONAL_NUMERIC_FIELDS = {
    "weather": ("temperature", "wind_speed"),
}


@dataclass(frozen=True)
class SensorEvent:
    time: datetime
    type: str
    values: dict = field(default_factory=dict)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_time(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(value))


def parse_gpx(filepath: str) -> list[GpsFix]:
    """Parse a GPX file and return its timed track points as GPS fixes.

    Points without a timestamp are skipped. Missing elevation becomes NaN
    (dropped by altitude fusion), missing speed or course become -1 (the
    receiver's "invalid" marker), and accuracy is derived from HDOP when
    present, otherwise 0.
    """
    with open(filepath, "r") as f:
        gpx = gpxpy.parse(f)

    fixes: list[GpsFix] = []
    for track in gpx.tracks:
        for segment in track.segments:
            for pt in segment.points:
                if pt.time is None:
                    logger.debug("Skipping untimed track point at %s,%s", pt.latitude, pt.longitude)
                    continue
                hdop = pt.horizontal_dilution
                course = getattr(pt, "course", None)
                fixes.append(
                    GpsFix(
                        lat=pt.latitude,
                        lng=pt.longitude,
                        altitude=pt.elevation if pt.elevation is not None else float("nan"),
                        speed=pt.speed if pt.speed is not None else -1.0,
                        heading=course if course is not None else -1.0,
                        accuracy=hdop * ASSUMED_UERE_M if hdop is not None else 0.0,
                        timestamp=_as_utc(pt.time),
                    )
                )
    return fixes


def parse_sensor_log(filepath: str) -> list[SensorEvent]:
    """Parse a JSON-lines sensor log into events sorted by time.

    Each line is an object with ISO-8601 "time", a "type" from
    SENSOR_EVENT_TYPES and that type's fields, which are converted to
    float. Blank lines are skipped.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a line is malformed, with its line number.
    """
    events: list[SensorEvent] = []
    with open(filepath, "r") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
                event_type = record["type"]
                event_time = parse_time(record["time"])
                values = {k: v for k, v in record.items() if k not in ("time", "type")}
                missing = [k for k in SENSOR_EVENT_TYPES[event_type] if k not in values]
                if missing:
                    raise ValueError(f"missing field(s) {', '.join(missing)} for {event_type!r}")
                for key in SENSOR_EVENT_TYPES[event_type]:
                    values[key] = float(values[key])
                for key in OPTIONAL_NUMERIC_FIELDS.get(event_type, ()):
                    if values.get(key) is not None:
                        values[key] = float(values[key])
            except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Invalid sensor log entry on line {line_no}: {e}") from e
            events.append(SensorEvent(time=event_time, type=event_type, values=values))

    events.sort(key=lambda e: e.time)
    return events
