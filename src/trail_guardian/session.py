"""A tracking session: one trip's worth of sensor ingestion and finalization."""

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Callable

from trail_guardian.altitude import AltitudeFusionEngine
from trail_guardian.models import (
    FusionParams,
    GpsFix,
    MotionParams,
    PointParams,
    ScoringParams,
    TelemetryStats,
    TrailPoint,
    Trip,
    VehicleData,
    WeatherSnapshot,
    default_trip_title,
)
from trail_guardian.motion import MotionTelemetryRecorder
from trail_guardian.points import TrailPointBuilder
from trail_guardian.scoring import score

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def telemetry_stats(points: list[TrailPoint], total_airtime: float = 0.0) -> TelemetryStats:
    """Pitch, roll and g-force extrema over the trip's points."""
    if not points:
        return TelemetryStats(total_airtime=total_airtime)
    return TelemetryStats(
        max_pitch=max(abs(p.pitch) for p in points),
        max_roll=max(abs(p.roll) for p in points),
        max_g_force=max(p.g_force for p in points),
        total_airtime=total_airtime,
    )


class TrackingSession:
    """Owns the altitude engine, motion recorder and point builder for one trip.

    Sensor callbacks may arrive from different threads. The engine and the
    recorder serialize their own state; the session lock covers the point
    list and the latest barometer reading.
    """

    def __init__(
        self,
        fusion_params: FusionParams | None = None,
        motion_params: MotionParams | None = None,
        point_params: PointParams | None = None,
        scoring_params: ScoringParams | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.altitude_engine = AltitudeFusionEngine(fusion_params)
        self.motion_recorder = MotionTelemetryRecorder(motion_params, clock=clock)
        self.point_builder = TrailPointBuilder(self.altitude_engine, self.motion_recorder, point_params)
        self.scoring_params = scoring_params or ScoringParams()
        self._clock = clock
        self._lock = Lock()
        self._points: list[TrailPoint] = []
        self._weather: list[WeatherSnapshot] = []
        self._baro_altitude = 0.0
        self.started_at: datetime | None = None

    @property
    def points(self) -> list[TrailPoint]:
        with self._lock:
            return list(self._points)

    @property
    def fused_altitude(self) -> float:
        return self.altitude_engine.fused_altitude

    def start(self, started_at: datetime | None = None) -> None:
        """Begin a new trip, discarding all state from any previous one."""
        self.altitude_engine.reset()
        self.motion_recorder.clear()
        with self._lock:
            self._points.clear()
            self._weather.clear()
            self._baro_altitude = 0.0
            self.started_at = started_at or self._clock()
        logger.info("Started tracking at %s", self.started_at.isoformat())

    def on_barometer(self, relative_altitude: float) -> None:
        with self._lock:
            self._baro_altitude = relative_altitude

    def on_attitude(self, pitch_rad: float, roll_rad: float) -> None:
        self.motion_recorder.on_attitude_sample(pitch_rad, roll_rad)

    def on_user_acceleration(self, ax: float, ay: float, az: float) -> None:
        self.motion_recorder.on_acceleration_sample(ax, ay, az)

    def on_acceleration(self, ax: float, ay: float, az: float, timestamp: datetime | None = None) -> None:
        self.motion_recorder.on_raw_acceleration_sample(ax, ay, az, timestamp)

    def add_weather(self, snapshot: WeatherSnapshot) -> None:
        with self._lock:
            self._weather.append(snapshot)

    def on_gps_fix(self, fix: GpsFix) -> TrailPoint | None:
        """Fuse the fix's altitude and append a trail point if the fix is usable.

        Fixes that are not strictly newer than the last point are dropped.
        """
        with self._lock:
            baro_altitude = self._baro_altitude
            previous = self._points[-1] if self._points else None
            if previous is not None and fix.timestamp <= previous.timestamp:
                logger.debug("Dropping out-of-order fix at %s", fix.timestamp)
                return None

            self.altitude_engine.update(fix.altitude, baro_altitude, fix.timestamp)
            point = self.point_builder.build_point(fix, previous)
            if point is not None:
                self._points.append(point)
            return point

    def finish(
        self,
        title: str | None = None,
        vehicle: VehicleData | None = None,
        ended_at: datetime | None = None,
    ) -> Trip:
        """Finalize the trip: compute extrema and ratings, then clear motion history."""
        ended_at = ended_at or self._clock()
        total_airtime = self.motion_recorder.total_airtime()
        with self._lock:
            points = tuple(self._points)
            weather = tuple(self._weather)
            started_at = self.started_at or (points[0].timestamp if points else ended_at)

        stats = telemetry_stats(list(points), total_airtime)
        ratings = score(points, stats, weather, vehicle, self.scoring_params)
        trip = Trip(
            title=title or default_trip_title(started_at),
            started_at=started_at,
            ended_at=ended_at,
            points=points,
            weather_snapshots=weather,
            telemetry_stats=stats,
            vehicle_data=vehicle,
            difficulty_ratings=ratings,
        )
        self.motion_recorder.clear()

        logger.info(
            "Trip finished: %d points, %.2f km, Sutton Score %d/100",
            len(points), trip.total_distance_m / 1000, ratings.sutton_score,
        )
        if ratings.hundred_club:
            logger.info("Trip joined the 100 Club")
        return trip


def replay(session: TrackingSession, fixes: list[GpsFix], events: list | None = None) -> list[TrailPoint]:
    """Feed recorded fixes and sensor events through a session in time order.

    Sensor events sharing a timestamp with a fix are applied before it, so a
    barometer reading logged alongside a fix contributes to that fix.
    Returns the points accepted during the replay.
    """
    timeline = [(e.time, 0, e) for e in events or []] + [(f.timestamp, 1, f) for f in fixes]
    timeline.sort(key=lambda item: (item[0], item[1]))

    accepted = []
    for event_time, _, item in timeline:
        if isinstance(item, GpsFix):
            point = session.on_gps_fix(item)
            if point is not None:
                accepted.append(point)
        elif item.type == "baro":
            session.on_barometer(float(item.values["relative_altitude"]))
        elif item.type == "attitude":
            session.on_attitude(float(item.values["pitch"]), float(item.values["roll"]))
        elif item.type == "user_accel":
            v = item.values
            session.on_user_acceleration(float(v["x"]), float(v["y"]), float(v["z"]))
        elif item.type == "accel":
            v = item.values
            session.on_acceleration(float(v["x"]), float(v["y"]), float(v["z"]), event_time)
        elif item.type == "weather":
            v = item.values
            session.add_weather(
                WeatherSnapshot(
                    timestamp=event_time,
                    precipitation=float(v["precipitation"]),
                    temperature=v.get("temperature"),
                    condition=v.get("condition", ""),
                    wind_speed=v.get("wind_speed"),
                )
            )
    return accepted
