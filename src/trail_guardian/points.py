"""Construction of validated trail points from GPS fixes.

Each accepted fix is paired with the current fused altitude and the motion
snapshot nearest in time, and gets a grade relative to the previous point.
"""

import logging
import math

from trail_guardian.altitude import AltitudeFusionEngine
from trail_guardian.distance import equirectangular_distance, grade_percent
from trail_guardian.models import GpsFix, PointParams, TrailPoint
from trail_guardian.motion import MotionTelemetryRecorder

logger = logging.getLogger(__name__)


def is_valid_point(point: TrailPoint, params: PointParams) -> bool:
    """Check the coordinate, altitude and finiteness invariants of a trail point."""
    numeric = (
        point.lat, point.lng, point.fused_altitude, point.speed, point.heading,
        point.roughness, point.pitch, point.roll, point.g_force, point.grade_percent,
    )
    if not all(math.isfinite(v) for v in numeric):
        return False
    if not (-90 <= point.lat <= 90 and -180 <= point.lng <= 180):
        return False
    return params.min_valid_altitude < point.fused_altitude < params.max_valid_altitude


class TrailPointBuilder:
    """Merges fused altitude and motion history into trail points.

    Only reads published values from the engine and recorder; it never
    mutates either.
    """

    def __init__(
        self,
        altitude_engine: AltitudeFusionEngine,
        motion_recorder: MotionTelemetryRecorder,
        params: PointParams | None = None,
    ):
        self.altitude_engine = altitude_engine
        self.motion_recorder = motion_recorder
        self.params = params or PointParams()

    def accepts(self, fix: GpsFix) -> bool:
        """Whether a fix has usable coordinates and horizontal accuracy."""
        if not (math.isfinite(fix.lat) and math.isfinite(fix.lng)):
            return False
        if not math.isfinite(fix.accuracy) or fix.accuracy < 0:
            return False
        return fix.accuracy <= self.params.max_accuracy_m

    def build_point(self, fix: GpsFix, previous: TrailPoint | None = None) -> TrailPoint | None:
        """Build a trail point for a fix, or None if the fix or result is invalid.

        The fix's own altitude must already have been fed to the altitude
        engine by the caller. Until the engine has fused a real altitude
        there is nothing to pair the fix with, so no point is built.
        """
        if not self.accepts(fix):
            logger.debug("Rejecting fix at %s (accuracy %r)", fix.timestamp, fix.accuracy)
            return None

        if not self.altitude_engine.has_estimate:
            logger.debug("No altitude estimate yet, skipping fix at %s", fix.timestamp)
            return None
        fused_altitude = self.altitude_engine.fused_altitude

        motion = self.motion_recorder.nearest_snapshot(fix.timestamp)
        if motion is None:
            motion = self.motion_recorder.snapshot(fix.timestamp)

        grade = 0.0
        if previous is not None:
            distance = equirectangular_distance(
                previous.lat, previous.lng, fix.lat, fix.lng,
                self.params.meters_per_degree_lat, self.params.meters_per_degree_lng,
            )
            grade = grade_percent(fused_altitude - previous.fused_altitude, distance)

        point = TrailPoint(
            timestamp=fix.timestamp,
            lat=fix.lat,
            lng=fix.lng,
            fused_altitude=fused_altitude,
            speed=max(0.0, fix.speed),
            heading=fix.heading if fix.heading >= 0 else 0.0,
            roughness=motion.roughness,
            pitch=motion.pitch,
            roll=motion.roll,
            g_force=motion.g_force,
            grade_percent=grade,
        )
        if not is_valid_point(point, self.params):
            logger.debug("Discarding invalid trail point at %s", fix.timestamp)
            return None
        return point
