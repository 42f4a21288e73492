"""Motion telemetry: attitude, g-force, airtime and roughness history.

Two acceleration streams feed the recorder. User acceleration (gravity
removed) drives g-force and airborne detection. Raw accelerometer output
(gravity included) drives roughness, a vibration proxy, and each roughness
update records one snapshot into a bounded, time-ordered history.
"""

import logging
import math
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Callable

from trail_guardian.models import MotionParams, MotionSnapshot

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _magnitude(x: float, y: float, z: float) -> float:
    return math.sqrt(x * x + y * y + z * z)


class MotionTelemetryRecorder:
    """Thread-safe recorder of inertial samples with a ring-buffer history."""

    def __init__(self, params: MotionParams | None = None, clock: Callable[[], datetime] = _utc_now):
        self.params = params or MotionParams()
        self._clock = clock
        self._lock = Lock()
        self._history: deque[MotionSnapshot] = deque(maxlen=self.params.max_history)
        self._roughness = 0.0
        self._pitch = 0.0
        self._roll = 0.0
        self._g_force = 0.0
        self._is_airborne = False

    def on_attitude_sample(self, pitch_rad: float, roll_rad: float) -> None:
        """Update pitch and roll from an attitude sample in radians."""
        if not (math.isfinite(pitch_rad) and math.isfinite(roll_rad)):
            logger.debug("Dropping non-finite attitude sample")
            return
        with self._lock:
            self._pitch = math.degrees(pitch_rad)
            self._roll = math.degrees(roll_rad)

    def on_acceleration_sample(self, ax: float, ay: float, az: float) -> None:
        """Update g-force and airborne state from user acceleration (g, gravity removed)."""
        g_force = _magnitude(ax, ay, az)
        if not math.isfinite(g_force):
            logger.debug("Dropping non-finite user acceleration sample")
            return
        with self._lock:
            self._g_force = g_force
            self._is_airborne = g_force < self.params.airborne_threshold

    def on_raw_acceleration_sample(
        self, ax: float, ay: float, az: float, timestamp: datetime | None = None
    ) -> MotionSnapshot | None:
        """Update roughness from raw accelerometer output and record a snapshot.

        Returns the recorded snapshot, or None if the sample was dropped.
        """
        roughness = _magnitude(ax, ay, az)
        if not math.isfinite(roughness):
            logger.debug("Dropping non-finite accelerometer sample")
            return None
        with self._lock:
            self._roughness = roughness
            snapshot = self._current(timestamp if timestamp is not None else self._clock())
            self._history.append(snapshot)
        return snapshot

    def snapshot(self, timestamp: datetime | None = None) -> MotionSnapshot:
        """Current instantaneous state (not recorded in the history)."""
        with self._lock:
            return self._current(timestamp if timestamp is not None else self._clock())

    def history(self) -> list[MotionSnapshot]:
        """Recorded snapshots, oldest first."""
        with self._lock:
            return list(self._history)

    def nearest_snapshot(self, to: datetime) -> MotionSnapshot | None:
        """Snapshot whose timestamp is closest to `to`; the earlier one wins ties."""
        with self._lock:
            if not self._history:
                return None
            # min() keeps the first of equal keys
            return min(self._history, key=lambda s: abs((s.timestamp - to).total_seconds()))

    def total_airtime(self) -> float:
        """Seconds spent airborne, summed across consecutive history snapshots."""
        with self._lock:
            snapshots = list(self._history)
        airtime = 0.0
        for prev, curr in zip(snapshots, snapshots[1:]):
            if prev.is_airborne:
                airtime += max(0.0, (curr.timestamp - prev.timestamp).total_seconds())
        return airtime

    def clear(self) -> None:
        """Drop the history and zero the instantaneous state."""
        with self._lock:
            self._history.clear()
            self._roughness = 0.0
            self._pitch = 0.0
            self._roll = 0.0
            self._g_force = 0.0
            self._is_airborne = False

    def _current(self, timestamp: datetime) -> MotionSnapshot:
        # Caller holds the lock
        return MotionSnapshot(
            timestamp=timestamp,
            roughness=self._roughness,
            pitch=self._pitch,
            roll=self._roll,
            g_force=self._g_force,
            is_airborne=self._is_airborne,
        )
