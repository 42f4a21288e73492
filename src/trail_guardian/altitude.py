"""Fusion of GPS and barometric altitude into a single elevation estimate.

GPS altitude is absolute but noisy in the vertical; the barometer reports a
relative altitude that is precise locally but has an arbitrary origin. The
barometer is anchored to an absolute scale with a one-time baseline taken
from its first non-zero reading, and both streams are smoothed with a simple
moving average before being blended.

A barometric reading of exactly 0.0 means "sensor not reporting yet". It
never sets the baseline and never contributes a sample, even after the
baseline is set. This matches how recorded trips were scored, so it is kept
as-is even though 0.0 is a plausible relative reading.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import Lock

from trail_guardian.models import FusionParams

logger = logging.getLogger(__name__)


class CalibrationState(Enum):
    UNCALIBRATED = "uncalibrated"
    CALIBRATED = "calibrated"


@dataclass(frozen=True)
class BaroCalibration:
    """Barometric baseline: either uncalibrated or calibrated at a fixed value."""
    state: CalibrationState = CalibrationState.UNCALIBRATED
    baseline: float | None = None

    @property
    def is_calibrated(self) -> bool:
        return self.state is CalibrationState.CALIBRATED

    def calibrate(self, reading: float) -> "BaroCalibration":
        """Return the calibration after observing a relative reading.

        Only the first non-zero reading sets the baseline; afterwards the
        calibration is returned unchanged.
        """
        if self.is_calibrated or reading == 0:
            return self
        return BaroCalibration(state=CalibrationState.CALIBRATED, baseline=reading)

    def absolute(self, reading: float) -> float | None:
        """Convert a relative reading to an absolute altitude, or None if unusable."""
        if reading == 0 or not self.is_calibrated:
            return None
        return self.baseline + reading


def _mean(values: deque) -> float:
    return sum(values) / len(values)


class AltitudeFusionEngine:
    """Thread-safe moving-average fusion of GPS and barometric altitude.

    All mutation happens under a single lock, and the fused value is
    published at the end of each update, so readers never see a buffer
    that has been appended to but not yet evicted or a half-computed mean.
    """

    def __init__(self, params: FusionParams | None = None):
        self.params = params or FusionParams()
        self._lock = Lock()
        self._gps_altitudes: deque[float] = deque(maxlen=self.params.window)
        self._baro_altitudes: deque[float] = deque(maxlen=self.params.window)
        self._calibration = BaroCalibration()
        self._fused_altitude = 0.0
        self._has_estimate = False
        self._last_update: datetime | None = None

    @property
    def fused_altitude(self) -> float:
        with self._lock:
            return self._fused_altitude

    @property
    def has_estimate(self) -> bool:
        """False until a real altitude has been fused, and again after reset()."""
        with self._lock:
            return self._has_estimate

    @property
    def calibration(self) -> BaroCalibration:
        with self._lock:
            return self._calibration

    @property
    def gps_samples(self) -> tuple[float, ...]:
        with self._lock:
            return tuple(self._gps_altitudes)

    @property
    def baro_samples(self) -> tuple[float, ...]:
        with self._lock:
            return tuple(self._baro_altitudes)

    @property
    def last_update(self) -> datetime | None:
        with self._lock:
            return self._last_update

    def update(self, gps_altitude: float, baro_altitude: float, timestamp: datetime | None = None) -> None:
        """Feed one GPS altitude and one relative barometric altitude (meters).

        Non-finite input is dropped without touching any state. Out-of-range
        values are left out of their buffer; the other stream still counts.
        """
        if not (math.isfinite(gps_altitude) and math.isfinite(baro_altitude)):
            logger.debug("Dropping non-finite altitude sample gps=%r baro=%r", gps_altitude, baro_altitude)
            return

        with self._lock:
            self._calibration = self._calibration.calibrate(baro_altitude)

            valid_gps = gps_altitude if self.params.is_valid_altitude(gps_altitude) else None
            if valid_gps is not None:
                self._gps_altitudes.append(valid_gps)
            else:
                logger.debug("GPS altitude %.1f m outside valid range", gps_altitude)

            absolute_baro = self._calibration.absolute(baro_altitude)
            if absolute_baro is not None:
                if self.params.is_valid_altitude(absolute_baro):
                    self._baro_altitudes.append(absolute_baro)
                else:
                    logger.debug("Barometric altitude %.1f m outside valid range", absolute_baro)

            if self._gps_altitudes or self._baro_altitudes:
                self._fused_altitude = self._fuse()
                self._has_estimate = True
            if timestamp is not None:
                self._last_update = timestamp

    def reset(self) -> None:
        """Clear both buffers, the barometric baseline and the fused value."""
        with self._lock:
            self._gps_altitudes.clear()
            self._baro_altitudes.clear()
            self._calibration = BaroCalibration()
            self._fused_altitude = 0.0
            self._has_estimate = False
            self._last_update = None

    def _fuse(self) -> float:
        # Caller holds the lock; at least one buffer is non-empty
        if self._gps_altitudes and self._baro_altitudes:
            return (
                _mean(self._gps_altitudes) * self.params.gps_weight
                + _mean(self._baro_altitudes) * self.params.barometer_weight
            )
        if self._gps_altitudes:
            return _mean(self._gps_altitudes)
        return _mean(self._baro_altitudes)
