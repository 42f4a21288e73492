from datetime import datetime, timedelta, timezone

import pytest

from trail_guardian.models import GpsFix, TrailPoint

BASE_TIME = datetime(2024, 6, 15, 8, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that advances only when told to."""

    def __init__(self, start: datetime = BASE_TIME):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def make_fix(seconds: float = 0.0, lat: float = 39.0, lng: float = -105.0, altitude: float = 2000.0,
             speed: float = 5.0, heading: float = 90.0, accuracy: float = 5.0) -> GpsFix:
    return GpsFix(
        lat=lat,
        lng=lng,
        altitude=altitude,
        speed=speed,
        heading=heading,
        accuracy=accuracy,
        timestamp=BASE_TIME + timedelta(seconds=seconds),
    )


def make_point(seconds: float = 0.0, grade: float = 0.0, roughness: float = 0.0, lat: float = 39.0,
               lng: float = -105.0, altitude: float = 2000.0, pitch: float = 0.0, roll: float = 0.0,
               g_force: float = 0.0) -> TrailPoint:
    return TrailPoint(
        timestamp=BASE_TIME + timedelta(seconds=seconds),
        lat=lat,
        lng=lng,
        fused_altitude=altitude,
        speed=5.0,
        heading=0.0,
        roughness=roughness,
        pitch=pitch,
        roll=roll,
        g_force=g_force,
        grade_percent=grade,
    )


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def climb_fixes():
    """Five fixes heading north, ~111m apart, climbing 10m each."""
    return [make_fix(seconds=i * 10, lat=39.0 + i * 0.001, altitude=2000.0 + i * 10) for i in range(5)]


@pytest.fixture(name="make_fix")
def make_fix_fixture():
    return make_fix


@pytest.fixture(name="make_point")
def make_point_fixture():
    return make_point
