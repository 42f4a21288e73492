"""Trail difficulty scoring.

The Sutton Score (0-100) is built from four capped components:

    grade       min(40, max_grade / 2.5)
    roughness   min(30, avg_roughness * 100)
    g-force     min(20, max_g_force * 10)
    pitch       min(10, max_pitch / 2)

plus a rain penalty and, for the Bronco, bonus points from terrain mode,
lockers, 4WD Low, the winch and trail assist features. Trips whose average
roughness is below the off-road floor are presumed paved and have the whole
total halved. The Wells, USFS and international labels and the Jeep badge
are derived from the final score.
"""

import math
from dataclasses import replace
from typing import Iterable, Sequence

from trail_guardian.models import (
    DifficultyRatings,
    DriveMode,
    ScoringParams,
    TelemetryStats,
    TerrainMode,
    TrailPoint,
    Trip,
    VehicleData,
    VehicleType,
    WeatherSnapshot,
)

# (wells, usfs, international) per band, hardest first
DOUBLE_BLACK = ("Double Black", "Most Difficult", "Double Black")
BLACK_DIAMOND = ("Black Diamond", "More Difficult", "Black")
BLUE_SQUARE = ("Blue Square", "More Difficult", "Red")
GREEN_CIRCLE = ("Green Circle", "Easiest", "Blue")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def weather_penalty(weather_snapshots: Iterable[WeatherSnapshot], params: ScoringParams) -> float:
    if any(w.precipitation > params.precipitation_threshold for w in weather_snapshots):
        return params.weather_penalty
    return 0.0


def vehicle_adjustment(vehicle: VehicleData | None, params: ScoringParams) -> float:
    """Bonus points for off-road hardware in use; only the Bronco reports these."""
    if vehicle is None or vehicle.vehicle_type is not VehicleType.BRONCO:
        return 0.0

    terrain_bonus = {
        TerrainMode.ROCK_CRAWL: params.rock_crawl_bonus,
        TerrainMode.BAJA: params.baja_bonus,
        TerrainMode.SAND_MUD: params.sand_mud_bonus,
        TerrainMode.SLIPPERY: params.slippery_bonus,
    }
    adjustment = terrain_bonus.get(vehicle.terrain_mode, 0.0)
    if vehicle.front_locker_engaged or vehicle.rear_locker_engaged:
        adjustment += params.locker_bonus
    if vehicle.drive_mode is DriveMode.FOUR_WD_LOW:
        adjustment += params.four_wd_low_bonus
    if vehicle.winch_used:
        adjustment += params.winch_bonus
    if vehicle.trail_control_active or vehicle.trail_turn_assist_active:
        adjustment += params.trail_control_bonus
    return adjustment


def labels_for_score(score: int, params: ScoringParams) -> tuple[str, str, str]:
    """Return (wells, usfs, international) labels for a Sutton Score."""
    if score > params.double_black_threshold:
        return DOUBLE_BLACK
    if score > params.black_diamond_threshold:
        return BLACK_DIAMOND
    if score > params.blue_square_threshold:
        return BLUE_SQUARE
    return GREEN_CIRCLE


def ratings_for_score(score: int, params: ScoringParams | None = None) -> DifficultyRatings:
    params = params or ScoringParams()
    wells, usfs, international = labels_for_score(score, params)
    return DifficultyRatings(
        sutton_score=score,
        jeep_badge=min(10, max(1, score // 10)),
        wells_rating=wells,
        usfs_rating=usfs,
        international_rating=international,
    )


def sutton_total(
    max_grade: float,
    avg_roughness: float,
    max_g_force: float,
    max_pitch: float,
    bonus: float = 0.0,
    params: ScoringParams | None = None,
) -> float:
    """Unrounded, unclamped score from the four metrics plus penalty/bonus points."""
    params = params or ScoringParams()
    grade_score = min(params.max_grade_points, max_grade / params.grade_divisor)
    roughness_score = min(params.max_roughness_points, avg_roughness * params.roughness_multiplier)
    g_force_score = min(params.max_g_force_points, max_g_force * params.g_force_multiplier)
    pitch_score = min(params.max_pitch_points, max_pitch / params.pitch_divisor)

    total = grade_score + roughness_score + g_force_score + pitch_score + bonus
    if avg_roughness < params.min_offroad_roughness:
        total *= params.paved_multiplier
    return total


def score(
    points: Sequence[TrailPoint],
    telemetry: TelemetryStats | None = None,
    weather_snapshots: Iterable[WeatherSnapshot] = (),
    vehicle: VehicleData | None = None,
    params: ScoringParams | None = None,
) -> DifficultyRatings:
    """Compute difficulty ratings for a trip's points.

    Pure function of its inputs; missing telemetry, weather or vehicle data
    contribute nothing.
    """
    params = params or ScoringParams()
    if not points:
        return DifficultyRatings()

    telemetry = telemetry or TelemetryStats()
    max_grade = max(abs(p.grade_percent) for p in points)
    avg_roughness = sum(p.roughness for p in points) / len(points)
    bonus = weather_penalty(weather_snapshots, params) + vehicle_adjustment(vehicle, params)

    total = sutton_total(
        max_grade, avg_roughness, telemetry.max_g_force, telemetry.max_pitch, bonus, params
    )
    # Clamping before rounding gives the same result and keeps inf/nan out of floor()
    sutton_score = _round_half_up(min(100.0, max(0.0, total)))
    return ratings_for_score(sutton_score, params)


def rescore(trip: Trip, params: ScoringParams | None = None) -> Trip:
    """Return the trip with ratings recomputed from its stored points."""
    ratings = score(
        trip.points, trip.telemetry_stats, trip.weather_snapshots, trip.vehicle_data, params
    )
    return replace(trip, difficulty_ratings=ratings)
