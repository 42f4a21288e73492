from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from trail_guardian.distance import geodesic_distance


@dataclass(frozen=True)
class GpsFix:
    lat: float
    lng: float
    altitude: float  # meters, raw GPS
    speed: float  # m/s, negative when the receiver has no estimate
    heading: float  # degrees, negative when the course is invalid
    accuracy: float  # horizontal accuracy in meters, negative when invalid
    timestamp: datetime


@dataclass(frozen=True)
class MotionSnapshot:
    timestamp: datetime
    roughness: float  # RMS of raw accelerometer, g
    pitch: float  # degrees
    roll: float  # degrees
    g_force: float  # magnitude of user acceleration, g
    is_airborne: bool


@dataclass(frozen=True)
class TrailPoint:
    timestamp: datetime
    lat: float
    lng: float
    fused_altitude: float  # meters
    speed: float  # m/s
    heading: float  # degrees
    roughness: float = 0.0
    pitch: float = 0.0  # degrees
    roll: float = 0.0  # degrees
    g_force: float = 0.0
    grade_percent: float = 0.0


@dataclass(frozen=True)
class TelemetryStats:
    max_pitch: float = 0.0  # degrees, absolute
    max_roll: float = 0.0  # degrees, absolute
    max_g_force: float = 0.0
    total_airtime: float = 0.0  # seconds


@dataclass(frozen=True)
class WeatherSnapshot:
    timestamp: datetime
    precipitation: float = 0.0  # inches
    temperature: float | None = None
    condition: str = ""  # "sunny", "rain", etc.
    wind_speed: float | None = None


class VehicleType(Enum):
    BRONCO = "Ford Bronco"
    JEEP_WRANGLER = "Jeep Wrangler"
    JEEP_GLADIATOR = "Jeep Gladiator"
    TOYOTA_4RUNNER = "Toyota 4Runner"
    TOYOTA_TACOMA = "Toyota Tacoma"
    CHEVY_COLORADO = "Chevy Colorado/ZR2"
    FORD_RANGER = "Ford Ranger"
    NISSAN_FRONTIER = "Nissan Frontier"
    RAM_1500 = "Ram 1500 TRX/Rebel"
    LAND_ROVER_DEFENDER = "Land Rover Defender"
    OTHER = "Other"


class TerrainMode(Enum):
    NORMAL = "Normal"
    ECO = "Eco"
    SPORT = "Sport"
    SLIPPERY = "Slippery"
    SAND_MUD = "Sand/Mud"
    ROCK_CRAWL = "Rock Crawl"
    BAJA = "Baja"


class DriveMode(Enum):
    TWO_WD = "2WD"
    FOUR_WD_AUTO = "4WD Auto"
    FOUR_WD_HIGH = "4WD High"
    FOUR_WD_LOW = "4WD Low"


@dataclass(frozen=True)
class VehicleData:
    vehicle_type: VehicleType = VehicleType.BRONCO
    terrain_mode: TerrainMode | None = None
    drive_mode: DriveMode | None = None
    front_locker_engaged: bool = False
    rear_locker_engaged: bool = False
    winch_used: bool = False
    trail_control_active: bool = False
    trail_turn_assist_active: bool = False


@dataclass(frozen=True)
class DifficultyRatings:
    sutton_score: int = 0  # 0-100
    jeep_badge: int = 0  # 1-10, 0 when unrated
    wells_rating: str = "Green Circle"
    usfs_rating: str = "Easiest"
    international_rating: str = "Blue"

    @property
    def hundred_club(self) -> bool:
        return self.sutton_score >= 100


@dataclass(frozen=True)
class Trip:
    title: str
    started_at: datetime
    ended_at: datetime | None
    points: tuple[TrailPoint, ...] = ()
    weather_snapshots: tuple[WeatherSnapshot, ...] = ()
    telemetry_stats: TelemetryStats = field(default_factory=TelemetryStats)
    vehicle_data: VehicleData | None = None
    difficulty_ratings: DifficultyRatings = field(default_factory=DifficultyRatings)

    @property
    def total_distance_m(self) -> float:
        total = 0.0
        for prev, curr in zip(self.points, self.points[1:]):
            total += geodesic_distance(prev.lat, prev.lng, curr.lat, curr.lng)
        return total

    @property
    def duration(self) -> timedelta:
        if self.ended_at is not None:
            return self.ended_at - self.started_at
        if len(self.points) >= 2:
            return self.points[-1].timestamp - self.points[0].timestamp
        return timedelta()


def default_trip_title(started_at: datetime) -> str:
    return f"Trail – {started_at:%Y-%m-%d}"


@dataclass
class FusionParams:
    window: int = 10  # moving average samples per sensor
    gps_weight: float = 0.3
    barometer_weight: float = 0.7  # barometer is the more precise vertical sensor
    min_valid_altitude: float = -500.0  # Dead Sea is ~-430m
    max_valid_altitude: float = 9000.0  # Everest is ~8850m

    def __post_init__(self):
        if self.window < 1:
            raise ValueError(f"window must be at least 1, got {self.window}")
        if abs(self.gps_weight + self.barometer_weight - 1.0) > 1e-9:
            raise ValueError(
                f"gps_weight + barometer_weight must equal 1, got {self.gps_weight + self.barometer_weight}"
            )
        if self.min_valid_altitude >= self.max_valid_altitude:
            raise ValueError("min_valid_altitude must be below max_valid_altitude")

    def is_valid_altitude(self, altitude: float) -> bool:
        return self.min_valid_altitude < altitude < self.max_valid_altitude


@dataclass
class MotionParams:
    max_history: int = 7200  # 2 hours at 1 Hz
    airborne_threshold: float = 0.5  # g; net acceleration below this is airtime

    def __post_init__(self):
        if self.max_history < 1:
            raise ValueError(f"max_history must be at least 1, got {self.max_history}")


@dataclass
class PointParams:
    max_accuracy_m: float = 100.0
    meters_per_degree_lat: float = 111_000.0
    meters_per_degree_lng: float = 111_000.0  # at the equator, scaled by cos(lat)
    min_valid_altitude: float = -500.0
    max_valid_altitude: float = 9000.0


@dataclass
class ScoringParams:
    # Component caps
    max_grade_points: float = 40.0
    max_roughness_points: float = 30.0
    max_g_force_points: float = 20.0
    max_pitch_points: float = 10.0
    # Component scaling
    grade_divisor: float = 2.5
    roughness_multiplier: float = 100.0
    g_force_multiplier: float = 10.0
    pitch_divisor: float = 2.0
    # Weather
    weather_penalty: float = 2.0
    precipitation_threshold: float = 0.1  # inches
    # Below this average roughness the trip is treated as paved driving
    min_offroad_roughness: float = 0.05
    paved_multiplier: float = 0.5
    # Vehicle bonuses
    rock_crawl_bonus: float = 5.0
    baja_bonus: float = 3.0
    sand_mud_bonus: float = 2.0
    slippery_bonus: float = 1.0
    locker_bonus: float = 3.0
    four_wd_low_bonus: float = 2.0
    winch_bonus: float = 4.0
    trail_control_bonus: float = 1.0
    # Label thresholds (exclusive lower bounds)
    double_black_threshold: int = 70
    black_diamond_threshold: int = 40
    blue_square_threshold: int = 30
