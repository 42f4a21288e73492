import argparse
import logging
import sys

from trail_guardian import __version_date__
from trail_guardian.config import load_config, params_from_config
from trail_guardian.models import (
    DriveMode,
    TerrainMode,
    VehicleData,
    VehicleType,
    WeatherSnapshot,
)
from trail_guardian.parser import parse_gpx, parse_sensor_log
from trail_guardian.session import TrackingSession, replay

# Default values for CLI options
DEFAULTS = {
    "moving_average_window": 10,
    "max_accuracy_m": 100.0,
    "max_history": 7200,
}


def _enum_choice(enum_cls):
    by_name = {m.name.lower(): m for m in enum_cls}

    def convert(value: str):
        key = value.strip().lower().replace("-", "_")
        if key not in by_name:
            raise argparse.ArgumentTypeError(
                f"invalid choice: {value} (choose from {', '.join(sorted(by_name))})"
            )
        return by_name[key]

    return convert


def build_parser(config: dict | None = None) -> argparse.ArgumentParser:
    """Build argument parser with defaults from config file."""
    if config is None:
        config = {}

    def get_default(key: str):
        return config.get(key, DEFAULTS[key])

    parser = argparse.ArgumentParser(
        description="Replay a recorded off-road trip and rate its difficulty."
    )
    parser.add_argument("gpx_file", help="Path to GPX file with the trip's GPS fixes")
    parser.add_argument(
        "--sensors",
        type=str,
        default=None,
        help="JSON-lines sensor log (baro, attitude, user_accel, accel, weather events)",
    )
    parser.add_argument(
        "--window",
        type=int,
        default=get_default("moving_average_window"),
        help=f"Altitude moving average window in samples (default: {DEFAULTS['moving_average_window']})",
    )
    parser.add_argument(
        "--max-accuracy",
        type=float,
        default=get_default("max_accuracy_m"),
        help=f"Reject fixes with horizontal accuracy worse than this, in meters (default: {DEFAULTS['max_accuracy_m']})",
    )
    parser.add_argument(
        "--max-history",
        type=int,
        default=config.get("max_snapshot_buffer_size", get_default("max_history")),
        help=f"Motion snapshot history capacity (default: {DEFAULTS['max_history']})",
    )
    parser.add_argument(
        "--vehicle-type",
        type=_enum_choice(VehicleType),
        default=None,
        help="Vehicle, e.g. bronco, jeep_wrangler (default: none, no vehicle bonus)",
    )
    parser.add_argument("--terrain-mode", type=_enum_choice(TerrainMode), default=None,
                        help="Terrain management mode, e.g. rock_crawl, baja, sand_mud")
    parser.add_argument("--drive-mode", type=_enum_choice(DriveMode), default=None,
                        help="Drive mode, e.g. four_wd_low")
    parser.add_argument("--locker", action="store_true", help="A differential locker was engaged")
    parser.add_argument("--winch", action="store_true", help="The winch was used")
    parser.add_argument("--trail-control", action="store_true", help="Trail Control or Trail Turn Assist was active")
    parser.add_argument(
        "--precipitation",
        type=float,
        default=None,
        help="Observed precipitation in inches, recorded as a weather snapshot",
    )
    parser.add_argument("--title", type=str, default=None, help="Trip title")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log dropped samples and session events")
    return parser


def format_duration(td) -> str:
    total_seconds = int(td.total_seconds())
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}h {minutes:02d}m {seconds:02d}s"


def build_vehicle(args) -> VehicleData | None:
    if args.vehicle_type is None:
        if args.terrain_mode or args.drive_mode or args.locker or args.winch or args.trail_control:
            vehicle_type = VehicleType.BRONCO
        else:
            return None
    else:
        vehicle_type = args.vehicle_type
    return VehicleData(
        vehicle_type=vehicle_type,
        terrain_mode=args.terrain_mode,
        drive_mode=args.drive_mode,
        front_locker_engaged=args.locker,
        winch_used=args.winch,
        trail_control_active=args.trail_control,
    )


def main(argv: list[str] | None = None) -> None:
    config = load_config()
    parser = build_parser(config)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        "moving_average_window": args.window,
        "max_accuracy_m": args.max_accuracy,
        "max_snapshot_buffer_size": args.max_history,
    }
    try:
        fusion, motion, point_params, scoring = params_from_config({**config, **overrides})
    except (TypeError, ValueError) as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        fixes = parse_gpx(args.gpx_file)
    except FileNotFoundError:
        print(f"Error: File not found: {args.gpx_file}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error parsing GPX file: {e}", file=sys.stderr)
        sys.exit(1)

    events = []
    if args.sensors:
        try:
            events = parse_sensor_log(args.sensors)
        except FileNotFoundError:
            print(f"Error: File not found: {args.sensors}", file=sys.stderr)
            sys.exit(1)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    if len(fixes) < 2:
        print("Error: GPX file contains fewer than 2 timed track points.", file=sys.stderr)
        sys.exit(1)

    started_at = fixes[0].timestamp
    if events and events[0].time < started_at:
        started_at = events[0].time

    session = TrackingSession(fusion, motion, point_params, scoring)
    session.start(started_at=started_at)
    replay(session, fixes, events)
    if args.precipitation is not None:
        session.add_weather(WeatherSnapshot(timestamp=started_at, precipitation=args.precipitation))
    trip = session.finish(title=args.title, vehicle=build_vehicle(args), ended_at=fixes[-1].timestamp)

    points = list(trip.points)
    ratings = trip.difficulty_ratings
    stats = trip.telemetry_stats
    max_grade = max((abs(p.grade_percent) for p in points), default=0.0)
    avg_roughness = sum(p.roughness for p in points) / len(points) if points else 0.0

    print("=== Trail Difficulty Report ===")
    print(f"Trip:           {trip.title} (trail-guardian {__version_date__})")
    print(f"Points:         {len(points)} of {len(fixes)} fixes accepted")
    dist_km = trip.total_distance_m / 1000
    dist_mi = dist_km * 0.621371
    print(f"Distance:       {dist_km:.2f} km ({dist_mi:.2f} mi)")
    print(f"Duration:       {format_duration(trip.duration)}")
    print(f"Max Grade:      {max_grade:.1f}%")
    print(f"Avg Roughness:  {avg_roughness:.3f} g")
    print(f"Max Pitch:      {stats.max_pitch:.1f}°")
    print(f"Max Roll:       {stats.max_roll:.1f}°")
    print(f"Max G-Force:    {stats.max_g_force:.2f} g")
    print(f"Airtime:        {stats.total_airtime:.1f} s")
    print(f"Sutton Score:   {ratings.sutton_score}/100")
    print(f"Jeep Badge:     {ratings.jeep_badge}/10")
    print(f"Wells Rating:   {ratings.wells_rating}")
    print(f"USFS Rating:    {ratings.usfs_rating}")
    print(f"International:  {ratings.international_rating}")
    if ratings.hundred_club:
        print("Welcome to the 100 Club!")
