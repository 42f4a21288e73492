"""Configuration file loading and tunable parameter construction."""

import json
from dataclasses import fields
from pathlib import Path

from trail_guardian.models import FusionParams, MotionParams, PointParams, ScoringParams

CONFIG_DIR = Path.home() / ".config" / "trail-guardian"
CONFIG_PATH = CONFIG_DIR / "trail-guardian.json"
LOCAL_CONFIG_PATH = Path("trail-guardian.json")

# Config keys that differ from the dataclass field they set
_ALIASES = {
    "moving_average_window": ("fusion", "window"),
    "max_snapshot_buffer_size": ("motion", "max_history"),
}


def load_config() -> dict:
    """Load configuration from config files.

    Merges config from global and local files:
    1. ~/.config/trail-guardian/trail-guardian.json (global, loaded first)
    2. ./trail-guardian.json (local, overrides global)

    Returns:
        Dict with merged config values, empty dict if no files exist.
    """
    config = {}
    for config_path in [CONFIG_PATH, LOCAL_CONFIG_PATH]:
        if config_path.exists():
            try:
                with config_path.open() as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                continue
    return config


def _pick(cls, config: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in config.items() if k in names}


def params_from_config(
    config: dict | None = None,
) -> tuple[FusionParams, MotionParams, PointParams, ScoringParams]:
    """Build parameter dataclasses from a flat config dict.

    Unknown keys are ignored. The altitude bounds apply to both fusion and
    point validation.

    Raises:
        ValueError: If a value is out of range for its parameter.
    """
    config = dict(config or {})
    sections: dict[str, dict] = {"fusion": {}, "motion": {}}
    for key, (section, name) in _ALIASES.items():
        if key in config:
            sections[section][name] = config.pop(key)

    fusion = FusionParams(**{**_pick(FusionParams, config), **sections["fusion"]})
    motion = MotionParams(**{**_pick(MotionParams, config), **sections["motion"]})
    points = PointParams(**_pick(PointParams, config))
    scoring = ScoringParams(**_pick(ScoringParams, config))
    return fusion, motion, points, scoring
