"""Config loading and validation for the pony schedule generator."""

from pathlib import Path

import yaml

from ponysg.models import (
    DEFAULT_GAMES_PER_PAIR, DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_FLIPS,
    DEFAULT_TARGET_SLOT,
)

DEFAULTS = {
    "season": {
        "name": "",
    },
    "generation": {
        "target_slot": DEFAULT_TARGET_SLOT,
        "games_per_pair": DEFAULT_GAMES_PER_PAIR,
        "max_attempts": DEFAULT_MAX_ATTEMPTS,
        "max_flips": DEFAULT_MAX_FLIPS,
        "count": 1,
        "seed": None,
    },
    "files": {
        "schedule": "ORIGINAL-schedule.txt",
        "fallback": "pony-schedule.txt",
        "time_slots": "time-slots.txt",
        "lock_file": "lock-teams.txt",
        "output_dir": "generated",
        "output_name": "schedule.txt",
    },
}

POSITIVE_INTS = ("games_per_pair", "max_attempts", "count")


def parse_positive_int(value, default: int) -> int:
    """Coerce `value` to a positive int, falling back to `default`."""
    try:
        n = int(float(value))
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def load_config(path: str | Path | None = None) -> dict:
    """Load config YAML over the defaults, returning structured data.

    Returns dict with:
    - season: {name}
    - generation: {target_slot, games_per_pair, max_attempts, max_flips, count, seed}
    - files: {schedule, fallback, time_slots, lock_file, output_dir, output_name}

    A missing path yields the defaults unchanged.
    """
    raw = {}
    if path is not None and Path(path).exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

    config = {section: dict(values) for section, values in DEFAULTS.items()}
    for section in config:
        config[section].update(raw.get(section) or {})

    gen = config["generation"]
    errors = []
    for key in POSITIVE_INTS:
        fixed = parse_positive_int(gen[key], DEFAULTS["generation"][key])
        if str(fixed) != str(gen[key]):
            errors.append(f"generation.{key}={gen[key]!r} is not a positive "
                          f"integer, using {fixed}")
        gen[key] = fixed

    try:
        flips = int(gen["max_flips"])
    except (TypeError, ValueError):
        flips = -1
    if flips < 0:
        errors.append(f"generation.max_flips={gen['max_flips']!r} is invalid, "
                      f"using {DEFAULT_MAX_FLIPS}")
        flips = DEFAULT_MAX_FLIPS
    gen["max_flips"] = flips

    gen["target_slot"] = str(gen["target_slot"])
    if gen["seed"] is not None:
        gen["seed"] = str(gen["seed"])

    if errors:
        print("Config validation errors:")
        for e in errors:
            print(f"  {e}")

    return config
