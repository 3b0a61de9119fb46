"""Constraint validation for the pony schedule generator.

Can validate either a freshly generated game list or a schedule re-read
from disk.
"""

from ponysg.models import Game, LockRequirement, Slot
from ponysg.pairs import verify_pair_counts
from ponysg.stats import (
    compute_home_away_balance, verify_no_doubleheaders, weekly_frequency,
)


def verify_time_slots(games: list[Game], slots: list[Slot]) -> dict:
    """Compare each game's (date, slot) against the canonical slot list, in order."""
    mismatches = []
    for i, (game, expected) in enumerate(zip(games, slots)):
        if game.date != expected.date or game.slot != expected.slot:
            mismatches.append({
                "index": i,
                "expected": (expected.date, expected.slot),
                "actual": (game.date, game.slot),
            })
    return {
        "expected_count": len(slots),
        "actual_count": len(games),
        "mismatches": mismatches,
        "is_exact": len(games) == len(slots) and not mismatches,
    }


def verify_locked_teams(games: list[Game],
                        lock_requirements: dict[int, LockRequirement]) -> dict:
    """Check that every locked slot's game carries all of its required teams."""
    matches = []
    mismatches = []
    for slot_index in sorted(lock_requirements):
        if slot_index >= len(games):
            continue
        game = games[slot_index]
        expected = sorted(lock_requirements[slot_index].required_teams)
        actual = [t for t in (game.away, game.home) if t in expected]
        entry = {
            "slot_index": slot_index,
            "date": game.date,
            "slot": game.slot,
            "expected": expected,
            "actual": actual,
            "game": (game.away, game.home),
        }
        if all(t in actual for t in expected):
            matches.append(entry)
        else:
            mismatches.append(entry)
    return {
        "lock_count": len(lock_requirements),
        "matches": matches,
        "mismatches": mismatches,
        "success": not mismatches,
    }


def validate_schedule(games: list[Game], teams: list[str],
                      slots: list[Slot] | None = None,
                      lock_requirements: dict[int, LockRequirement] | None = None,
                      games_per_pair: int = 3) -> dict:
    """Validate a schedule against all constraints.

    Returns dict with:
    - valid: bool (True if no hard constraint violations)
    - errors: list of hard constraint violations
    - warnings: list of soft constraint issues
    """
    errors = []
    warnings = []

    # No team plays twice on one date
    dh = verify_no_doubleheaders(games)
    for v in dh["violations"]:
        errors.append(f"{v['team']} plays {v['game_count']} games on {v['date']}")

    # Every pair meets games_per_pair times
    errors.extend(verify_pair_counts(games, teams, games_per_pair)["errors"])

    # Games line up with the canonical slot list
    if slots is not None:
        slot_check = verify_time_slots(games, slots)
        if slot_check["expected_count"] != slot_check["actual_count"]:
            delta = slot_check["actual_count"] - slot_check["expected_count"]
            word = "extra" if delta > 0 else "missing"
            errors.append(f"Schedule has {abs(delta)} {word} slots")
        for m in slot_check["mismatches"]:
            errors.append(
                f"Slot #{m['index'] + 1}: expected {m['expected'][0]} "
                f"{m['expected'][1]}, got {m['actual'][0]} {m['actual'][1]}"
            )

    # Locked teams stayed in their slots
    if lock_requirements:
        lock_check = verify_locked_teams(games, lock_requirements)
        for m in lock_check["mismatches"]:
            errors.append(
                f"Slot #{m['slot_index'] + 1} ({m['date']} {m['slot']}) locked to "
                f"{', '.join(m['expected'])} but has {m['game'][0]} @ {m['game'][1]}"
            )

    for w in weekly_frequency(games):
        warnings.append(f"Week of {w['week']}: {w['team']} plays {w['games']} games")

    for team, b in compute_home_away_balance(games).items():
        if b["diff"] > 1:
            warnings.append(
                f"{team} home/away imbalance: {b['home']}H/{b['away']}A "
                f"(diff={b['diff']})"
            )

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
    }


def format_validation_report(result: dict, limit: int = 20) -> str:
    """Render validate_schedule() output; at most `limit` lines per section."""
    errors = result["errors"]
    warnings = result["warnings"]
    verdict = ("PASS" if result["valid"]
               else f"FAIL - {len(errors)} hard constraint violation(s)")
    lines = [f"Constraint check: {verdict}"]

    for label, items in (("Violations", errors), ("Notes", warnings)):
        if not items:
            continue
        lines.append(f"  {label} ({len(items)}):")
        lines.extend(f"    - {item}" for item in items[:limit])
        if len(items) > limit:
            lines.append(f"    ... {len(items) - limit} more")

    return "\n".join(lines)
