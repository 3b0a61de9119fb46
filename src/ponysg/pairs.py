"""Pair ledger: one remaining-games counter per unordered team pairing."""

import math
from collections import defaultdict

from ponysg.models import Game, Pair, TargetRange


def normalize_teams(teams) -> list[str]:
    """Deduplicate a team collection, keeping first-seen order."""
    if not teams:
        return []
    seen = []
    for t in teams:
        if t not in seen:
            seen.append(t)
    return seen


def create_pair_state(teams: list[str], games_per_pair: int) -> list[Pair]:
    """Build the pair ledger for a full N-way round robin.

    Teams are sorted first so the ledger order (and therefore every
    generator-indexed choice made over it) does not depend on input order.
    """
    ordered = sorted(teams)
    pairs = []
    for i, t1 in enumerate(ordered):
        for t2 in ordered[i + 1:]:
            pairs.append(Pair(teams=(t1, t2), remaining=games_per_pair))
    return pairs


def compute_target_range(team_count: int, slot_game_count: int) -> TargetRange:
    """Per-team appearance band for the target slot.

    Each target-slot game holds two teams, so the mean appearance count is
    2 * slot_game_count / team_count.
    """
    appearances = slot_game_count * 2
    ideal = appearances / team_count if team_count else 0
    return TargetRange(min=math.floor(ideal), max=math.ceil(ideal), ideal=ideal)


def unfinished_pairs(pairs: list[Pair]) -> list[Pair]:
    return [p for p in pairs if p.remaining > 0]


def verify_pair_counts(games: list[Game], teams: list[str],
                       games_per_pair: int) -> dict:
    """Check that every pair of teams meets exactly games_per_pair times.

    Returns dict with:
    - valid: bool
    - errors: list of error strings
    - matchup_counts: dict of (team_a, team_b) -> count (sorted key)
    - games_per_team: dict of team -> game count
    """
    errors = []
    matchup_counts: dict[tuple[str, str], int] = defaultdict(int)
    games_per_team: dict[str, int] = {t: 0 for t in teams}

    for g in games:
        key = (g.away, g.home) if g.away < g.home else (g.home, g.away)
        matchup_counts[key] += 1
        games_per_team[g.away] = games_per_team.get(g.away, 0) + 1
        games_per_team[g.home] = games_per_team.get(g.home, 0) + 1

    ordered = sorted(teams)
    for i, t1 in enumerate(ordered):
        for t2 in ordered[i + 1:]:
            count = matchup_counts.get((t1, t2), 0)
            if count != games_per_pair:
                errors.append(
                    f"{t1} vs {t2}: played {count} times "
                    f"(expected {games_per_pair})"
                )

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "matchup_counts": dict(matchup_counts),
        "games_per_team": games_per_team,
    }
