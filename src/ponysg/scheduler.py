"""Main scheduling engine for the pony schedule generator.

Three phases per attempt:
1. Selection: walk the slots in order, scoring every eligible pair for each
   slot and taking the best (random tie-break).
2. Home/away: decide sides for the chosen pair (lock, balance, coin flip).
3. Completion check: every pair must have met games_per_pair times.

A failed attempt is thrown away whole and retried with a new derived seed;
there is no per-slot backtracking. A successful attempt is then passed to
the home/away optimizer.
"""

import sys
import time
from collections import defaultdict

from ponysg.errors import (
    AttemptError, DoubleheaderRegression, InputError, RetryBudgetExhausted,
    SlotExhaustion, UnmetPairCount,
)
from ponysg.models import (
    DEFAULT_GAMES_PER_PAIR, DEFAULT_MAX_ATTEMPTS, DEFAULT_MAX_FLIPS,
    DEFAULT_TARGET_SLOT, AttemptFailure, Game, LockRequirement, Pair,
    ScheduleResult, Slot,
)
from ponysg.optimizer import optimize_home_away_balance
from ponysg.pairs import (
    compute_target_range, create_pair_state, normalize_teams, unfinished_pairs,
)
from ponysg.rng import create_seeded_rng
from ponysg.stats import verify_no_doubleheaders, week_key

WEEKLY_CAP = 2  # unforced slots only


# ---------------------------------------------------------------------------
# Phase 1: pair selection
# ---------------------------------------------------------------------------

def _deficit(count: int, min_target: int) -> int:
    return max(0, min_target - count)


def _new_rejection_counts() -> dict[str, int]:
    return {"exhausted": 0, "wrong_team": 0, "same_day": 0,
            "team_locked": 0, "week_limit": 0, "would_exceed": 0}


def select_pair(pairs: list[Pair], is_target_slot: bool,
                team_target_counts: dict[str, int],
                min_target: int, max_target: int,
                team_games_remaining: dict[str, int],
                rng,
                required_teams=None,
                teams_played_today: set[str] | None = None,
                all_locked_teams: set[str] | None = None,
                teams_this_week: dict[str, int] | None = None,
                diagnostics: dict | None = None) -> Pair | None:
    """Pick the best eligible pair for one slot, or None.

    Filters run in order and stop at the first failure: remaining games,
    required (locked) teams, same-day exclusion, globally locked teams,
    weekly cap, target-slot max. Only the first two of those apply to a
    forced slot besides same-day exclusion, which is never waived.
    """
    forced = bool(required_teams)
    required = list(required_teams or [])
    played_today = teams_played_today or set()
    this_week = teams_this_week or {}
    rejected = _new_rejection_counts() if diagnostics is not None else None

    best_score = float("-inf")
    best: list[Pair] = []

    for entry in pairs:
        if entry.remaining <= 0:
            if rejected is not None:
                rejected["exhausted"] += 1
            continue
        if forced and not all(t in entry.teams for t in required):
            if rejected is not None:
                rejected["wrong_team"] += 1
            continue

        team_a, team_b = entry.teams

        if team_a in played_today or team_b in played_today:
            if rejected is not None:
                rejected["same_day"] += 1
            continue

        if not forced and all_locked_teams:
            if team_a in all_locked_teams or team_b in all_locked_teams:
                if rejected is not None:
                    rejected["team_locked"] += 1
                continue

        weekly_a = this_week.get(team_a, 0)
        weekly_b = this_week.get(team_b, 0)
        if not forced and (weekly_a >= WEEKLY_CAP or weekly_b >= WEEKLY_CAP):
            if rejected is not None:
                rejected["week_limit"] += 1
            continue

        count_a = team_target_counts.get(team_a, 0)
        count_b = team_target_counts.get(team_b, 0)
        if not forced and is_target_slot and (count_a + 1 > max_target
                                              or count_b + 1 > max_target):
            if rejected is not None:
                rejected["would_exceed"] += 1
            continue

        need = _deficit(count_a, min_target) + _deficit(count_b, min_target)
        target_term = need * 3 if is_target_slot else need * -0.2
        games_left = (team_games_remaining.get(team_a, 0)
                      + team_games_remaining.get(team_b, 0)) * 0.02
        weekly_penalty = (weekly_a + weekly_b) * -2.0
        jitter = rng() * 0.05

        score = entry.remaining + target_term + games_left + weekly_penalty + jitter
        if score > best_score:
            best_score = score
            best = [entry]
        elif score == best_score:
            best.append(entry)

    if not best:
        if diagnostics is not None:
            diagnostics["rejection"] = rejected
            diagnostics["forced"] = forced
            diagnostics["required_teams"] = required
            diagnostics["total_pairs"] = len(pairs)
        return None

    return best[int(rng() * len(best))]


# ---------------------------------------------------------------------------
# Phase 2: home/away
# ---------------------------------------------------------------------------

def _balanced_sides(team_a: str, team_b: str, rng,
                    home_counts: dict[str, int],
                    away_counts: dict[str, int]) -> tuple[str, str]:
    """Return (away, home) favoring the team that is further behind on home games."""
    diff_a = home_counts.get(team_a, 0) - away_counts.get(team_a, 0)
    diff_b = home_counts.get(team_b, 0) - away_counts.get(team_b, 0)

    if abs(diff_a - diff_b) > 1:
        if diff_a < diff_b:
            return team_b, team_a
        return team_a, team_b

    if rng() < 0.5:
        return team_b, team_a
    return team_a, team_b


def assign_game(slot: Slot, entry: Pair, rng,
                lock: LockRequirement | None,
                home_counts: dict[str, int],
                away_counts: dict[str, int]) -> Game:
    """Turn a selected pair into a Game for `slot`.

    A locked side is honored only when that team is in the selected pair;
    the game always holds exactly the pair's two teams.
    """
    team_a, team_b = entry.teams
    lock_away = lock_home = None
    if lock is not None:
        if lock.away is not None and entry.involves(lock.away):
            lock_away = lock.away
        if lock.home is not None and entry.involves(lock.home):
            lock_home = lock.home
        if lock_away is not None and lock_away == lock_home:
            lock_home = None

    if lock_away is not None:
        away, home = lock_away, entry.opponent(lock_away)
    elif lock_home is not None:
        away, home = entry.opponent(lock_home), lock_home
    else:
        away, home = _balanced_sides(team_a, team_b, rng, home_counts, away_counts)
        # A lone locked team with no recorded side always travels.
        if lock is not None and len(lock.required_teams) == 1:
            (req,) = lock.required_teams
            if home == req:
                away, home = home, away

    return Game(date=slot.date, slot=slot.slot, away=away, home=home)


# ---------------------------------------------------------------------------
# One attempt
# ---------------------------------------------------------------------------

def _slot_failure_reason(i: int, slot: Slot, lock: LockRequirement | None,
                         pairs: list[Pair], diagnostics: dict,
                         verbose: bool) -> str:
    lock_msg = ""
    if lock is not None and lock.required_teams:
        lock_msg = f" (locked to {', '.join(sorted(lock.required_teams))})"

    detail = ""
    if verbose and diagnostics.get("rejection"):
        r = diagnostics["rejection"]
        detail = (
            f" [{r['exhausted']} exhausted, {r['wrong_team']} wrong-team, "
            f"{r['team_locked']} team-locked, {r['same_day']} same-day, "
            f"{r['week_limit']} week-limit, {r['would_exceed']} would-exceed-max]"
        )
        if diagnostics.get("forced"):
            locked = diagnostics["required_teams"]
            open_pairs = [p for p in pairs if p.remaining > 0
                          and all(t in p.teams for t in locked)]
            if not open_pairs:
                detail += f" - {' & '.join(locked)} have no games left against each other"
            else:
                counts = ", ".join(
                    f"{p.teams[0]} vs {p.teams[1]} ({p.remaining} left)"
                    for p in open_pairs
                )
                detail += f" - pairs with games: {counts}"

    return f"No available matchup for slot #{i + 1} ({slot.date} {slot.slot}){lock_msg}{detail}"


def try_generate_schedule(teams: list[str], slots: list[Slot],
                          target_slot: str, seed,
                          games_per_pair: int,
                          lock_requirements: dict[int, LockRequirement] | None = None,
                          verbose: bool = False) -> dict:
    """Run one full pass over `slots`.

    Returns dict with games, min_target, max_target, target_counts,
    home_counts and away_counts. Raises SlotExhaustion or UnmetPairCount
    (both carrying the partial game list) when the attempt dead-ends.
    """
    lock_requirements = lock_requirements or {}
    rng = create_seeded_rng(seed)
    pairs = create_pair_state(teams, games_per_pair)

    ordered_teams = sorted(teams)
    team_target_counts = {t: 0 for t in ordered_teams}
    games_needed = games_per_pair * (len(teams) - 1)
    team_games_remaining = {t: games_needed for t in ordered_teams}
    home_counts = {t: 0 for t in ordered_teams}
    away_counts = {t: 0 for t in ordered_teams}

    target_slot_games = sum(1 for s in slots if s.slot == target_slot)
    target_range = compute_target_range(len(teams), target_slot_games)

    teams_by_date: dict[str, set[str]] = defaultdict(set)
    teams_by_week: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

    all_locked_teams: set[str] = set()
    for lock in lock_requirements.values():
        all_locked_teams.update(lock.required_teams)

    games: list[Game] = []

    for i, slot in enumerate(slots):
        lock = lock_requirements.get(slot.index)
        played_today = teams_by_date[slot.date]
        this_week = teams_by_week[week_key(slot.date)]
        is_target = slot.slot == target_slot

        diagnostics: dict = {}
        candidate = select_pair(
            pairs, is_target,
            team_target_counts, target_range.min, target_range.max,
            team_games_remaining, rng,
            required_teams=sorted(lock.required_teams) if lock else None,
            teams_played_today=played_today,
            all_locked_teams=all_locked_teams or None,
            teams_this_week=this_week,
            diagnostics=diagnostics,
        )
        if candidate is None:
            raise SlotExhaustion(
                _slot_failure_reason(i, slot, lock, pairs, diagnostics, verbose),
                slot_index=i, partial_games=games,
            )

        game = assign_game(slot, candidate, rng, lock, home_counts, away_counts)
        games.append(game)
        candidate.remaining -= 1

        home_counts[game.home] = home_counts.get(game.home, 0) + 1
        away_counts[game.away] = away_counts.get(game.away, 0) + 1
        for t in (game.away, game.home):
            played_today.add(t)
            this_week[t] += 1
            team_games_remaining[t] = team_games_remaining.get(t, 0) - 1
            if is_target:
                team_target_counts[t] = team_target_counts.get(t, 0) + 1

    unfinished = unfinished_pairs(pairs)
    if unfinished:
        examples = ", ".join(f"{p.teams[0]} vs {p.teams[1]}" for p in unfinished[:3])
        raise UnmetPairCount(
            f"{len(unfinished)} matchup(s) still unassigned (e.g., {examples})",
            slot_index=None, partial_games=games,
        )

    return {
        "games": games,
        "min_target": target_range.min,
        "max_target": target_range.max,
        "target_counts": team_target_counts,
        "home_counts": home_counts,
        "away_counts": away_counts,
    }


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def _check_inputs(teams: list[str], slots: list[Slot]):
    if not teams:
        raise InputError("No teams provided for generation.")
    if not slots:
        raise InputError("No slots provided for generation.")
    for s in slots:
        try:
            week_key(s.date)
        except ValueError:
            raise InputError(
                f"Slot #{s.index + 1} has an invalid date {s.date!r} "
                f"(expected MM/DD/YYYY)"
            ) from None


def _exhausted_message(max_attempts: int, failures: list[AttemptFailure]) -> str:
    reason_counts: dict[str, int] = {}
    for f in failures:
        reason_counts[f.reason] = reason_counts.get(f.reason, 0) + 1
    # sorted() is stable, so equal counts keep first-seen order
    top = sorted(reason_counts.items(), key=lambda kv: -kv[1])[:5]
    top_lines = "\n".join(f"  - {reason} ({count}x)" for reason, count in top)
    return (
        f"Unable to build a balanced schedule after {max_attempts} attempts.\n"
        f"Last failure: {failures[-1].reason}\n"
        f"Most common issues:\n{top_lines}"
    )


def generate_balanced_schedule(teams, slots: list[Slot],
                               target_slot: str = DEFAULT_TARGET_SLOT,
                               seed=None,
                               games_per_pair: int = DEFAULT_GAMES_PER_PAIR,
                               max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                               lock_requirements: dict[int, LockRequirement] | None = None,
                               verbose: bool = False,
                               optimize_home_away: bool = True,
                               max_flips: int = DEFAULT_MAX_FLIPS) -> ScheduleResult:
    """Generate a complete schedule, retrying with derived seeds.

    Attempt k runs with seed "{seed}-{k}". The first attempt that fills
    every slot, meets every pair count and has no doubleheaders is passed
    through the home/away optimizer and returned.

    Raises InputError for unusable inputs and RetryBudgetExhausted when no
    attempt succeeds.
    """
    team_list = normalize_teams(teams)
    slots = list(slots or [])
    _check_inputs(team_list, slots)
    lock_requirements = lock_requirements or {}
    if seed is None:
        seed = f"auto-{int(time.time() * 1000)}"

    failures: list[AttemptFailure] = []

    for attempt in range(max_attempts):
        attempt_seed = f"{seed}-{attempt}"
        try:
            result = try_generate_schedule(
                team_list, slots, target_slot, attempt_seed, games_per_pair,
                lock_requirements=lock_requirements, verbose=verbose,
            )
            dh_check = verify_no_doubleheaders(result["games"])
            if not dh_check["valid"]:
                listed = ", ".join(
                    f"{v['team']} on {v['date']} ({v['game_count']} games)"
                    for v in dh_check["violations"][:3]
                )
                raise DoubleheaderRegression(
                    f"Generated schedule has doubleheaders: {listed}",
                    partial_games=result["games"],
                )
        except AttemptError as e:
            failures.append(AttemptFailure(
                attempt=attempt + 1, reason=e.reason, slot_index=e.slot_index,
                partial_games=e.partial_games, seed=attempt_seed,
            ))
            if verbose:
                print(f"  Attempt {attempt + 1} failed: {e.reason}", file=sys.stderr)
            continue

        games = result["games"]
        flips = 0
        if optimize_home_away:
            optimized, flips = optimize_home_away_balance(
                games, lock_requirements, f"{attempt_seed}-optimize", max_flips,
            )
            if verify_no_doubleheaders(optimized)["valid"]:
                games = optimized
            else:
                if verbose:
                    print("  Optimization introduced doubleheaders, "
                          "using non-optimized schedule", file=sys.stderr)
                flips = 0

        home_counts = {t: 0 for t in sorted(team_list)}
        away_counts = {t: 0 for t in sorted(team_list)}
        for g in games:
            home_counts[g.home] = home_counts.get(g.home, 0) + 1
            away_counts[g.away] = away_counts.get(g.away, 0) + 1

        return ScheduleResult(
            games=games,
            target_slot=target_slot,
            min_target=result["min_target"],
            max_target=result["max_target"],
            target_counts=result["target_counts"],
            home_counts=home_counts,
            away_counts=away_counts,
            flips=flips,
            attempts=attempt + 1,
            seed=attempt_seed,
        )

    if not failures:
        raise InputError("max_attempts must be at least 1.")
    raise RetryBudgetExhausted(_exhausted_message(max_attempts, failures), failures)
