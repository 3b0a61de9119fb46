"""Home/away optimizer: flip sides on placed games to even out each team.

A flip only swaps the home and away identifiers of one game. Dates, slots
and team membership never change, so a flip cannot create a doubleheader.
"""

from ponysg.models import DEFAULT_MAX_FLIPS, Game, LockRequirement
from ponysg.rng import create_seeded_rng
from ponysg.stats import compute_home_away_balance, total_imbalance


def _flip_candidates(team: str, games: list[Game], balance: dict[str, dict],
                     locks: dict[int, LockRequirement]) -> list[int]:
    """Indices of games whose flip moves `team` toward balance.

    Skips games pinned on both sides by a lock, and games where the flip
    would push an opponent further the way it already leans.
    """
    b = balance[team]
    needs_home = b["away"] > b["home"]
    candidates = []
    for idx, game in enumerate(games):
        lock = locks.get(idx)
        if lock is not None and lock.fully_pinned:
            continue
        if needs_home and game.away == team:
            opp = balance.get(game.home)
            if opp and opp["away"] > opp["home"]:
                continue
            candidates.append(idx)
        elif not needs_home and game.home == team:
            opp = balance.get(game.away)
            if opp and opp["home"] > opp["away"]:
                continue
            candidates.append(idx)
    return candidates


def optimize_home_away_balance(games: list[Game],
                               lock_requirements: dict[int, LockRequirement] | None = None,
                               seed="optimize",
                               max_flips: int = DEFAULT_MAX_FLIPS) -> tuple[list[Game], int]:
    """Reduce total |home - away| by flipping games of the worst team.

    Each round picks the most imbalanced team (ties by name) and flips one
    of its eligible games at random. Only teams off by 2 or more are
    considered, since flipping a team off by 1 just mirrors its imbalance.
    Stops when balanced, when the chosen team has nothing to flip, or after
    max_flips. Returns (games, flips); the input list is not modified.
    """
    rng = create_seeded_rng(seed)
    out = list(games)
    locks = {idx: lock for idx, lock in (lock_requirements or {}).items()
             if idx < len(out)}

    flips = 0
    while flips < max_flips:
        balance = compute_home_away_balance(out)
        if total_imbalance(balance) == 0:
            break

        worst = sorted(
            (t for t, b in balance.items() if b["diff"] >= 2),
            key=lambda t: (-balance[t]["diff"], t),
        )
        if not worst:
            break

        candidates = _flip_candidates(worst[0], out, balance, locks)
        if not candidates:
            break

        idx = candidates[int(rng() * len(candidates))]
        out[idx] = out[idx].flipped()
        flips += 1

    return out, flips
