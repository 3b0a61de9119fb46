"""Statistics and balance reporting for finished schedules.

All functions here are pure: they take a list of Games and return plain
dicts, so the generator can use them as safety nets and the CLI can use
them for reports.
"""

import math
from collections import defaultdict
from datetime import datetime, timedelta

from ponysg.models import DEFAULT_TARGET_SLOT, Game


def parse_slot_date(s: str):
    """Parse an MM/DD/YYYY slot date."""
    return datetime.strptime(s.strip(), "%m/%d/%Y").date()


def week_key(s: str) -> str:
    """Return the ISO date of the Monday starting the week containing `s`."""
    d = parse_slot_date(s)
    monday = d - timedelta(days=d.weekday())
    return monday.isoformat()


def summarize_slot_distribution(games: list[Game],
                                slot: str = DEFAULT_TARGET_SLOT) -> dict[str, int]:
    """Per-team appearance count in `slot`, keyed alphabetically."""
    counts: dict[str, int] = defaultdict(int)
    for g in games:
        if g.slot != slot:
            continue
        counts[g.away] += 1
        counts[g.home] += 1
    return {t: counts[t] for t in sorted(counts)}


def _rating(spread: int) -> str:
    if spread == 0:
        return "Perfect"
    if spread == 1:
        return "Excellent"
    if spread == 2:
        return "Good"
    if spread == 3:
        return "Fair"
    return "Poor"


def compute_slot_fairness(games: list[Game],
                          slot: str = DEFAULT_TARGET_SLOT) -> dict:
    """Rate how evenly `slot` is spread across teams."""
    return rate_slot_counts(list(summarize_slot_distribution(games, slot).values()))


def rate_slot_counts(counts: list[int]) -> dict:
    """Rate a list of per-team appearance counts.

    Returns dict with rating, range, min, max, mean, std_dev and fair.
    A range of 3 or more is considered unfair.
    """
    if not counts:
        return {"rating": "N/A", "range": 0, "min": 0, "max": 0,
                "mean": 0, "std_dev": 0, "fair": True}

    lo = min(counts)
    hi = max(counts)
    spread = hi - lo
    mean = sum(counts) / len(counts)
    variance = sum((c - mean) ** 2 for c in counts) / len(counts)

    return {
        "rating": _rating(spread),
        "range": spread,
        "min": lo,
        "max": hi,
        "mean": round(mean, 2),
        "std_dev": round(math.sqrt(variance), 2),
        "fair": spread < 3,
    }


def compute_home_away_balance(games: list[Game]) -> dict[str, dict]:
    """Per-team {home, away, diff} where diff = |home - away|."""
    home_counts: dict[str, int] = defaultdict(int)
    away_counts: dict[str, int] = defaultdict(int)
    for g in games:
        home_counts[g.home] += 1
        away_counts[g.away] += 1

    balance = {}
    for t in sorted(set(home_counts) | set(away_counts)):
        h = home_counts.get(t, 0)
        a = away_counts.get(t, 0)
        balance[t] = {"home": h, "away": a, "diff": abs(h - a)}
    return balance


def total_imbalance(balance: dict[str, dict]) -> int:
    return sum(b["diff"] for b in balance.values())


def verify_no_doubleheaders(games: list[Game]) -> dict:
    """Check that no team appears in two games on the same date.

    Returns dict with:
    - valid: bool
    - violations: list of {date, team, game_count, game_indices}
    """
    by_date: dict[str, dict[str, list[int]]] = defaultdict(lambda: defaultdict(list))
    for idx, g in enumerate(games):
        by_date[g.date][g.away].append(idx)
        by_date[g.date][g.home].append(idx)

    violations = []
    for d, teams_on_date in by_date.items():
        for team, indices in teams_on_date.items():
            if len(indices) > 1:
                violations.append({
                    "date": d,
                    "team": team,
                    "game_count": len(indices),
                    "game_indices": indices,
                })

    return {"valid": len(violations) == 0, "violations": violations}


def weekly_frequency(games: list[Game], limit: int = 3) -> list[dict]:
    """Teams playing `limit` or more games in one Monday-based week."""
    by_week: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for g in games:
        wk = week_key(g.date)
        by_week[wk][g.away] += 1
        by_week[wk][g.home] += 1

    high = []
    for wk in sorted(by_week):
        for team in sorted(by_week[wk]):
            count = by_week[wk][team]
            if count >= limit:
                high.append({"week": wk, "team": team, "games": count})
    return high


def build_team_stats(games: list[Game]) -> dict[str, dict]:
    """Per-team game totals and opponent tallies."""
    stats: dict[str, dict] = {}

    def _ensure(team):
        if team not in stats:
            stats[team] = {"games": 0, "opponents": defaultdict(int)}
        return stats[team]

    for g in games:
        if not g.away or not g.home:
            continue
        away = _ensure(g.away)
        home = _ensure(g.home)
        away["games"] += 1
        home["games"] += 1
        away["opponents"][g.home] += 1
        home["opponents"][g.away] += 1

    return {t: {"games": stats[t]["games"],
                "opponents": dict(stats[t]["opponents"])}
            for t in sorted(stats)}


def verify_opponent_counts(team_stats: dict[str, dict],
                           expected: int = 3) -> dict:
    """Find pairs whose meeting count deviates from `expected`."""
    teams = sorted(team_stats)
    issues = []
    for i, t1 in enumerate(teams):
        for t2 in teams[i + 1:]:
            c1 = team_stats[t1]["opponents"].get(t2, 0)
            c2 = team_stats[t2]["opponents"].get(t1, 0)
            if c1 != c2 or c1 != expected:
                issues.append({"team_a": t1, "team_b": t2,
                               "count_a": c1, "count_b": c2})
    return {
        "issues": issues,
        "expected": expected,
        "total_pairs": len(teams) * (len(teams) - 1) // 2,
    }


def format_stats_report(games: list[Game],
                        target_slot: str = DEFAULT_TARGET_SLOT) -> str:
    """Format slot distribution, fairness and home/away balance as text."""
    lines = []
    lines.append("=" * 60)
    lines.append("SCHEDULE STATISTICS")
    lines.append("=" * 60)

    distribution = summarize_slot_distribution(games, target_slot)
    lines.append(f"\n--- DISTRIBUTION FOR {target_slot} ---")
    if not distribution:
        lines.append("  No games currently scheduled in this slot.")
    else:
        width = max(len(t) for t in distribution)
        for team, count in sorted(distribution.items(),
                                  key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"  {team:<{width}} : {count}")
        fairness = compute_slot_fairness(games, target_slot)
        mark = "OK" if fairness["fair"] else "!!"
        lines.append(
            f"\n  [{mark}] Fairness rating: {fairness['rating']} "
            f"(range: {fairness['range']}, min: {fairness['min']}, "
            f"max: {fairness['max']}, mean: {fairness['mean']}, "
            f"std dev: {fairness['std_dev']})"
        )

    balance = compute_home_away_balance(games)
    lines.append("\n--- HOME/AWAY BALANCE ---")
    if not balance:
        lines.append("  No teams found.")
        return "\n".join(lines)

    lines.append(f"  {'Team':<20} {'Home':>5} {'Away':>5} {'Diff':>5}")
    lines.append("  " + "-" * 38)
    for team, b in sorted(balance.items(),
                          key=lambda kv: (-kv[1]["diff"], kv[0])):
        flag = " ***" if b["diff"] > 1 else ""
        lines.append(f"  {team:<20} {b['home']:>5} {b['away']:>5} "
                     f"{b['diff']:>5}{flag}")

    perfect = sum(1 for b in balance.values() if b["diff"] == 0)
    near = sum(1 for b in balance.values() if b["diff"] == 1)
    off = sum(1 for b in balance.values() if b["diff"] > 1)
    lines.append(f"\n  Summary: {perfect} perfect, {near} nearly balanced, "
                 f"{off} imbalanced")

    team_stats = build_team_stats(games)
    lines.append("\n--- TEAM SUMMARIES ---")
    if not team_stats:
        lines.append("  No complete games found.")
        return "\n".join(lines)
    width = max(len(t) for t in team_stats)
    for team, s in team_stats.items():
        opps = ", ".join(
            f"{o}({c})" for o, c in sorted(s["opponents"].items(),
                                           key=lambda kv: (-kv[1], kv[0]))
        ) or "None"
        lines.append(f"  {team:<{width}} : {s['games']:>2} games | "
                     f"Opponents: {opps}")

    return "\n".join(lines)
