#!/usr/bin/env python3
"""Pony league balanced schedule builder.

Generate mode:
    ponysg generate [--config config.yaml] [--seed S] [--count N]

    Derives the team list from the historical schedule, then builds N new
    schedules over the canonical time slots, keeping locked teams in the
    slots they held historically. Each schedule is written to
      {output_dir}/{output_name stem}-{seed}-{i}.txt

Analyze mode:
    ponysg analyze [--input FILE | --dir DIR]

    Prints slot distribution, fairness, home/away balance, opponent counts,
    time-slot and lock adherence for existing schedule files.

Examples:
    ponysg generate --seed spring --count 3
    ponysg generate --games-per-pair 2 --lock-file none.txt
    ponysg analyze --dir generated
"""

import argparse
import sys
import time
from pathlib import Path

from ponysg.config import load_config, parse_positive_int
from ponysg.constraints import (
    format_validation_report, validate_schedule, verify_locked_teams,
)
from ponysg.errors import InputError, RetryBudgetExhausted
from ponysg.output import output_path, write_failure_report, write_schedule
from ponysg.parse import (
    build_lock_requirements, check_lock_feasibility, extract_teams,
    load_locked_teams, load_schedule, load_time_slots,
)
from ponysg.scheduler import generate_balanced_schedule
from ponysg.stats import (
    build_team_stats, compute_home_away_balance, format_stats_report,
    summarize_slot_distribution, verify_opponent_counts,
)


def _load_locks(lock_file, historical, slots, teams, games_per_pair,
                explicit: bool) -> dict:
    lock_path = Path(lock_file)
    if not lock_path.exists():
        if explicit:
            raise InputError(f"Lock file {lock_path} not found.")
        return {}

    locked_teams = load_locked_teams(lock_path)
    if not locked_teams:
        print(f"Lock file {lock_path} is empty; proceeding without slot locks.")
        return {}

    locks = build_lock_requirements(historical, slots, locked_teams)
    matched = set()
    for lock in locks.values():
        matched.update(lock.required_teams)
    print(f"Loaded {len(matched)} locked team(s) covering {len(locks)} "
          f"slot(s) from {lock_path}.")

    warnings = check_lock_feasibility(locks, len(teams), games_per_pair)
    if warnings:
        print("\nLOCK FEASIBILITY ISSUES:", file=sys.stderr)
        for w in warnings:
            print(f"  {w}", file=sys.stderr)
        raise InputError("Lock requirements exceed generation constraints.")

    missing = [t for t in locked_teams if t not in matched]
    if missing:
        print(f"Lock file teams not found in canonical slots: {', '.join(missing)}")
    return locks


def cmd_generate(args, config: dict) -> int:
    gen = config["generation"]
    files = config["files"]

    historical, source = load_schedule(args.input or files["schedule"],
                                       args.fallback or files["fallback"])
    teams = extract_teams(historical)
    if not teams:
        raise InputError("Unable to determine participating teams from the input schedule.")
    print(f"Loaded {len(historical)} games and {len(teams)} teams from {source}")

    target_slot = args.target_slot or gen["target_slot"]
    games_per_pair = parse_positive_int(args.games_per_pair, gen["games_per_pair"])
    max_attempts = parse_positive_int(args.max_attempts, gen["max_attempts"])
    count = parse_positive_int(args.count, gen["count"])
    max_flips = gen["max_flips"]
    seed_base = args.seed or gen["seed"] or f"auto-{int(time.time() * 1000)}"

    slot_file = args.time_slots or files["time_slots"]
    slots = load_time_slots(slot_file)
    locks = _load_locks(args.lock_file or files["lock_file"], historical,
                        slots, teams, games_per_pair,
                        explicit=args.lock_file is not None)

    output_dir = Path(args.output_dir or files["output_dir"])
    template = output_dir / (args.output_name or files["output_name"])

    for idx in range(1, count + 1):
        derived = f"{seed_base}-{idx}"
        try:
            result = generate_balanced_schedule(
                teams, slots,
                target_slot=target_slot,
                seed=derived,
                games_per_pair=games_per_pair,
                max_attempts=max_attempts,
                lock_requirements=locks,
                verbose=args.verbose,
                max_flips=max_flips,
            )
        except RetryBudgetExhausted as e:
            debug = write_failure_report(e, slots, locks, output_dir / "generated-err.txt")
            partial = e.last_failure.partial_games if e.last_failure else []
            print(f"\nWrote partial schedule ({len(partial)} games) to {debug}",
                  file=sys.stderr)
            raise

        path = write_schedule(result.games, output_path(template, seed_base, idx))
        print(f"\n[{idx}/{count}] Wrote generated schedule to {path}")
        print(f"  Seed used: {result.seed}")
        print(f"  Attempts: {result.attempts}")
        print(f"  Home/away balance flips: {result.flips}")
        print(f"  Target slot bounds: min={result.min_target}, max={result.max_target}")
        print("  Target slot distribution:")
        for team, n in summarize_slot_distribution(result.games, target_slot).items():
            print(f"    {team:<20} : {n}")

        balance = compute_home_away_balance(result.games)
        off = sorted((t for t, b in balance.items() if b["diff"] > 1),
                     key=lambda t: (-balance[t]["diff"], t))
        perfect = sum(1 for b in balance.values() if b["diff"] == 0)
        near = sum(1 for b in balance.values() if b["diff"] == 1)
        print(f"  Home/away balance: {perfect} perfect, {near} nearly balanced, "
              f"{len(off)} imbalanced")
        for t in off[:3]:
            b = balance[t]
            print(f"      {t}: {b['home']} home, {b['away']} away (diff: {b['diff']})")

        report = validate_schedule(result.games, teams, slots, locks, games_per_pair)
        print("\n" + format_validation_report(report))

    return 0


def _analyze_targets(args, config: dict) -> list[Path]:
    if args.input:
        return [Path(args.input)]
    directory = Path(args.dir or config["files"]["output_dir"])
    if directory.is_dir():
        found = sorted(p for p in directory.iterdir()
                       if p.suffix.lower() == ".txt" and p.name != "generated-err.txt")
        if found:
            return found
    return [Path(config["files"]["schedule"])]


def cmd_analyze(args, config: dict) -> int:
    gen = config["generation"]
    files = config["files"]
    target_slot = args.target_slot or gen["target_slot"]
    expected = parse_positive_int(args.opponent_count, gen["games_per_pair"])
    slot_file = Path(args.time_slots or files["time_slots"])
    lock_file = Path(args.lock_file or files["lock_file"])

    targets = _analyze_targets(args, config)
    all_valid = True
    for idx, target in enumerate(targets, 1):
        print(f"\n[{idx}/{len(targets)}] Analyzing {target}")
        games, source = load_schedule(target, args.fallback or files["fallback"])
        print(f"Loaded {len(games)} games from {source}")
        print(format_stats_report(games, target_slot))

        opp = verify_opponent_counts(build_team_stats(games), expected)
        if not opp["issues"]:
            print(f"\nOpponent check: PASS - every team pair meets exactly "
                  f"{expected} time(s).")
        else:
            print(f"\nOpponent check: FAIL - {len(opp['issues'])} pair(s) deviate "
                  f"from {expected} games.")
            for i in opp["issues"][:10]:
                print(f"  {i['team_a']} vs {i['team_b']}: A sees {i['count_a']}, "
                      f"B sees {i['count_b']}")

        slots = load_time_slots(slot_file) if slot_file.exists() else None
        locks = {}
        if slots is not None and lock_file.exists():
            locks = build_lock_requirements(games, slots, load_locked_teams(lock_file))
            lock_check = verify_locked_teams(games, locks)
            status = "PASS" if lock_check["success"] else "FAIL"
            print(f"\nLocked teams verification ({status}): "
                  f"{len(lock_check['matches'])} matches, "
                  f"{len(lock_check['mismatches'])} mismatches "
                  f"over {lock_check['lock_count']} locked slots")

        result = validate_schedule(games, extract_teams(games), slots, locks, expected)
        print("\n" + format_validation_report(result))
        all_valid = all_valid and result["valid"]

    return 0 if all_valid else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ponysg",
        description="Pony league balanced schedule builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Input files:
  ORIGINAL-schedule.txt  Historical schedule (date, away, home, slot; tab-separated)
  time-slots.txt         Canonical slots, one "MM/DD/YYYY|7:00PM - 9:00PM" per line
  lock-teams.txt         Teams to keep in their historical slots, one per line

Exit codes:
  0  Success (analyze: every schedule valid)
  1  Bad input, generation failed, or constraint violations found
""",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="Path to config YAML file (default: config.yaml; optional)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--input", help="Historical/target schedule file")
    common.add_argument("--fallback", help="Legacy schedule file used when --input is missing")
    common.add_argument("--target-slot", help="Slot label to balance")
    common.add_argument("--time-slots", help="Canonical date/time list")
    common.add_argument("--lock-file", help="Teams to keep locked to their original slots")

    g = sub.add_parser("generate", parents=[common],
                       help="Build new schedules from canonical slots")
    g.add_argument("--seed", help="Seed prefix for deterministic generation")
    g.add_argument("--count", help="Number of schedules to generate")
    g.add_argument("--games-per-pair", help="Games each opponent pair must play")
    g.add_argument("--max-attempts", help="Max retries per schedule")
    g.add_argument("--output-dir", help="Directory for generated schedules")
    g.add_argument("--output-name", help="Base file name inside the output directory")
    g.add_argument("-v", "--verbose", action="store_true",
                   help="Show detailed failure reasons for each attempt")

    a = sub.add_parser("analyze", parents=[common],
                       help="Analyze existing schedule files")
    a.add_argument("--dir", help="Analyze every .txt schedule in a directory")
    a.add_argument("--opponent-count",
                   help="Expected games per opponent pair (default: games_per_pair)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)

    try:
        if args.command == "generate":
            code = cmd_generate(args, config)
        else:
            code = cmd_analyze(args, config)
    except (InputError, RetryBudgetExhausted) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
