"""Output writers for the pony schedule generator."""

import re
from pathlib import Path

from ponysg.errors import RetryBudgetExhausted
from ponysg.models import Game, LockRequirement, Slot


def format_schedule(games: list[Game]) -> str:
    """One 'date<TAB>away<TAB>home<TAB>slot' line per game."""
    lines = ["\t".join([g.date, g.away, g.home, g.slot]) for g in games]
    return "\n".join(lines) + "\n"


def write_schedule(games: list[Game], path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_schedule(games), encoding="utf-8")
    return path


def output_path(template: str | Path, seed_base: str, idx: int) -> Path:
    """'generated/schedule.txt' + seed 'x y' + 2 -> 'generated/schedule-x_y-2.txt'."""
    template = Path(template)
    seed_part = re.sub(r"[^a-zA-Z0-9-]", "_", str(seed_base))
    return template.with_name(f"{template.stem}-{seed_part}-{idx}{template.suffix}")


def format_failure_report(error: RetryBudgetExhausted, slots: list[Slot],
                          lock_requirements: dict[int, LockRequirement]) -> str:
    """Partial schedule from the last failed attempt, with a commented header."""
    last = error.last_failure
    partial = last.partial_games if last else []
    lines = [
        f"# Generation failed after {len(error.failures)} attempts",
        f"# Last failure: {last.reason if last else 'unknown'}",
        f"# Seed: {last.seed if last else 'unknown'}",
        f"# Partial schedule ({len(partial)}/{len(slots)} slots assigned):",
        "",
    ]
    for g in partial:
        lines.append("\t".join([g.date, g.away, g.home, g.slot]))

    if len(partial) < len(slots):
        nxt = slots[len(partial)]
        lines.append("")
        lines.append(f"# Next slot would be: {nxt.date} {nxt.slot}")
        lock = lock_requirements.get(nxt.index)
        if lock is not None and lock.required_teams:
            lines.append(f"# Locked to: {', '.join(sorted(lock.required_teams))}")

    return "\n".join(lines) + "\n"


def write_failure_report(error: RetryBudgetExhausted, slots: list[Slot],
                         lock_requirements: dict[int, LockRequirement],
                         path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_failure_report(error, slots, lock_requirements),
                    encoding="utf-8")
    return path
