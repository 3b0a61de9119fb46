"""Input file parsing for the pony schedule generator.

Reads the historical schedule (tab-separated, or the legacy two-line export),
the canonical time-slot list and the lock-team list, and derives per-slot
lock requirements from them.
"""

import re
from pathlib import Path

from ponysg.errors import InputError
from ponysg.models import Game, LockRequirement, Slot

DATE_LINE = re.compile(r"^(\d{2}/\d{2}/\d{4})(?:\s+(.*))?$")
TIME_WINDOW = re.compile(r"\b\d{1,2}:\d{2}[AP]M\s*-\s*\d{1,2}:\d{2}[AP]M\b")


def normalize_slot_label(label: str) -> str:
    """'7:00PM-9:00PM' -> '7:00PM - 9:00PM'."""
    return re.sub(r"\s*-\s*", " - ", label).strip()


def parse_tab_schedule(text: str, source: str = "schedule.txt") -> list[Game]:
    """Parse 'date<TAB>away<TAB>home<TAB>slot' lines into Games."""
    games = []
    lines = [line.strip() for line in text.splitlines()]
    for idx, line in enumerate(line for line in lines if line):
        parts = re.split(r"\t+", line)
        if len(parts) < 4:
            raise InputError(
                f"Line {idx + 1} in {source} does not have 4 tab-separated columns."
            )
        d, away, home, slot = parts[:4]
        games.append(Game(date=d, slot=normalize_slot_label(slot),
                          away=away, home=home))
    return games


def parse_legacy_schedule(text: str, source: str = "pony-schedule.txt") -> list[Game]:
    """Parse the legacy export: 'MM/DD/YYYY away' then the home team on the
    next non-empty line, with time windows scattered through the text."""
    lines = [line.strip() for line in text.splitlines()]
    rows = []

    i = 0
    while i < len(lines):
        m = DATE_LINE.match(lines[i])
        if not m:
            i += 1
            continue
        away = (m.group(2) or "").strip()
        home_idx = next((j for j in range(i + 1, len(lines)) if lines[j]), -1)
        home = lines[home_idx] if home_idx >= 0 else ""
        rows.append((m.group(1), away, home))
        i = max(i, home_idx) + 1

    labels = [normalize_slot_label(t) for t in TIME_WINDOW.findall(text)]
    if len(labels) != len(rows):
        raise InputError(
            f"Parsed {len(rows)} games but {len(labels)} time entries in {source}."
        )

    return [Game(date=d, slot=label, away=away, home=home)
            for (d, away, home), label in zip(rows, labels)]


def load_schedule(primary: str | Path = "ORIGINAL-schedule.txt",
                  fallback: str | Path = "pony-schedule.txt") -> tuple[list[Game], Path]:
    """Load the primary tab file if present, else the legacy fallback.

    Returns (games, path actually read).
    """
    primary = Path(primary)
    fallback = Path(fallback)
    source = primary if primary.exists() else fallback
    if not source.exists():
        raise InputError(f"Neither {primary} nor {fallback} exists.")
    text = source.read_text(encoding="utf-8")
    if source == primary:
        return parse_tab_schedule(text, str(source)), source
    return parse_legacy_schedule(text, str(source)), source


def parse_time_slots(text: str) -> list[Slot]:
    """Parse 'MM/DD/YYYY|label' lines. Blank lines are skipped, so a slot's
    index is its position in the returned list, not its source line."""
    slots = []
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line:
            continue
        date_part, _, slot_part = line.partition("|")
        if not date_part.strip() or not slot_part.strip():
            raise InputError(
                f'Invalid entry on line {lineno}: expected "MM/DD/YYYY|time slot".'
            )
        slots.append(Slot(date=date_part.strip(), slot=slot_part.strip(),
                          index=len(slots)))
    return slots


def load_time_slots(path: str | Path) -> list[Slot]:
    path = Path(path)
    if not path.exists():
        raise InputError(f"Time slot file {path} not found. Unable to generate schedule.")
    return parse_time_slots(path.read_text(encoding="utf-8"))


def load_locked_teams(path: str | Path) -> list[str]:
    """Team names, one per line; blank lines and '#' comments ignored."""
    text = Path(path).read_text(encoding="utf-8")
    teams = []
    for raw in text.splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            teams.append(line)
    return teams


def build_lock_requirements(games: list[Game], slots: list[Slot],
                            locked_teams: list[str]) -> dict[int, LockRequirement]:
    """Pin each locked team to the slots it occupied in the historical schedule.

    Only the locked team itself is required; its historical opponent is not.
    """
    requirements: dict[int, LockRequirement] = {}
    if not locked_teams:
        return requirements

    locked = set(locked_teams)
    index_by_key = {(s.date, s.slot): s.index for s in slots}

    for g in games:
        slot_index = index_by_key.get((g.date, g.slot))
        if slot_index is None:
            continue
        hits = [t for t in (g.away, g.home) if t in locked]
        if not hits:
            continue
        entry = requirements.setdefault(slot_index, LockRequirement())
        entry.required_teams.update(hits)

    return requirements


def extract_teams(games: list[Game]) -> list[str]:
    """Sorted unique team names appearing in `games`."""
    teams = set()
    for g in games:
        if g.away:
            teams.add(g.away)
        if g.home:
            teams.add(g.home)
    return sorted(teams)


def check_lock_feasibility(lock_requirements: dict[int, LockRequirement],
                           team_count: int, games_per_pair: int) -> list[str]:
    """Warn about teams locked into more slots than they will play games."""
    max_games = games_per_pair * (team_count - 1)
    lock_counts: dict[str, int] = {}
    for lock in lock_requirements.values():
        for t in lock.required_teams:
            lock_counts[t] = lock_counts.get(t, 0) + 1

    warnings = []
    for team in sorted(lock_counts):
        count = lock_counts[team]
        if count > max_games:
            warnings.append(
                f"{team}: locked to {count} slots but can only play "
                f"{max_games} games ({team_count - 1} opponents x "
                f"{games_per_pair} games)"
            )
    return warnings
