"""Data models for the pony schedule generator."""

from dataclasses import dataclass, field
from typing import Optional


DEFAULT_TARGET_SLOT = "7:00PM - 9:00PM"
DEFAULT_GAMES_PER_PAIR = 3
DEFAULT_MAX_ATTEMPTS = 20
DEFAULT_MAX_FLIPS = 100


@dataclass(frozen=True)
class Slot:
    """One (date, time window) unit to be filled with exactly one game."""
    date: str  # MM/DD/YYYY, copied verbatim into the game
    slot: str  # time-window label, e.g. "7:00PM - 9:00PM"
    index: int  # ordinal position; lock requirements are keyed on this


@dataclass
class Pair:
    """An unordered team pairing with its remaining-games counter."""
    teams: tuple[str, str]
    remaining: int

    def involves(self, team: str) -> bool:
        return team in self.teams

    def opponent(self, team: str) -> str:
        if team == self.teams[0]:
            return self.teams[1]
        return self.teams[0]


@dataclass
class LockRequirement:
    """Teams that must appear in a given slot, optionally with fixed sides."""
    required_teams: set[str] = field(default_factory=set)
    home: Optional[str] = None
    away: Optional[str] = None

    @property
    def fully_pinned(self) -> bool:
        return self.home is not None and self.away is not None


@dataclass
class Game:
    """A scheduled game: slot date/label plus away and home teams."""
    date: str
    slot: str
    away: str
    home: str

    def involves(self, team: str) -> bool:
        return team in (self.away, self.home)

    def flipped(self) -> "Game":
        return Game(date=self.date, slot=self.slot,
                    away=self.home, home=self.away)


@dataclass
class TargetRange:
    """Allowed per-team appearance band for the target slot."""
    min: int
    max: int
    ideal: float


@dataclass
class AttemptFailure:
    """Why one attempt failed, with whatever it managed to schedule."""
    attempt: int
    reason: str
    slot_index: Optional[int]
    partial_games: list[Game]
    seed: str


@dataclass
class ScheduleResult:
    """A successful, doubleheader-free schedule plus its statistics."""
    games: list[Game]
    target_slot: str
    min_target: int
    max_target: int
    target_counts: dict[str, int]
    home_counts: dict[str, int]
    away_counts: dict[str, int]
    flips: int
    attempts: int
    seed: str
