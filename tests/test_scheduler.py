"""Tests for scheduler.py — pair selection, side assignment and retries."""

from datetime import date, timedelta

import pytest

from ponysg.errors import (
    InputError, RetryBudgetExhausted, SlotExhaustion, UnmetPairCount,
)
from ponysg.models import Game, LockRequirement, Pair, Slot
from ponysg.pairs import verify_pair_counts
from ponysg.rng import create_seeded_rng
from ponysg.scheduler import (
    assign_game, generate_balanced_schedule, select_pair, try_generate_schedule,
)
from ponysg.stats import compute_home_away_balance, verify_no_doubleheaders

TARGET = "7:00PM - 9:00PM"
EARLY = "5:00PM - 7:00PM"
TEAMS = ["A", "B", "C", "D"]


def _weekly_slots(n, label=TARGET, start=date(2026, 3, 2)):
    """One slot per week, Mondays from `start`."""
    return [
        Slot(date=(start + timedelta(weeks=i)).strftime("%m/%d/%Y"),
             slot=label, index=i)
        for i in range(n)
    ]


def _pairs(*specs):
    return [Pair(teams=(a, b), remaining=r) for a, b, r in specs]


def _select(pairs, **kwargs):
    args = {
        "is_target_slot": False,
        "team_target_counts": {},
        "min_target": 0,
        "max_target": 99,
        "team_games_remaining": {},
        "rng": create_seeded_rng("select"),
    }
    args.update(kwargs)
    return select_pair(pairs, **args)


class TestSelectPairFilters:
    def test_skips_exhausted_pairs(self):
        pairs = _pairs(("A", "B", 0), ("A", "C", 1))
        assert _select(pairs).teams == ("A", "C")

    def test_forced_slot_requires_locked_team(self):
        pairs = _pairs(("A", "B", 1), ("C", "D", 3))
        chosen = _select(pairs, required_teams=["A"])
        assert chosen.teams == ("A", "B")

    def test_forced_slot_requires_all_locked_teams(self):
        pairs = _pairs(("A", "B", 1), ("A", "C", 3), ("B", "C", 3))
        chosen = _select(pairs, required_teams=["A", "B"])
        assert chosen.teams == ("A", "B")

    def test_same_day_never_waived(self):
        pairs = _pairs(("A", "B", 1), ("A", "C", 1))
        diag = {}
        chosen = _select(pairs, required_teams=["A"],
                         teams_played_today={"A"}, diagnostics=diag)
        assert chosen is None
        assert diag["forced"] is True
        assert diag["rejection"]["same_day"] == 2

    def test_unforced_slot_avoids_locked_teams(self):
        pairs = _pairs(("A", "B", 3), ("C", "D", 1))
        chosen = _select(pairs, all_locked_teams={"A"})
        assert chosen.teams == ("C", "D")

    def test_forced_slot_ignores_global_lock_filter(self):
        pairs = _pairs(("A", "B", 1))
        chosen = _select(pairs, required_teams=["A"], all_locked_teams={"A", "B"})
        assert chosen.teams == ("A", "B")

    def test_weekly_cap(self):
        pairs = _pairs(("A", "B", 1), ("C", "D", 3))
        chosen = _select(pairs, teams_this_week={"C": 2})
        assert chosen.teams == ("A", "B")

    def test_weekly_cap_waived_when_forced(self):
        pairs = _pairs(("C", "D", 1))
        chosen = _select(pairs, required_teams=["C"], teams_this_week={"C": 2})
        assert chosen.teams == ("C", "D")

    def test_target_slot_max(self):
        pairs = _pairs(("A", "B", 3), ("C", "D", 1))
        chosen = _select(pairs, is_target_slot=True,
                         team_target_counts={"A": 3}, max_target=3)
        assert chosen.teams == ("C", "D")

    def test_target_max_only_applies_to_target_slot(self):
        pairs = _pairs(("A", "B", 3), ("C", "D", 1))
        chosen = _select(pairs, is_target_slot=False,
                         team_target_counts={"A": 3}, max_target=3)
        assert chosen.teams == ("A", "B")

    def test_none_when_everything_exhausted(self):
        pairs = _pairs(("A", "B", 0), ("C", "D", 0))
        diag = {}
        assert _select(pairs, diagnostics=diag) is None
        assert diag["rejection"]["exhausted"] == 2
        assert diag["total_pairs"] == 2


class TestSelectPairScoring:
    def test_prefers_more_remaining(self):
        pairs = _pairs(("A", "B", 1), ("C", "D", 3))
        assert _select(pairs).teams == ("C", "D")

    def test_target_slot_favors_teams_below_min(self):
        pairs = _pairs(("A", "B", 1), ("C", "D", 1))
        counts = {"A": 0, "B": 0, "C": 2, "D": 2}
        chosen = _select(pairs, is_target_slot=True,
                         team_target_counts=counts, min_target=2, max_target=3)
        assert chosen.teams == ("A", "B")

    def test_other_slots_save_teams_below_min(self):
        pairs = _pairs(("A", "B", 1), ("C", "D", 1))
        counts = {"A": 0, "B": 0, "C": 2, "D": 2}
        chosen = _select(pairs, is_target_slot=False,
                         team_target_counts=counts, min_target=2, max_target=3)
        assert chosen.teams == ("C", "D")

    def test_weekly_penalty(self):
        pairs = _pairs(("A", "B", 1), ("C", "D", 1))
        chosen = _select(pairs, teams_this_week={"A": 1})
        assert chosen.teams == ("C", "D")

    def test_deterministic_for_seed(self):
        pairs = _pairs(("A", "B", 1), ("C", "D", 1), ("A", "C", 1))
        first = _select(pairs, rng=create_seeded_rng("tie")).teams
        again = _select(pairs, rng=create_seeded_rng("tie")).teams
        assert first == again


class TestAssignGame:
    SLOT = Slot(date="03/02/2026", slot=TARGET, index=0)

    def _assign(self, entry, lock=None, home=None, away=None, seed="side"):
        return assign_game(self.SLOT, entry, create_seeded_rng(seed), lock,
                           home or {}, away or {})

    def test_copies_slot(self):
        g = self._assign(Pair(("A", "B"), 1))
        assert g.date == "03/02/2026"
        assert g.slot == TARGET
        assert {g.away, g.home} == {"A", "B"}

    def test_fully_pinned_lock(self):
        lock = LockRequirement({"A", "B"}, home="A", away="B")
        g = self._assign(Pair(("A", "B"), 1), lock)
        assert (g.away, g.home) == ("B", "A")

    def test_away_pinned(self):
        lock = LockRequirement({"B"}, away="B")
        g = self._assign(Pair(("A", "B"), 1), lock)
        assert (g.away, g.home) == ("B", "A")

    def test_home_pinned(self):
        lock = LockRequirement({"B"}, home="B")
        g = self._assign(Pair(("A", "B"), 1), lock)
        assert (g.away, g.home) == ("A", "B")

    def test_differential_gives_home_to_team_behind(self):
        g = self._assign(Pair(("A", "B"), 1), home={"A": 3}, away={})
        assert (g.away, g.home) == ("A", "B")

    def test_small_differential_uses_coin(self):
        seen = set()
        for i in range(40):
            g = self._assign(Pair(("A", "B"), 1), home={"A": 1}, seed=f"coin-{i}")
            seen.add(g.home)
        assert seen == {"A", "B"}

    def test_lone_locked_team_travels(self):
        lock = LockRequirement({"A"})
        for i in range(20):
            g = self._assign(Pair(("A", "B"), 1), lock, seed=f"lone-{i}")
            assert g.away == "A"

    def test_lone_locked_team_travels_despite_balance(self):
        lock = LockRequirement({"A"})
        g = self._assign(Pair(("A", "B"), 1), lock, home={"B": 3})
        assert (g.away, g.home) == ("A", "B")

    def test_locked_away_outside_pair_ignored(self):
        lock = LockRequirement({"A"}, away="D")
        for i in range(10):
            g = self._assign(Pair(("A", "B"), 1), lock, seed=f"out-{i}")
            assert {g.away, g.home} == {"A", "B"}
            assert g.away == "A"

    def test_pinned_lock_keeps_selected_pair(self):
        lock = LockRequirement({"A"}, home="A", away="D")
        g = self._assign(Pair(("A", "B"), 1), lock)
        assert (g.away, g.home) == ("B", "A")

    def test_pinned_lock_outside_pair_uses_balance(self):
        lock = LockRequirement({"C", "D"}, home="C", away="D")
        g = self._assign(Pair(("A", "B"), 1), lock, home={"A": 3})
        assert (g.away, g.home) == ("A", "B")


class TestTryGenerateSchedule:
    def test_fills_every_slot(self):
        slots = _weekly_slots(6)
        result = try_generate_schedule(TEAMS, slots, TARGET, "t1", 1)
        assert len(result["games"]) == 6
        assert result["min_target"] == 3
        assert result["max_target"] == 3
        assert result["target_counts"] == {"A": 3, "B": 3, "C": 3, "D": 3}

    def test_unmet_pairs(self):
        slots = _weekly_slots(5)
        with pytest.raises(UnmetPairCount) as e:
            try_generate_schedule(TEAMS, slots, TARGET, "t1", 1)
        assert e.value.slot_index is None
        assert len(e.value.partial_games) == 5
        assert "1 matchup(s) still unassigned" in e.value.reason

    def test_slot_exhaustion_carries_partial(self):
        slots = [Slot("03/02/2026", TARGET, 0), Slot("03/02/2026", EARLY, 1)]
        locks = {0: LockRequirement({"A"}), 1: LockRequirement({"A"})}
        with pytest.raises(SlotExhaustion) as e:
            try_generate_schedule(TEAMS, slots, TARGET, "t1", 1, locks)
        assert e.value.slot_index == 1
        assert len(e.value.partial_games) == 1
        assert "slot #2" in e.value.reason
        assert "(locked to A)" in e.value.reason

    def test_verbose_reason_lists_rejections(self):
        slots = [Slot("03/02/2026", TARGET, 0), Slot("03/02/2026", EARLY, 1)]
        locks = {0: LockRequirement({"A"}), 1: LockRequirement({"A"})}
        with pytest.raises(SlotExhaustion) as e:
            try_generate_schedule(TEAMS, slots, TARGET, "t1", 1, locks, verbose=True)
        assert "same-day" in e.value.reason
        assert "pairs with games" in e.value.reason


class TestGenerateBalancedSchedule:
    def test_single_round_robin(self):
        result = generate_balanced_schedule(TEAMS, _weekly_slots(6), TARGET,
                                            seed="t1", games_per_pair=1)
        assert len(result.games) == 6
        assert result.attempts == 1
        assert result.seed == "t1-0"
        assert result.target_counts == {"A": 3, "B": 3, "C": 3, "D": 3}
        assert verify_pair_counts(result.games, TEAMS, 1)["valid"]

    def test_three_meetings_per_pair(self):
        result = generate_balanced_schedule(TEAMS, _weekly_slots(18, EARLY),
                                            TARGET, seed="s", games_per_pair=3)
        assert len(result.games) == 18
        assert verify_no_doubleheaders(result.games)["valid"]
        counts = verify_pair_counts(result.games, TEAMS, 3)
        assert counts["valid"], counts["errors"]
        assert counts["games_per_team"] == {"A": 9, "B": 9, "C": 9, "D": 9}
        # no slot carries the target label
        assert result.min_target == 0
        assert result.max_target == 0

    def test_games_keep_slot_order(self):
        slots = _weekly_slots(18, EARLY)
        result = generate_balanced_schedule(TEAMS, slots, TARGET, seed="s")
        for g, s in zip(result.games, slots):
            assert (g.date, g.slot) == (s.date, s.slot)

    def test_reported_counts_match_games(self):
        result = generate_balanced_schedule(TEAMS, _weekly_slots(18, EARLY),
                                            TARGET, seed="counts")
        balance = compute_home_away_balance(result.games)
        for team in TEAMS:
            assert result.home_counts[team] == balance[team]["home"]
            assert result.away_counts[team] == balance[team]["away"]

    def test_same_seed_same_schedule(self):
        kwargs = {"target_slot": TARGET, "seed": "repeat", "games_per_pair": 3}
        r1 = generate_balanced_schedule(TEAMS, _weekly_slots(18, EARLY), **kwargs)
        r2 = generate_balanced_schedule(TEAMS, _weekly_slots(18, EARLY), **kwargs)
        assert r1.games == r2.games
        assert r1.flips == r2.flips
        assert r1.seed == r2.seed

    def test_duplicate_team_names_ignored(self):
        result = generate_balanced_schedule(["A", "B", "A", "C", "D"],
                                            _weekly_slots(6), TARGET,
                                            seed="dup", games_per_pair=1)
        assert len(result.games) == 6

    def test_locked_team_stays_in_its_slots(self):
        locks = {i: LockRequirement({"A"}) for i in (0, 2, 4)}
        result = generate_balanced_schedule(TEAMS, _weekly_slots(6), TARGET,
                                            seed="lock", games_per_pair=1,
                                            lock_requirements=locks)
        for i, g in enumerate(result.games):
            if i in locks:
                assert g.involves("A")
            else:
                assert not g.involves("A")

    def test_without_optimizer(self):
        result = generate_balanced_schedule(TEAMS, _weekly_slots(6), TARGET,
                                            seed="raw", games_per_pair=1,
                                            optimize_home_away=False)
        assert result.flips == 0

    def test_retry_budget_exhausted(self):
        slots = [Slot("03/02/2026", TARGET, 0), Slot("03/02/2026", EARLY, 1)]
        locks = {0: LockRequirement({"A"}), 1: LockRequirement({"A"})}
        with pytest.raises(RetryBudgetExhausted) as e:
            generate_balanced_schedule(TEAMS, slots, TARGET, seed="x",
                                       games_per_pair=1, max_attempts=4,
                                       lock_requirements=locks)
        failures = e.value.failures
        assert len(failures) == 4
        assert [f.attempt for f in failures] == [1, 2, 3, 4]
        assert [f.seed for f in failures] == ["x-0", "x-1", "x-2", "x-3"]
        assert all(f.slot_index == 1 for f in failures)
        assert "after 4 attempts" in str(e.value)
        assert e.value.last_failure is failures[-1]

    def test_unmet_pairs_exhaust_budget(self):
        with pytest.raises(RetryBudgetExhausted) as e:
            generate_balanced_schedule(TEAMS, _weekly_slots(5), TARGET,
                                       seed="short", games_per_pair=1,
                                       max_attempts=2)
        assert len(e.value.failures) == 2
        assert len(e.value.last_failure.partial_games) == 5

    def test_no_teams(self):
        with pytest.raises(InputError):
            generate_balanced_schedule([], _weekly_slots(6), TARGET, seed="x")

    def test_no_slots(self):
        with pytest.raises(InputError):
            generate_balanced_schedule(TEAMS, [], TARGET, seed="x")

    def test_bad_slot_date(self):
        slots = [Slot("2026-03-02", TARGET, 0)]
        with pytest.raises(InputError):
            generate_balanced_schedule(TEAMS, slots, TARGET, seed="x")

    def test_zero_attempts(self):
        with pytest.raises(InputError):
            generate_balanced_schedule(TEAMS, _weekly_slots(6), TARGET,
                                       seed="x", max_attempts=0)

    def test_auto_seed(self):
        result = generate_balanced_schedule(TEAMS, _weekly_slots(6), TARGET,
                                            games_per_pair=1)
        assert result.seed.startswith("auto-")
        assert result.seed.endswith("-0")

    def test_games_are_game_objects(self):
        result = generate_balanced_schedule(TEAMS, _weekly_slots(6), TARGET,
                                            seed="t1", games_per_pair=1)
        assert all(isinstance(g, Game) for g in result.games)
