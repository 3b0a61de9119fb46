"""Exceptions raised by the pony schedule generator."""


class ScheduleError(Exception):
    """Base class for all scheduling errors."""


class InputError(ScheduleError):
    """Inputs are unusable: no teams, no slots, or a malformed input file."""


class AttemptError(ScheduleError):
    """A single attempt failed. Another attempt may still succeed."""

    def __init__(self, reason: str, slot_index=None, partial_games=None):
        super().__init__(reason)
        self.reason = reason
        self.slot_index = slot_index
        self.partial_games = list(partial_games or [])


class SlotExhaustion(AttemptError):
    """A slot had no eligible pair."""


class UnmetPairCount(AttemptError):
    """Every slot was filled but some pair still owes games."""


class DoubleheaderRegression(AttemptError):
    """A finished schedule has a team playing twice on one date."""


class RetryBudgetExhausted(ScheduleError):
    """No attempt produced a valid schedule within the attempt budget."""

    def __init__(self, message: str, failures: list):
        super().__init__(message)
        self.failures = failures

    @property
    def last_failure(self):
        return self.failures[-1] if self.failures else None
