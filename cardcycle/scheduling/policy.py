from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Union

from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.errors import UnrecognizedOutcome


class Outcome(str, enum.Enum):
    """Self-reported recall quality for a single review."""

    HARD = "hard"
    CONFUSE = "confuse"
    EASY = "easy"


OUTCOME_SYNONYMS: Dict[str, Outcome] = {
    "hard": Outcome.HARD,
    "again": Outcome.HARD,
    "forgot": Outcome.HARD,
    "fail": Outcome.HARD,
    "어려움": Outcome.HARD,
    "잊음": Outcome.HARD,
    "다시": Outcome.HARD,
    "confuse": Outcome.CONFUSE,
    "confusing": Outcome.CONFUSE,
    "confused": Outcome.CONFUSE,
    "good": Outcome.CONFUSE,
    "medium": Outcome.CONFUSE,
    "보통": Outcome.CONFUSE,
    "헷갈림": Outcome.CONFUSE,
    "easy": Outcome.EASY,
    "perfect": Outcome.EASY,
    "쉬움": Outcome.EASY,
}


OutcomeLabel = Union[Outcome, str]


def parse_outcome(label: OutcomeLabel) -> Outcome:
    """
    Normalise a difficulty label to a canonical Outcome.

    Matching ignores case and surrounding whitespace. Labels outside the
    synonym table raise UnrecognizedOutcome.
    """
    if isinstance(label, Outcome):
        return label
    if not isinstance(label, str):
        raise UnrecognizedOutcome(label)
    outcome = OUTCOME_SYNONYMS.get(label.strip().lower())
    if outcome is None:
        raise UnrecognizedOutcome(label)
    return outcome


@dataclass(frozen=True)
class IntervalDecision:
    """Result of applying the policy to one review."""

    outcome: Outcome
    interval_days: int
    repetitions: int


class IntervalPolicy:
    """
    Hard / confuse / easy interval policy.

        - HARD resets the repetition count and schedules the card for tomorrow
        - CONFUSE waits max(3, r + 1) days
        - EASY waits max(7, r * 2) days

    where r is the repetition count before the review. CONFUSE and EASY
    both increment the repetition count.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None) -> None:
        self.config = config or SchedulerConfig()

    @property
    def first_interval_days(self) -> int:
        return max(1, self.config.first_interval_days)

    def schedule(self, outcome: OutcomeLabel, current_repetitions: int) -> IntervalDecision:
        if current_repetitions < 0:
            raise ValueError("current_repetitions must be non-negative")

        parsed = parse_outcome(outcome)
        reps = int(current_repetitions)

        if parsed is Outcome.HARD:
            interval = self.config.hard_interval_days
            reps = 0
        elif parsed is Outcome.CONFUSE:
            interval = max(self.config.confuse_min_days, reps + 1)
            reps += 1
        else:
            interval = max(self.config.easy_min_days, reps * 2)
            reps += 1

        return IntervalDecision(outcome=parsed, interval_days=max(1, interval), repetitions=reps)

    def next_interval(self, outcome: OutcomeLabel, current_repetitions: int) -> int:
        """Return only the interval length in days for the given review."""
        return self.schedule(outcome, current_repetitions).interval_days
