from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.stats import StudyStats

ALL_CAUGHT_UP = "All caught up! Every review is done; try adding some new cards."
PRIORITIZE_OVERDUE = "You have a lot of overdue cards. Review the overdue ones first."
SPLIT_SESSIONS = "Lots of cards are due today. Split them into smaller sessions."
START_NOW = "You have cards to review today. Start now!"
STEADY_PACE = "Good pace! Keep up the steady study habit."


@dataclass(frozen=True)
class Recommendation:
    message: str
    should_study_today: bool


def recommend(stats: StudyStats, config: Optional[SchedulerConfig] = None) -> Recommendation:
    """
    Pick a study recommendation from the dashboard stats.

    Rules are checked in order and the first match wins. Cards due
    yesterday are not part of the pending count.
    """
    config = config or SchedulerConfig()
    pending = stats.overdue_count + stats.today_count

    if pending == 0:
        return Recommendation(ALL_CAUGHT_UP, False)
    if stats.overdue_count > config.overdue_alert_threshold:
        return Recommendation(PRIORITIZE_OVERDUE, True)
    if pending > config.heavy_load_threshold:
        return Recommendation(SPLIT_SESSIONS, True)
    if pending > 0:
        return Recommendation(START_NOW, True)
    return Recommendation(STEADY_PACE, False)
