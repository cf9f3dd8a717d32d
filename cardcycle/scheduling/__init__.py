"""
Review scheduling core.

- Interval policy over hard/confuse/easy outcomes
- Review completion with optimistic locking
- Due-date bucket classification
- Study stats, streaks and recommendations
"""

from .buckets import BucketEntry, DueBucketClassifier, DueBuckets
from .completion import ReviewCompletionHandler, ReviewQueue, ReviewSubmission
from .dashboard import Dashboard, DashboardService
from .errors import (
    CardNotFound,
    ConcurrentModification,
    MemberNotFound,
    SchedulingError,
    UnrecognizedOutcome,
)
from .policy import IntervalDecision, IntervalPolicy, Outcome, parse_outcome
from .recommendation import Recommendation, recommend
from .records import Found, LookupResult, Missing, ReviewRecord
from .stats import StatsAggregator, StudyStats, count_streak
from .store import (
    ActivityLog,
    CardDirectory,
    InMemoryActivityLog,
    InMemoryCatalog,
    InMemoryReviewStore,
    MemberDirectory,
    ReviewRecordStore,
)

__all__ = [
    "Outcome",
    "parse_outcome",
    "IntervalDecision",
    "IntervalPolicy",
    "ReviewRecord",
    "Found",
    "Missing",
    "LookupResult",
    "ReviewRecordStore",
    "MemberDirectory",
    "CardDirectory",
    "ActivityLog",
    "InMemoryReviewStore",
    "InMemoryCatalog",
    "InMemoryActivityLog",
    "ReviewCompletionHandler",
    "ReviewQueue",
    "ReviewSubmission",
    "DueBuckets",
    "DueBucketClassifier",
    "BucketEntry",
    "StudyStats",
    "StatsAggregator",
    "count_streak",
    "Recommendation",
    "recommend",
    "Dashboard",
    "DashboardService",
    "SchedulingError",
    "MemberNotFound",
    "CardNotFound",
    "UnrecognizedOutcome",
    "ConcurrentModification",
]
