"""
Initialisation des entités du domaine
"""

from .base import DocumentModel, utc_now
from .metrics import UserMetrics, ProgressEntry, DEFAULT_BODY_WEIGHT_KG
from .score import (
    WeightConfiguration, ScoreBreakdown, UserScoreRecord, DEFAULT_WEIGHTS, SCORE_CATEGORIES,
)
from .ranking import (
    LeaderboardType, Tier, RankChange, RankingEntry, LeaderboardEntryView,
    UserRankingDetails, LeaderboardPeriod, LeaderboardSnapshot, TierDistribution,
)

__all__ = [
    "DocumentModel", "utc_now",
    "UserMetrics", "ProgressEntry", "DEFAULT_BODY_WEIGHT_KG",
    "WeightConfiguration", "ScoreBreakdown", "UserScoreRecord", "DEFAULT_WEIGHTS", "SCORE_CATEGORIES",
    "LeaderboardType", "Tier", "RankChange", "RankingEntry", "LeaderboardEntryView",
    "UserRankingDetails", "LeaderboardPeriod", "LeaderboardSnapshot", "TierDistribution",
]
