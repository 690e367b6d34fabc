"""
Entités de classement - Domain Layer
Entrées de classement, snapshots de leaderboard et statistiques de paliers
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import AliasChoices, Field

from .base import DocumentModel, utc_now


class LeaderboardType(str, Enum):
    """Types de leaderboard"""
    OVERALL = "overall"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Tier(str, Enum):
    """Paliers de classement (du meilleur au moins bon)"""
    DIAMOND = "Diamond"
    PLATINUM = "Platinum"
    GOLD = "Gold"
    SILVER = "Silver"
    BRONZE = "Bronze"


class RankChange(str, Enum):
    """Sens de variation du rang par rapport au cycle précédent"""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"

    @classmethod
    def from_delta(cls, delta: int) -> "RankChange":
        if delta > 0:
            return cls.UP
        if delta < 0:
            return cls.DOWN
        return cls.STABLE


class RankingEntry(DocumentModel):
    """Entrée d'un leaderboard (rang 1 = meilleur)"""
    user_id: str
    # les anciens documents stockent le total sous "score"
    total_score: float = Field(validation_alias=AliasChoices("totalScore", "total_score", "score"))
    strength_score: float = 0.0
    stamina_score: float = 0.0
    consistency_score: float = 0.0
    improvement_score: float = 0.0
    rank: int
    tier: Tier
    rank_delta: int = 0
    rank_change: RankChange = RankChange.STABLE
    last_updated: Optional[datetime] = None


class LeaderboardEntryView(RankingEntry):
    """Entrée enrichie avec le profil utilisateur (lecture)"""
    display_name: str = "Anonymous"
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class UserRankingDetails(RankingEntry):
    """Détail du classement d'un utilisateur dans un leaderboard"""
    total_users: int
    percentile: int
    previous_rank: Optional[int] = None


class LeaderboardPeriod(DocumentModel):
    """Fenêtre temporelle d'un leaderboard hebdomadaire ou mensuel"""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return self.start <= moment <= self.end


class LeaderboardSnapshot(DocumentModel):
    """Snapshot complet d'un leaderboard, remplacé à chaque recalcul"""
    type: LeaderboardType
    rankings: List[RankingEntry] = Field(default_factory=list)
    total_users: int = 0
    last_updated: datetime = Field(default_factory=utc_now)
    period: Optional[LeaderboardPeriod] = None

    def find(self, user_id: str) -> Optional[RankingEntry]:
        """Recherche linéaire d'un utilisateur dans le snapshot"""
        for entry in self.rankings:
            if entry.user_id == user_id:
                return entry
        return None


class TierDistribution(DocumentModel):
    """Répartition des utilisateurs par palier (classement overall)"""
    tier_stats: Dict[str, int]
    total_users: int
    last_updated: datetime = Field(default_factory=utc_now)
