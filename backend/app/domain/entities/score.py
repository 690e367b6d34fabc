"""
Entités de score - Domain Layer
Configuration des pondérations, détail du score et score courant par utilisateur
"""
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from .base import DocumentModel, utc_now
from .metrics import UserMetrics

SCORE_CATEGORIES = ("strength", "stamina", "consistency", "improvement")


class WeightConfiguration(DocumentModel):
    """Pondérations des quatre catégories (somme = 1.0 à 0.01 près)"""
    strength: float = 0.30
    stamina: float = 0.25
    consistency: float = 0.25
    improvement: float = 0.20

    @property
    def total(self) -> float:
        return self.strength + self.stamina + self.consistency + self.improvement


DEFAULT_WEIGHTS = WeightConfiguration()


class ScoreBreakdown(DocumentModel):
    """Détail du score d'un utilisateur (scores arrondis à 2 décimales)"""
    user_id: str
    strength_score: float
    stamina_score: float
    consistency_score: float
    improvement_score: float
    total_score: float
    weights: WeightConfiguration
    calculated_at: datetime = Field(default_factory=utc_now)

    def category_score(self, category: str) -> float:
        return getattr(self, f"{category}_score")


class UserScoreRecord(DocumentModel):
    """Score courant d'un utilisateur (collection userScores)"""
    user_id: str
    total_score: float = Field(0.0, validation_alias=AliasChoices("totalScore", "total_score", "score"))
    strength_score: float = 0.0
    stamina_score: float = 0.0
    consistency_score: float = 0.0
    improvement_score: float = 0.0
    last_updated: Optional[datetime] = None
    metrics: UserMetrics = Field(default_factory=UserMetrics)

    @classmethod
    def from_breakdown(cls, breakdown: ScoreBreakdown, metrics: UserMetrics) -> "UserScoreRecord":
        return cls(
            user_id=breakdown.user_id,
            total_score=breakdown.total_score,
            strength_score=breakdown.strength_score,
            stamina_score=breakdown.stamina_score,
            consistency_score=breakdown.consistency_score,
            improvement_score=breakdown.improvement_score,
            last_updated=breakdown.calculated_at,
            metrics=metrics,
        )
