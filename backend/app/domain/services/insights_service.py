"""
Service d'insights - Domain Layer
Conseils personnalisés dérivés du détail du score d'un utilisateur.
"""
import logging
from typing import Any, Dict

from app.core.document_store import DocumentStore, DocumentStoreError
from app.domain.entities import ScoreBreakdown
from app.domain.services.ranking_engine import USER_SCORES_COLLECTION
from app.domain.services.score_calculator import SCORE_BREAKDOWNS_COLLECTION

logger = logging.getLogger(__name__)

LOW_SCORE_THRESHOLD = 50
HIGH_SCORE_THRESHOLD = 80


def build_insights(breakdown: ScoreBreakdown) -> Dict[str, Any]:
    """Constats et recommandations à partir des scores de catégorie"""
    insights = []
    recommendations = []

    if breakdown.strength_score < LOW_SCORE_THRESHOLD:
        insights.append("Your strength score is below average")
        recommendations.append("Focus on progressive overload in your strength training")
    elif breakdown.strength_score > HIGH_SCORE_THRESHOLD:
        insights.append("Excellent strength performance!")
        recommendations.append("Consider increasing weight or adding more challenging exercises")

    if breakdown.stamina_score < LOW_SCORE_THRESHOLD:
        insights.append("Your endurance could be improved")
        recommendations.append("Add more cardio sessions and reduce rest time between sets")

    if breakdown.consistency_score < LOW_SCORE_THRESHOLD:
        insights.append("Workout consistency needs improvement")
        recommendations.append("Set a regular workout schedule and stick to it")

    if breakdown.improvement_score < LOW_SCORE_THRESHOLD:
        insights.append("Your progress rate is slower than average")
        recommendations.append("Review your training program and consider increasing intensity")

    return {
        "insights": insights,
        "recommendations": recommendations,
        "scoreBreakdown": breakdown.to_document(),
    }


async def get_user_insights(store: DocumentStore, user_id: str) -> Dict[str, Any]:
    """Insights d'un utilisateur ; listes vides s'il n'a pas encore de score"""
    empty = {"insights": [], "recommendations": []}
    try:
        breakdown_doc = await store.get(SCORE_BREAKDOWNS_COLLECTION, user_id)
        score_doc = await store.get(USER_SCORES_COLLECTION, user_id)
    except DocumentStoreError as exc:
        logger.error(f"Erreur lors de la génération des insights de {user_id}: {exc}")
        return empty

    if breakdown_doc is None or score_doc is None:
        return empty

    try:
        breakdown = ScoreBreakdown.model_validate(breakdown_doc)
    except ValueError as exc:
        logger.error(f"Détail du score illisible pour {user_id}: {exc}")
        return empty
    return build_insights(breakdown)
