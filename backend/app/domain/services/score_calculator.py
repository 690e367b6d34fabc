"""
Service de calcul des scores - Domain Layer
Convertit les métriques d'un utilisateur en quatre scores de catégorie
(force, endurance, régularité, amélioration) et un score total pondéré.

Les fonctions de calcul sont pures. ScoreCalculatorService ajoute les lectures
(pondérations, historique) et l'écriture du détail du score dans le store.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from app.core.document_store import DocumentStore, DocumentStoreError
from app.core.settings import get_settings
from app.domain.entities import (
    DEFAULT_BODY_WEIGHT_KG, DEFAULT_WEIGHTS, ScoreBreakdown, UserMetrics, WeightConfiguration, utc_now,
)
from app.domain.exceptions import ComputationError, ConfigurationError
from app.domain.services.metrics_validator import validate_weights

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constantes
# ---------------------------------------------------------------------------
SYSTEM_CONFIG_COLLECTION = "systemConfig"
WEIGHTS_DOC_ID = "rankingWeights"
SCORE_BREAKDOWNS_COLLECTION = "scoreBreakdowns"

NEUTRAL_IMPROVEMENT_SCORE = 50.0
IMPROVEMENT_WINDOW = 3  # nombre de points "anciens" et "récents" comparés
MAX_CATEGORY_SCORE = 100.0


def history_collection(user_id: str) -> str:
    return f"userMetricsHistory/{user_id}/snapshots"


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def _round(value: float) -> float:
    return round(value, 2)


# ===================================================================
# Scores par catégorie
# ===================================================================

def calculate_strength_score(metrics: UserMetrics) -> float:
    """Score de force (0-100).

    - charge max / poids de corps : 0-50 pts (ratio x 25)
    - 1RM absolu : 0-30 pts (1RM / 10)
    - volume total : 0-20 pts (volume / 1000)
    """
    max_weight = metrics.max_weight_lifted or 0
    one_rep_max = metrics.one_rep_max or 0
    total_weight = metrics.total_weight_lifted or 0
    body_weight = metrics.body_weight or DEFAULT_BODY_WEIGHT_KG

    score = 0.0
    if max_weight > 0:
        score += min(50, (max_weight / body_weight) * 25)
    if one_rep_max > 0:
        score += min(30, one_rep_max / 10)
    if total_weight > 0:
        score += min(20, total_weight / 1000)

    return _clamp(score, 0, MAX_CATEGORY_SCORE)


def calculate_stamina_score(metrics: UserMetrics) -> float:
    """Score d'endurance (0-100).

    - durée de séance : 0-30 pts
    - minutes de cardio : 0-25 pts
    - efficacité du repos entre séries : 0-20 pts (moins de repos = plus de points)
    - FC moyenne / FC max : 0-25 pts
    """
    duration = metrics.workout_duration or 0
    cardio = metrics.cardio_minutes or 0
    rest_time = metrics.rest_time_between_sets or 0
    heart_rates = metrics.heart_rate_data or []
    max_heart_rate = metrics.max_heart_rate or 0

    score = 0.0
    if duration > 0:
        score += min(30, duration / 2)
    if cardio > 0:
        score += min(25, cardio / 3)
    if rest_time > 0:
        score += max(0, 120 - rest_time) / 120 * 20
    if heart_rates and max_heart_rate > 0:
        avg_heart_rate = sum(heart_rates) / len(heart_rates)
        score += (avg_heart_rate / max_heart_rate) * 25

    return _clamp(score, 0, MAX_CATEGORY_SCORE)


def calculate_consistency_score(metrics: UserMetrics, now: Optional[datetime] = None) -> float:
    """Score de régularité (0-100).

    - série en cours : 0-40 pts (2 pts par jour)
    - fréquence globale séances / jours : 0-30 pts
    - taux de présence : 0-20 pts
    - activité récente : +10 si <= 7 jours, +5 si <= 14 jours
    """
    now = now or utc_now()
    streak = metrics.workout_streak or 0
    total_workouts = metrics.total_workouts or 0
    days_since_start = metrics.days_since_start or 0
    missed = metrics.missed_workouts or 0

    score = 0.0
    if streak > 0:
        score += min(40, streak * 2)
    if total_workouts > 0 and days_since_start > 0:
        score += min(30, (total_workouts / days_since_start) * 100)
    if total_workouts > 0:
        score += (total_workouts / (total_workouts + missed)) * 20

    if metrics.last_workout_date:
        days_since_last = (now - metrics.last_workout_date).total_seconds() / 86400
        if days_since_last <= 7:
            score += 10
        elif days_since_last <= 14:
            score += 5

    return _clamp(score, 0, MAX_CATEGORY_SCORE)


def _trend_factor(history: Sequence[UserMetrics], attribute: str) -> float:
    """Facteur d'amélioration (0-1) entre les premiers et les derniers points.

    0.5 = aucune progression ; 0.5 exactement si la moyenne ancienne est nulle.
    """
    old = history[:IMPROVEMENT_WINDOW]
    recent = history[-IMPROVEMENT_WINDOW:]
    if not old or not recent:
        return 0.5

    old_avg = sum(getattr(m, attribute) or 0 for m in old) / len(old)
    recent_avg = sum(getattr(m, attribute) or 0 for m in recent) / len(recent)
    if old_avg == 0:
        return 0.5

    improvement = (recent_avg - old_avg) / old_avg
    return _clamp(improvement + 0.5, 0, 1)


def _progress_rate(history: Sequence[UserMetrics]) -> float:
    """Tendance moyenne de (charge max + durée + série) entre points consécutifs, normalisée 0-1"""
    if len(history) < 2:
        return 0.5

    progress = [
        (m.max_weight_lifted or 0) + (m.workout_duration or 0) + (m.workout_streak or 0)
        for m in history
    ]
    trend = sum(progress[i] - progress[i - 1] for i in range(1, len(progress)))
    avg_trend = trend / (len(progress) - 1)
    return _clamp(avg_trend / 100 + 0.5, 0, 1)


def calculate_improvement_score(history: Sequence[UserMetrics]) -> float:
    """Score d'amélioration (0-100) à partir de l'historique trié du plus ancien au plus récent.

    Moins de 2 snapshots : score neutre de 50. Toute erreur interne dégrade aussi à 50.
    """
    if not history or len(history) < 2:
        return NEUTRAL_IMPROVEMENT_SCORE

    try:
        score = (
            _trend_factor(history, "max_weight_lifted") * 30
            + _trend_factor(history, "workout_duration") * 25
            + _trend_factor(history, "workout_streak") * 25
            + _progress_rate(history) * 20
        )
    except (TypeError, ValueError, ArithmeticError) as exc:
        logger.error(f"Erreur lors du calcul du score d'amélioration: {exc}", exc_info=True)
        return NEUTRAL_IMPROVEMENT_SCORE

    return _clamp(score, 0, MAX_CATEGORY_SCORE)


def compute_score(
    user_id: str,
    metrics: UserMetrics,
    weights: WeightConfiguration,
    historical_snapshots: Sequence[UserMetrics],
    now: Optional[datetime] = None,
) -> ScoreBreakdown:
    """Calcule le détail complet du score d'un utilisateur (fonction pure).

    Args:
        user_id: Identifiant de l'utilisateur
        metrics: Métriques courantes assainies
        weights: Pondérations du cycle en cours
        historical_snapshots: Historique trié du plus ancien au plus récent
        now: Instant de référence pour le bonus d'activité récente

    Returns:
        ScoreBreakdown avec tous les scores arrondis à 2 décimales
    """
    now = now or utc_now()

    strength = calculate_strength_score(metrics)
    stamina = calculate_stamina_score(metrics)
    consistency = calculate_consistency_score(metrics, now)
    improvement = calculate_improvement_score(historical_snapshots)

    total = (
        strength * weights.strength
        + stamina * weights.stamina
        + consistency * weights.consistency
        + improvement * weights.improvement
    )

    return ScoreBreakdown(
        user_id=user_id,
        strength_score=_round(strength),
        stamina_score=_round(stamina),
        consistency_score=_round(consistency),
        improvement_score=_round(improvement),
        total_score=_round(_clamp(total, 0, MAX_CATEGORY_SCORE)),
        weights=weights,
        calculated_at=now,
    )


# ===================================================================
# Service (lectures / écritures du store)
# ===================================================================

class ScoreCalculatorService:
    """Orchestration du calcul de score avec les collaborateurs du store"""

    async def get_current_weights(self, store: DocumentStore) -> WeightConfiguration:
        """Lit la configuration des pondérations.

        Document absent ou invalide : pondérations par défaut.
        Échec de lecture du store : ComputationError.
        """
        try:
            document = await store.get(SYSTEM_CONFIG_COLLECTION, WEIGHTS_DOC_ID)
        except DocumentStoreError as exc:
            raise ComputationError(f"Lecture des pondérations impossible: {exc}") from exc

        if not document:
            return DEFAULT_WEIGHTS

        try:
            return self.parse_weights(document.get("weights"))
        except ConfigurationError as exc:
            logger.warning(f"⚠️  Pondérations invalides ({exc}), utilisation des valeurs par défaut")
            return DEFAULT_WEIGHTS

    @staticmethod
    def parse_weights(raw_weights) -> WeightConfiguration:
        result = validate_weights(raw_weights)
        if not result.is_valid:
            raise ConfigurationError(result.errors)
        return result.data

    async def get_historical_metrics(
        self, store: DocumentStore, user_id: str, before: Optional[datetime] = None,
    ) -> List[UserMetrics]:
        """Historique des métriques, du plus ancien au plus récent.

        Lit les N snapshots les plus récents (timestamp décroissant) puis les remet
        dans l'ordre chronologique. Avec before, seuls les snapshots strictement
        antérieurs sont lus : une soumission n'entre jamais dans son propre
        historique, qu'elle soit déjà archivée (recalcul) ou pas encore (soumission).
        Une erreur de lecture retourne un historique vide.
        """
        limit = get_settings().RANKING_HISTORY_LIMIT
        filters = []
        if before is not None:
            if before.tzinfo is None:
                before = before.replace(tzinfo=timezone.utc)
            filters.append(("timestamp", "<", before.isoformat()))
        try:
            documents = await store.query(
                history_collection(user_id), filters=filters, order_by="timestamp", descending=True, limit=limit,
            )
            snapshots = [UserMetrics.model_validate(doc) for doc in documents]
        except (DocumentStoreError, ValueError, TypeError) as exc:
            logger.error(f"Erreur lors de la lecture de l'historique de {user_id}: {exc}")
            return []
        snapshots.reverse()
        return snapshots

    async def store_score_breakdown(self, store: DocumentStore, breakdown: ScoreBreakdown) -> None:
        """Enregistre le détail du score (merge) ; un échec est journalisé, pas propagé"""
        try:
            await store.set(
                SCORE_BREAKDOWNS_COLLECTION, breakdown.user_id, breakdown.to_document(), merge=True,
            )
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de l'enregistrement du détail du score de {breakdown.user_id}: {exc}")

    async def calculate_user_score(
        self,
        store: DocumentStore,
        user_id: str,
        metrics: UserMetrics,
        weights: Optional[WeightConfiguration] = None,
        now: Optional[datetime] = None,
    ) -> ScoreBreakdown:
        """Calcule (et enregistre) le score d'un utilisateur.

        Les pondérations peuvent être fournies par l'appelant pour qu'un même
        passage de recalcul utilise une configuration unique.
        """
        if weights is None:
            weights = await self.get_current_weights(store)
        history = await self.get_historical_metrics(store, user_id, before=metrics.timestamp)

        breakdown = compute_score(user_id, metrics, weights, history, now)
        await self.store_score_breakdown(store, breakdown)

        logger.debug(f"Score calculé pour {user_id}: {breakdown.total_score}")
        return breakdown


score_calculator_service = ScoreCalculatorService()
