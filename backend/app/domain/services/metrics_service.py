"""
Service de soumission des métriques - Domain Layer

Pipeline d'une soumission :
  validation -> calcul du score -> userScores + userMetrics -> snapshot historique
  -> recalcul du classement (si RECOMPUTE_ON_SUBMIT)

Contient aussi le journal de progression, le recalcul complet des scores et la
mise à jour des pondérations.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from app.core.document_store import DocumentStore, DocumentStoreError
from app.core.settings import get_settings
from app.domain.entities import ProgressEntry, ScoreBreakdown, UserMetrics, UserScoreRecord, utc_now
from app.domain.exceptions import ComputationError
from app.domain.services.metrics_validator import (
    ValidationResult, validate_metrics, validate_progress_entry, validate_user_id, validate_weights,
)
from app.domain.services.ranking_engine import USER_SCORES_COLLECTION, progress_collection, ranking_engine
from app.domain.services.score_calculator import (
    SYSTEM_CONFIG_COLLECTION, WEIGHTS_DOC_ID, history_collection, score_calculator_service,
)

logger = logging.getLogger(__name__)

USER_METRICS_COLLECTION = "userMetrics"


def _snapshot_id(moment: datetime) -> str:
    """Identifiant de document triable chronologiquement"""
    return f"{moment.strftime('%Y%m%dT%H%M%S%f')}_{uuid.uuid4().hex[:8]}"


def _without_timestamp(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    return {key: value for key, value in document.items() if key != "timestamp"}


class MetricsService:
    """Orchestration des écritures de métriques et des recalculs"""

    async def submit_metrics(
        self,
        store: DocumentStore,
        user_id: str,
        raw_metrics: Any,
        now: Optional[datetime] = None,
        recompute_rankings: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Valide, score et persiste une soumission de métriques.

        Une soumission identique à la précédente (hors timestamp) ne déclenche
        aucun recalcul (le score stocké reste valable).
        recompute_rankings remplace RECOMPUTE_ON_SUBMIT (import en masse).

        Returns:
            {"valid": False, "errors": [...]} si la validation échoue, sinon
            {"valid": True, "changed": bool, "score": ScoreBreakdown | None, "rankingUpdated": bool}

        Raises:
            ComputationError: lecture des pondérations ou écriture du score impossible
        """
        now = now or utc_now()

        user_check = validate_user_id(user_id)
        if not user_check.is_valid:
            return {"valid": False, "errors": user_check.errors}
        user_id = user_check.data

        result = validate_metrics(raw_metrics, now)
        if not result.is_valid:
            logger.info(f"Métriques refusées pour {user_id}: {result.errors}")
            return {"valid": False, "errors": result.errors}

        metrics = UserMetrics.model_validate({**result.data, "userId": user_id})
        metrics_document = metrics.to_document(exclude_none=True)

        previous = await self._get_previous_metrics(store, user_id)
        if previous is not None and _without_timestamp(previous) == _without_timestamp(metrics_document):
            logger.info(f"⏭️ Métriques inchangées pour {user_id}, recalcul ignoré")
            return {"valid": True, "changed": False, "score": None, "rankingUpdated": False}

        breakdown = await score_calculator_service.calculate_user_score(store, user_id, metrics, now=now)
        await self._store_user_score(store, breakdown, metrics)

        await self._append_history_snapshot(store, user_id, metrics_document, now)

        ranking_updated = False
        if recompute_rankings is None:
            recompute_rankings = get_settings().RECOMPUTE_ON_SUBMIT
        if recompute_rankings:
            try:
                await ranking_engine.update_rankings(store, now)
                ranking_updated = True
            except ComputationError as exc:
                logger.error(f"❌ Recalcul du classement échoué après la soumission de {user_id}: {exc}")

        logger.info(f"✅ Métriques enregistrées pour {user_id} (score {breakdown.total_score})")
        return {"valid": True, "changed": True, "score": breakdown, "rankingUpdated": ranking_updated}

    async def _get_previous_metrics(self, store: DocumentStore, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await store.get(USER_METRICS_COLLECTION, user_id)
        except DocumentStoreError as exc:
            logger.warning(f"⚠️  Métriques précédentes illisibles pour {user_id}: {exc}")
            return None

    async def _store_user_score(self, store: DocumentStore, breakdown: ScoreBreakdown, metrics: UserMetrics) -> None:
        record = UserScoreRecord.from_breakdown(breakdown, metrics)
        try:
            await store.set(USER_SCORES_COLLECTION, breakdown.user_id, record.to_document(), merge=True)
            await store.set(USER_METRICS_COLLECTION, breakdown.user_id, metrics.to_document(exclude_none=True))
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de l'enregistrement du score de {breakdown.user_id}: {exc}")
            raise ComputationError(f"Écriture du score impossible: {exc}") from exc

    async def _append_history_snapshot(
        self, store: DocumentStore, user_id: str, metrics_document: Dict[str, Any], now: datetime,
    ) -> None:
        """Ajoute la soumission à l'historique (après le calcul, pour ne pas se comparer à soi-même)"""
        try:
            await store.set(history_collection(user_id), _snapshot_id(now), metrics_document)
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de l'ajout à l'historique de {user_id}: {exc}")

    async def log_progress_entry(
        self,
        store: DocumentStore,
        user_id: str,
        raw_entry: Any,
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """Enregistre une entrée de progression (squat / bench / deadlift / notes)"""
        now = now or utc_now()

        user_check = validate_user_id(user_id)
        if not user_check.is_valid:
            return user_check

        result = validate_progress_entry(raw_entry, now)
        if not result.is_valid:
            return result

        entry = ProgressEntry.model_validate(result.data)
        entry_id = _snapshot_id(entry.date)
        try:
            await store.set(progress_collection(user_check.data), entry_id, entry.to_document())
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de l'enregistrement de la progression de {user_id}: {exc}")
            raise ComputationError(f"Écriture de la progression impossible: {exc}") from exc

        logger.info(f"✅ Entrée de progression enregistrée pour {user_id}")
        return ValidationResult(is_valid=True, data={"id": entry_id, "entry": entry})

    async def recalculate_all_scores(self, store: DocumentStore, now: Optional[datetime] = None) -> int:
        """Recalcule le score de tous les utilisateurs puis le classement.

        Les pondérations sont lues une seule fois pour tout le passage. Les
        métriques invalides et les échecs individuels sont journalisés et ignorés.

        Returns:
            Nombre d'utilisateurs recalculés
        """
        now = now or utc_now()
        logger.info("🔄 Recalcul complet des scores...")

        try:
            documents = await store.scan(USER_METRICS_COLLECTION)
        except DocumentStoreError as exc:
            raise ComputationError(f"Lecture des métriques impossible: {exc}") from exc

        weights = await score_calculator_service.get_current_weights(store)

        processed = 0
        for user_id, document in documents.items():
            result = validate_metrics(document, now)
            if not result.is_valid:
                logger.warning(f"⚠️  Métriques invalides ignorées pour {user_id}: {result.errors}")
                continue
            try:
                metrics = UserMetrics.model_validate(result.data)
                breakdown = await score_calculator_service.calculate_user_score(
                    store, user_id, metrics, weights=weights, now=now,
                )
                await self._store_user_score(store, breakdown, metrics)
                processed += 1
            except ComputationError as exc:
                logger.error(f"❌ Recalcul du score de {user_id} échoué: {exc}")

        await ranking_engine.update_rankings(store, now)
        logger.info(f"✅ {processed}/{len(documents)} scores recalculés")
        return processed

    async def update_ranking_weights(
        self,
        store: DocumentStore,
        raw_weights: Any,
        updated_by: str = "admin",
        now: Optional[datetime] = None,
    ) -> ValidationResult:
        """Valide et enregistre une nouvelle configuration de pondérations"""
        result = validate_weights(raw_weights)
        if not result.is_valid:
            return result

        document = {
            "weights": result.data.to_document(),
            "lastUpdated": (now or utc_now()).isoformat(),
            "updatedBy": updated_by,
        }
        try:
            await store.set(SYSTEM_CONFIG_COLLECTION, WEIGHTS_DOC_ID, document)
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la mise à jour des pondérations: {exc}")
            raise ComputationError(f"Écriture des pondérations impossible: {exc}") from exc

        logger.info(f"✅ Pondérations mises à jour par {updated_by}: {document['weights']}")
        return result


metrics_service = MetricsService()
