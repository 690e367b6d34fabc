"""
Routes de soumission : metriques d'entrainement et entrees de progression.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status

from app.core.document_store import DocumentStore, get_document_store
from app.domain.exceptions import ComputationError
from app.domain.services.metrics_service import metrics_service
from app.api.routers._shared import error_response, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/metrics")


@router.post("/{user_id}")
async def submit_metrics(
    user_id: str,
    metrics: Dict[str, Any] = Body(...),
    store: DocumentStore = Depends(get_document_store),
):
    """Soumet les metriques d'un utilisateur et recalcule son score"""
    try:
        result = await metrics_service.submit_metrics(store, user_id, metrics)
    except ComputationError as e:
        logger.error(f"Erreur lors de la soumission des metriques de {user_id}: {e}")
        return error_response("Score computation failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not result["valid"]:
        return error_response(result["errors"])

    return success_response({
        "changed": result["changed"],
        "score": result["score"],
        "rankingUpdated": result["rankingUpdated"],
    })


@router.post("/{user_id}/progress")
async def log_progress(
    user_id: str,
    entry: Dict[str, Any] = Body(...),
    store: DocumentStore = Depends(get_document_store),
):
    """Enregistre une entree de progression"""
    try:
        result = await metrics_service.log_progress_entry(store, user_id, entry)
    except ComputationError as e:
        logger.error(f"Erreur lors de l'enregistrement de la progression de {user_id}: {e}")
        return error_response("Progress entry could not be saved", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not result.is_valid:
        return error_response(result.errors)
    return success_response(result.data, status.HTTP_201_CREATED)
