"""
Routes d'administration du classement : recalcul complet et pondérations.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status

from app.core.document_store import DocumentStore, get_document_store
from app.domain.exceptions import ComputationError
from app.domain.services.metrics_service import metrics_service
from app.api.routers._shared import error_response, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/rankings")


@router.post("/recalculate")
async def recalculate_rankings(store: DocumentStore = Depends(get_document_store)):
    """Recalcule tous les scores puis tous les leaderboards"""
    try:
        processed = await metrics_service.recalculate_all_scores(store)
    except ComputationError as e:
        logger.error(f"Erreur lors du recalcul des classements: {e}")
        return error_response("Ranking recalculation failed", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return success_response({"processedUsers": processed})


@router.put("/weights")
async def update_weights(
    payload: Dict[str, Any] = Body(...),
    store: DocumentStore = Depends(get_document_store),
):
    """Met à jour les pondérations du score total.

    Corps : {"weights": {...}, "updatedBy": "..."} ou directement les quatre pondérations.
    """
    weights = payload.get("weights", payload)
    updated_by = payload.get("updatedBy") or "admin"
    try:
        result = await metrics_service.update_ranking_weights(store, weights, updated_by=str(updated_by))
    except ComputationError as e:
        logger.error(f"Erreur lors de la mise à jour des pondérations: {e}")
        return error_response("Weights could not be saved", status.HTTP_500_INTERNAL_SERVER_ERROR)

    if not result.is_valid:
        return error_response(result.errors)
    return success_response({"weights": result.data, "updatedBy": updated_by})
