"""
Routes de lecture des classements : leaderboard, position d'un utilisateur,
statistiques, meilleurs par categorie, insights.
Routes = validation + delegation au service. Pas de logique metier ici.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status

from app.core.document_store import DocumentStore, get_document_store
from app.domain.services.insights_service import get_user_insights
from app.domain.services.leaderboard_reader import DEFAULT_TOP_PERFORMERS_LIMIT, leaderboard_reader
from app.domain.services.metrics_validator import validate_pagination, validate_user_id
from app.api.routers._shared import error_response, parse_leaderboard_type, success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rankings")


@router.get("/leaderboard")
async def get_leaderboard(
    type: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    store: DocumentStore = Depends(get_document_store),
):
    """Page d'un leaderboard (overall, weekly ou monthly)"""
    try:
        leaderboard_type = parse_leaderboard_type(type)
    except ValueError as e:
        return error_response(str(e))

    pagination = validate_pagination({"limit": limit, "offset": offset})
    if not pagination.is_valid:
        return error_response(pagination.errors)

    entries = await leaderboard_reader.get_leaderboard(
        store, leaderboard_type, pagination.data["limit"], pagination.data["offset"],
    )
    return success_response({
        "type": leaderboard_type.value,
        "rankings": entries,
        "limit": pagination.data["limit"],
        "offset": pagination.data["offset"],
    })


@router.get("/statistics")
async def get_ranking_statistics(store: DocumentStore = Depends(get_document_store)):
    """Repartition par palier et volumetrie des leaderboards"""
    return success_response(await leaderboard_reader.get_ranking_statistics(store))


@router.get("/top/{category}")
async def get_top_performers(
    category: str,
    limit: Optional[str] = None,
    store: DocumentStore = Depends(get_document_store),
):
    """Meilleurs utilisateurs d'une categorie (strength, stamina, consistency, improvement)"""
    pagination = validate_pagination({"limit": limit or DEFAULT_TOP_PERFORMERS_LIMIT})
    if not pagination.is_valid:
        return error_response(pagination.errors)

    try:
        performers = await leaderboard_reader.get_top_performers_by_category(
            store, category, pagination.data["limit"],
        )
    except ValueError as e:
        return error_response(str(e))
    return success_response(performers)


@router.get("/users/{user_id}")
async def get_user_ranking(
    user_id: str,
    type: Optional[str] = None,
    store: DocumentStore = Depends(get_document_store),
):
    """Position d'un utilisateur dans un leaderboard"""
    user_check = validate_user_id(user_id)
    if not user_check.is_valid:
        return error_response(user_check.errors)

    try:
        leaderboard_type = parse_leaderboard_type(type)
    except ValueError as e:
        return error_response(str(e))

    details = await leaderboard_reader.get_user_ranking_details(store, user_check.data, leaderboard_type)
    if details is None:
        return error_response("User ranking not found", status.HTTP_404_NOT_FOUND)
    return success_response(details)


@router.get("/users/{user_id}/insights")
async def get_insights(user_id: str, store: DocumentStore = Depends(get_document_store)):
    """Constats et recommandations personnalises"""
    user_check = validate_user_id(user_id)
    if not user_check.is_valid:
        return error_response(user_check.errors)
    return success_response(await get_user_insights(store, user_check.data))
