"""
Utilitaires partages entre les routers API.
Toutes les reponses sont enveloppees : {"success": true, "data": ...}
ou {"success": false, "error": ...}.
"""
import logging
from typing import Any, List, Optional, Union

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.domain.entities import LeaderboardType

logger = logging.getLogger(__name__)


def success_response(data: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Enveloppe de succes (les modeles pydantic sont serialises avec leurs alias camelCase)"""
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "data": jsonable_encoder(data)},
    )


def error_response(
    error: Union[str, List[str]],
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> JSONResponse:
    """Enveloppe d'erreur"""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
    )


def parse_leaderboard_type(raw_type: Optional[str]) -> LeaderboardType:
    """Convertit le parametre ?type= (overall par defaut) ; ValueError si inconnu"""
    if not raw_type:
        return LeaderboardType.OVERALL
    try:
        return LeaderboardType(raw_type.lower())
    except ValueError:
        allowed = ", ".join(t.value for t in LeaderboardType)
        raise ValueError(f"Invalid leaderboard type: {raw_type}. Must be one of: {allowed}")
