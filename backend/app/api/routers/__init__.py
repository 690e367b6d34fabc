"""
Routers API pour BioLift.

Ce module regroupe tous les sous-routers et expose un router principal
a inclure dans l'application FastAPI.
"""
from fastapi import APIRouter

from app.api.routers.ranking_router import router as ranking_router
from app.api.routers.metrics_router import router as metrics_router
from app.api.routers.admin_router import router as admin_router

router = APIRouter()

router.include_router(ranking_router)
router.include_router(metrics_router)
router.include_router(admin_router)

__all__ = ["router"]
