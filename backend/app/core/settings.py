"""
Configuration centralisée pour l'API de classement BioLift
Utilise pydantic-settings pour la gestion des variables d'environnement
"""
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Configuration de l'application"""

    # Stockage documentaire
    DOCUMENT_STORE_BACKEND: str = Field(
        default="redis",
        description="Backend du document store : 'redis' (production) ou 'memory' (dev/tests)"
    )
    DOCUMENT_STORE_PREFIX: str = Field(
        default="biolift",
        description="Préfixe des clés Redis (une hash par collection)"
    )

    # Redis
    REDIS_URL: str = Field(
        default="redis://localhost:6379",
        description="URL de connexion Redis (requis en production pour le document store)"
    )

    # Classement
    RANKING_HISTORY_LIMIT: int = Field(
        default=10,
        description="Nombre maximum de snapshots historiques lus pour le score d'amélioration"
    )
    RECOMPUTE_ON_SUBMIT: bool = Field(
        default=True,
        description="Recalcule le classement complet après chaque soumission de métriques"
    )

    # URLs de l'application
    FRONTEND_URL: str = Field(
        default="http://localhost:3000",
        description="URL du frontend (utilisée pour CORS)"
    )

    # CORS
    ALLOWED_ORIGINS: List[str] = Field(
        default=[],
        description="Origines autorisées pour CORS (configuré automatiquement selon ENVIRONMENT si vide)"
    )

    # Monitoring (Sentry)
    SENTRY_DSN: str = Field(
        default="",
        description="DSN Sentry pour le error tracking (vide = Sentry desactive)"
    )

    # Application
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(
        default="",
        description="Niveau de logging (auto-configuré selon ENVIRONMENT si vide)"
    )

    @model_validator(mode="after")
    def _configure_environment(self) -> "Settings":
        """Configure DEBUG et LOG_LEVEL selon ENVIRONMENT."""
        is_prod = self.ENVIRONMENT == "production"
        # En production, forcer DEBUG=False
        if is_prod:
            self.DEBUG = False
        # LOG_LEVEL par défaut selon ENVIRONMENT
        if not self.LOG_LEVEL:
            self.LOG_LEVEL = "WARNING" if is_prod else "INFO"
        self.LOG_LEVEL = self.LOG_LEVEL.upper()
        return self

    @model_validator(mode="after")
    def _set_default_origins(self) -> "Settings":
        """Définit les origines CORS par défaut selon ENVIRONMENT si non configurées."""
        if not self.ALLOWED_ORIGINS:
            if self.ENVIRONMENT == "production":
                self.ALLOWED_ORIGINS = [
                    "https://biolift-c37b6.web.app",
                    "https://biolift-c37b6.firebaseapp.com",
                ]
            else:
                self.ALLOWED_ORIGINS = [
                    "http://localhost:3000",
                    "http://127.0.0.1:3000",
                ]
        # Toujours inclure FRONTEND_URL dans les origines autorisees
        frontend = self.FRONTEND_URL.rstrip("/")
        if frontend and frontend not in self.ALLOWED_ORIGINS:
            self.ALLOWED_ORIGINS.append(frontend)
        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Récupère la configuration (singleton via lru_cache)"""
    return Settings()
