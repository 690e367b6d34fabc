"""
Client Redis pour BioLift.
Fournit la connexion asynchrone partagée du document store.
"""
from functools import lru_cache

import redis.asyncio as aioredis

from app.core.settings import get_settings


@lru_cache()
def get_redis_client() -> aioredis.Redis:
    """Retourne un client Redis asynchrone (singleton via lru_cache)."""
    settings = get_settings()
    return aioredis.Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
