"""
Document store de BioLift.

Collection de documents JSON adressés par (collection, doc_id) :
  - get(collection, doc_id)                      → document ou None
  - set(collection, doc_id, value, merge=False)  → écrase ou fusionne
  - query(collection, filters, order_by, ...)    → séquence ordonnée
  - scan(collection)                             → {doc_id: document}
  - delete(collection, doc_id)

Deux implémentations :
  - InMemoryDocumentStore : développement et tests
  - RedisDocumentStore    : production, une hash Redis par collection
    (clé "<prefix>:<collection>", champ = doc_id, valeur = JSON)

Les documents sont des dicts JSON-compatibles (les services sérialisent
leurs modèles avec model_dump(mode="json")). Chaque opération est atomique
par document, il n'y a aucune transaction entre documents.
"""
import copy
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional, Sequence, Tuple

import redis

from app.core.settings import get_settings

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Filter = Tuple[str, str, Any]

_OPERATORS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "in": lambda a, b: a in b,
}


class DocumentStoreError(Exception):
    """Erreur d'entrée/sortie du document store."""


def _comparable(value: Any) -> Any:
    """Convertit les dates ISO en datetime pour comparer/ordonner correctement."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


def _deep_merge(base: Document, updates: Document) -> Document:
    """Fusionne récursivement updates dans une copie de base."""
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_query(
    documents: List[Document],
    filters: Sequence[Filter] = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> List[Document]:
    """Filtre, trie et tronque une liste de documents (sémantique Firestore simplifiée).

    Les documents sans le champ filtré ou trié sont exclus, comme dans Firestore.
    """
    results = documents
    for field, op, expected in filters:
        if op not in _OPERATORS:
            raise ValueError(f"Opérateur de requête non supporté: {op}")
        compare = _OPERATORS[op]
        if op == "in":
            results = [d for d in results if field in d and compare(d[field], expected)]
        else:
            target = _comparable(expected)
            results = [
                d for d in results
                if field in d and d[field] is not None and compare(_comparable(d[field]), target)
            ]

    if order_by:
        results = [d for d in results if d.get(order_by) is not None]
        results = sorted(results, key=lambda d: _comparable(d[order_by]), reverse=descending)

    if limit is not None:
        results = results[:limit]
    return results


class DocumentStore(ABC):
    """Interface asynchrone du document store."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def set(self, collection: str, doc_id: str, value: Document, merge: bool = False) -> None:
        ...

    @abstractmethod
    async def scan(self, collection: str) -> Dict[str, Document]:
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Requête simple : filtres, tri sur un champ, limite."""
        documents = list((await self.scan(collection)).values())
        return apply_query(documents, filters, order_by, descending, limit)

    async def ping(self) -> bool:
        return True


class InMemoryDocumentStore(DocumentStore):
    """Document store en mémoire (copie profonde à chaque lecture/écriture)."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        document = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, collection: str, doc_id: str, value: Document, merge: bool = False) -> None:
        docs = self._collections.setdefault(collection, {})
        if merge and doc_id in docs:
            docs[doc_id] = _deep_merge(docs[doc_id], copy.deepcopy(value))
        else:
            docs[doc_id] = copy.deepcopy(value)

    async def scan(self, collection: str) -> Dict[str, Document]:
        return copy.deepcopy(self._collections.get(collection, {}))

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)


class RedisDocumentStore(DocumentStore):
    """Document store adossé à Redis : une hash par collection, valeurs JSON.

    Le merge est un read-modify-write non atomique (dernier écrivain gagnant).
    """

    def __init__(self, redis_client=None, prefix: str = "biolift"):
        self._redis = redis_client
        self.prefix = prefix

    def _get_redis(self):
        """Retourne le client Redis (lazy init)."""
        if self._redis is None:
            from app.core.redis import get_redis_client
            self._redis = get_redis_client()
        return self._redis

    def _key(self, collection: str) -> str:
        return f"{self.prefix}:{collection}"

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        try:
            raw = await self._get_redis().hget(self._key(collection), doc_id)
        except redis.RedisError as exc:
            raise DocumentStoreError(f"Lecture {collection}/{doc_id} impossible: {exc}") from exc
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, collection: str, doc_id: str, value: Document, merge: bool = False) -> None:
        if merge:
            existing = await self.get(collection, doc_id)
            if existing is not None:
                value = _deep_merge(existing, value)
        try:
            await self._get_redis().hset(self._key(collection), doc_id, json.dumps(value))
        except redis.RedisError as exc:
            raise DocumentStoreError(f"Écriture {collection}/{doc_id} impossible: {exc}") from exc

    async def scan(self, collection: str) -> Dict[str, Document]:
        try:
            raw_docs = await self._get_redis().hgetall(self._key(collection))
        except redis.RedisError as exc:
            raise DocumentStoreError(f"Scan de {collection} impossible: {exc}") from exc
        return {doc_id: json.loads(raw) for doc_id, raw in raw_docs.items()}

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._get_redis().hdel(self._key(collection), doc_id)
        except redis.RedisError as exc:
            raise DocumentStoreError(f"Suppression {collection}/{doc_id} impossible: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._get_redis().ping())
        except redis.RedisError as exc:
            logger.warning(f"Redis indisponible (ping): {exc}")
            return False


@lru_cache()
def _build_document_store() -> DocumentStore:
    settings = get_settings()
    if settings.DOCUMENT_STORE_BACKEND == "memory":
        logger.info("Document store en mémoire (données non persistées)")
        return InMemoryDocumentStore()
    if settings.DOCUMENT_STORE_BACKEND == "redis":
        return RedisDocumentStore(prefix=settings.DOCUMENT_STORE_PREFIX)
    raise ValueError(f"DOCUMENT_STORE_BACKEND inconnu: {settings.DOCUMENT_STORE_BACKEND}")


def get_document_store() -> DocumentStore:
    """Document store partagé pour l'injection de dépendance (équivalent de get_session)."""
    return _build_document_store()
