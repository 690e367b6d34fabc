"""
Service de lecture des leaderboards - Domain Layer
Lecture paginée et enrichie (profil utilisateur) des snapshots de classement.

Les lectures ne lèvent pas : un snapshot absent ou illisible donne une liste
vide (ou None pour le détail d'un utilisateur), l'erreur est journalisée.
"""
import logging
from typing import Any, Dict, List, Optional

from app.core.document_store import DocumentStore, DocumentStoreError
from app.domain.entities import (
    SCORE_CATEGORIES, LeaderboardEntryView, LeaderboardSnapshot, LeaderboardType, RankingEntry,
    UserRankingDetails, UserScoreRecord,
)
from app.domain.services.ranking_engine import (
    PREVIOUS_OVERALL_DOC_ID, RANKINGS_COLLECTION, STATISTICS_COLLECTION, TIER_DISTRIBUTION_DOC_ID,
    USER_SCORES_COLLECTION,
)
from app.domain.services.tier_classifier import calculate_percentile

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
ANONYMOUS_DISPLAY_NAME = "Anonymous"
DEFAULT_TOP_PERFORMERS_LIMIT = 10


def _first_string(profile: Dict[str, Any], *keys: str) -> Optional[str]:
    """Première valeur non vide de type str parmi les clés données"""
    for key in keys:
        value = profile.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class LeaderboardReader:
    """Lecture des classements calculés par le RankingEngine"""

    async def _get_snapshot(self, store: DocumentStore, doc_id: str) -> Optional[LeaderboardSnapshot]:
        document = await store.get(RANKINGS_COLLECTION, doc_id)
        if document is None:
            return None
        return LeaderboardSnapshot.model_validate(document)

    async def get_leaderboard(
        self,
        store: DocumentStore,
        leaderboard_type: LeaderboardType = LeaderboardType.OVERALL,
        limit: int = 50,
        offset: int = 0,
    ) -> List[LeaderboardEntryView]:
        """Page d'un leaderboard, dans l'ordre stocké (aucun re-tri)"""
        try:
            snapshot = await self._get_snapshot(store, leaderboard_type.value)
        except (DocumentStoreError, ValueError) as exc:
            logger.error(f"Erreur lors de la lecture du leaderboard {leaderboard_type.value}: {exc}")
            return []
        if snapshot is None:
            return []

        page = snapshot.rankings[offset:offset + limit]
        return [await self._enrich_entry(store, entry) for entry in page]

    async def _enrich_entry(self, store: DocumentStore, entry: RankingEntry) -> LeaderboardEntryView:
        """Ajoute nom et avatar du profil ; en cas d'échec l'entrée garde les valeurs par défaut"""
        try:
            display_name, photo_url = await self._get_profile(store, entry.user_id)
            return LeaderboardEntryView(**entry.model_dump(), display_name=display_name, photo_url=photo_url)
        except (DocumentStoreError, ValueError, TypeError, AttributeError) as exc:
            logger.warning(f"⚠️  Enrichissement impossible pour {entry.user_id}: {exc}")
            return LeaderboardEntryView(**entry.model_dump())

    async def get_user_ranking_details(
        self,
        store: DocumentStore,
        user_id: str,
        leaderboard_type: LeaderboardType = LeaderboardType.OVERALL,
    ) -> Optional[UserRankingDetails]:
        """Position d'un utilisateur dans un leaderboard.

        None si l'utilisateur n'apparaît pas dans la génération courante du
        leaderboard (ce qui ne signifie pas qu'il n'existe pas).
        """
        try:
            snapshot = await self._get_snapshot(store, leaderboard_type.value)
        except (DocumentStoreError, ValueError) as exc:
            logger.error(f"Erreur lors de la lecture du classement de {user_id}: {exc}")
            return None
        if snapshot is None:
            return None

        entry = snapshot.find(user_id)
        if entry is None:
            return None

        total_users = len(snapshot.rankings)
        return UserRankingDetails(
            **entry.model_dump(),
            total_users=total_users,
            percentile=calculate_percentile(entry.rank, total_users),
            previous_rank=await self._get_previous_rank(store, user_id),
        )

    async def _get_previous_rank(self, store: DocumentStore, user_id: str) -> Optional[int]:
        """Rang au cycle précédent ; les vues hebdo/mensuelle portent le rang global"""
        try:
            previous = await self._get_snapshot(store, PREVIOUS_OVERALL_DOC_ID)
        except (DocumentStoreError, ValueError) as exc:
            logger.warning(f"⚠️  Classement précédent indisponible: {exc}")
            return None
        if previous is None:
            return None
        previous_entry = previous.find(user_id)
        return previous_entry.rank if previous_entry else None

    async def get_ranking_statistics(self, store: DocumentStore) -> Dict[str, Any]:
        """Répartition par palier et volumétrie de chaque leaderboard"""
        stats: Dict[str, Any] = {}
        try:
            tier_distribution = await store.get(STATISTICS_COLLECTION, TIER_DISTRIBUTION_DOC_ID)
            if tier_distribution is not None:
                stats["tierDistribution"] = tier_distribution

            for leaderboard_type in LeaderboardType:
                document = await store.get(RANKINGS_COLLECTION, leaderboard_type.value)
                if document is None:
                    continue
                summary = {
                    "totalUsers": document.get("totalUsers", 0),
                    "lastUpdated": document.get("lastUpdated"),
                }
                if leaderboard_type != LeaderboardType.OVERALL:
                    summary["period"] = document.get("period")
                stats[leaderboard_type.value] = summary
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la lecture des statistiques de classement: {exc}")
            return {}
        return stats

    async def get_top_performers_by_category(
        self,
        store: DocumentStore,
        category: str,
        limit: int = DEFAULT_TOP_PERFORMERS_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Meilleurs utilisateurs sur une catégorie de score (strength, stamina, ...)"""
        if category not in SCORE_CATEGORIES:
            raise ValueError(f"Catégorie inconnue: {category}")

        try:
            documents = await store.scan(USER_SCORES_COLLECTION)
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la lecture des meilleurs en {category}: {exc}")
            return []

        records = []
        for doc_id, document in documents.items():
            document.setdefault("userId", doc_id)
            try:
                records.append(UserScoreRecord.model_validate(document))
            except ValueError as exc:
                logger.warning(f"⚠️  Score illisible ignoré pour {doc_id}: {exc}")

        records.sort(key=lambda record: getattr(record, f"{category}_score"), reverse=True)

        performers = []
        for record in records[:limit]:
            try:
                display_name, photo_url = await self._get_profile(store, record.user_id)
            except (DocumentStoreError, ValueError, TypeError, AttributeError) as exc:
                logger.warning(f"⚠️  Enrichissement impossible pour {record.user_id}: {exc}")
                display_name, photo_url = ANONYMOUS_DISPLAY_NAME, None
            performers.append({
                "userId": record.user_id,
                "score": getattr(record, f"{category}_score"),
                "totalScore": record.total_score,
                "displayName": display_name,
                "photoURL": photo_url,
            })
        return performers

    async def _get_profile(self, store: DocumentStore, user_id: str):
        """Nom et avatar du profil ; valeurs absentes ou d'un type inattendu remplacées par les défauts"""
        try:
            profile = await store.get(USERS_COLLECTION, user_id)
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la lecture du profil de {user_id}: {exc}")
            profile = None
        if not isinstance(profile, dict):
            profile = {}
        display_name = _first_string(profile, "displayName", "name") or ANONYMOUS_DISPLAY_NAME
        return display_name, _first_string(profile, "photoURL", "avatar")


leaderboard_reader = LeaderboardReader()
