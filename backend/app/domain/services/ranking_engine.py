"""
Moteur de classement - Domain Layer

Un cycle de recalcul complet :
  1. Collecting  : lecture de tous les scores (userScores) et des entrées de progression
  2. Scoring     : scores pré-calculés lus dans chaque document de score
  3. Sorting     : tri stable par score total décroissant
  4. Assigning   : rang = position + 1 (dense), palier par percentile
  5. Diffing     : copie overall -> overall_previous, delta de rang par utilisateur
  6. Persisting  : overall (fatal si échec), puis weekly/monthly et statistiques (non fatals)

Le cycle n'est pas transactionnel : la copie du snapshot précédent et
l'écrasement d'overall sont deux écritures indépendantes. Deux cycles
concurrents peuvent produire un delta de rang erroné pendant un cycle
(pas de perte de données). Limitation acceptée, aucun verrou n'est posé.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from app.core.document_store import DocumentStore, DocumentStoreError
from app.domain.entities import (
    LeaderboardPeriod, LeaderboardSnapshot, LeaderboardType, ProgressEntry, RankChange,
    RankingEntry, Tier, TierDistribution, UserScoreRecord, utc_now,
)
from app.domain.exceptions import ComputationError
from app.domain.services.tier_classifier import classify_tier

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------
USER_SCORES_COLLECTION = "userScores"
RANKINGS_COLLECTION = "rankings"
STATISTICS_COLLECTION = "statistics"
TIER_DISTRIBUTION_DOC_ID = "tierDistribution"
PREVIOUS_OVERALL_DOC_ID = f"{LeaderboardType.OVERALL.value}_previous"


def progress_collection(user_id: str) -> str:
    return f"progressEntries/{user_id}/entries"


# ---------------------------------------------------------------------------
# Périodes (UTC)
# ---------------------------------------------------------------------------

def week_period(now: datetime) -> LeaderboardPeriod:
    """Semaine courante, du lundi 00:00 au dimanche 23:59:59.999999"""
    now = now.astimezone(timezone.utc)
    start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return LeaderboardPeriod(start=start, end=end)


def month_period(now: datetime) -> LeaderboardPeriod:
    """Mois calendaire courant"""
    now = now.astimezone(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return LeaderboardPeriod(start=start, end=next_month - timedelta(microseconds=1))


@dataclass
class RankingCandidate:
    """Utilisateur retenu pour un cycle de classement"""
    record: UserScoreRecord
    activity_dates: List[datetime] = field(default_factory=list)

    def active_during(self, period: LeaderboardPeriod) -> bool:
        return any(period.contains(moment) for moment in self.activity_dates)


def is_active(record: UserScoreRecord, progress_entries: List[ProgressEntry]) -> bool:
    """Un utilisateur est classé s'il a au moins une séance, une entrée de progression ou une charge"""
    metrics = record.metrics
    return (
        (metrics.total_workouts or 0) > 0
        or len(progress_entries) > 0
        or (metrics.max_weight_lifted or 0) > 0
    )


def rank_candidates(candidates: List[RankingCandidate]) -> List[RankingEntry]:
    """Trie par score total décroissant et assigne rang et palier.

    Le tri est stable : à score égal, l'ordre de lecture des scores est conservé.
    """
    ordered = sorted(candidates, key=lambda c: c.record.total_score, reverse=True)
    total_users = len(ordered)

    entries = []
    for index, candidate in enumerate(ordered):
        record = candidate.record
        rank = index + 1
        entries.append(RankingEntry(
            user_id=record.user_id,
            total_score=record.total_score,
            strength_score=record.strength_score,
            stamina_score=record.stamina_score,
            consistency_score=record.consistency_score,
            improvement_score=record.improvement_score,
            rank=rank,
            tier=classify_tier(rank, total_users),
            last_updated=record.last_updated,
        ))
    return entries


def apply_rank_deltas(entries: List[RankingEntry], previous: Optional[LeaderboardSnapshot]) -> None:
    """Calcule delta et sens de variation de chaque entrée par rapport au snapshot précédent"""
    for entry in entries:
        previous_entry = previous.find(entry.user_id) if previous else None
        if previous_entry is None:
            entry.rank_delta = 0
            entry.rank_change = RankChange.STABLE
            continue
        entry.rank_delta = previous_entry.rank - entry.rank
        entry.rank_change = RankChange.from_delta(entry.rank_delta)


class RankingEngine:
    """Recalcul complet des leaderboards overall / weekly / monthly"""

    async def update_rankings(self, store: DocumentStore, now: Optional[datetime] = None) -> List[RankingEntry]:
        """Exécute un cycle complet de classement.

        Raises:
            ComputationError: lecture de la population ou écriture du classement overall impossible
        """
        now = now or utc_now()
        logger.info("🔄 Démarrage du recalcul des classements...")

        candidates = await self._collect_candidates(store)
        entries = rank_candidates(candidates)

        previous = await self._store_previous_rankings(store)
        apply_rank_deltas(entries, previous)

        await self._persist_overall(store, entries, now)

        activity_by_user = {c.record.user_id: c for c in candidates}
        await self._persist_period(store, LeaderboardType.WEEKLY, week_period(now), entries, activity_by_user, now)
        await self._persist_period(store, LeaderboardType.MONTHLY, month_period(now), entries, activity_by_user, now)

        await self._update_tier_statistics(store, entries, now)

        logger.info(f"✅ Classements mis à jour pour {len(entries)} utilisateurs")
        return entries

    # ------------------------------------------------------------------
    # Collecting
    # ------------------------------------------------------------------

    async def _collect_candidates(self, store: DocumentStore) -> List[RankingCandidate]:
        try:
            documents = await store.scan(USER_SCORES_COLLECTION)
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la lecture des scores utilisateurs: {exc}")
            raise ComputationError(f"Lecture des scores impossible: {exc}") from exc

        candidates = []
        for doc_id, document in documents.items():
            try:
                document.setdefault("userId", doc_id)
                record = UserScoreRecord.model_validate(document)
                progress_entries = await self._get_progress_entries(store, record.user_id)
            except (DocumentStoreError, ValueError) as exc:
                logger.error(f"❌ Utilisateur {doc_id} ignoré pour ce cycle: {exc}")
                continue

            if not is_active(record, progress_entries):
                logger.debug(f"⏭️ Utilisateur {record.user_id} ignoré (aucune activité)")
                continue

            activity_dates = [entry.date for entry in progress_entries] + record.metrics.activity_dates()
            candidates.append(RankingCandidate(record=record, activity_dates=activity_dates))

        logger.info(f"📊 {len(candidates)} utilisateurs actifs sur {len(documents)} scores")
        return candidates

    async def _get_progress_entries(self, store: DocumentStore, user_id: str) -> List[ProgressEntry]:
        documents = await store.query(progress_collection(user_id), order_by="date", descending=True)
        return [ProgressEntry.model_validate(doc) for doc in documents]

    # ------------------------------------------------------------------
    # Diffing
    # ------------------------------------------------------------------

    async def _store_previous_rankings(self, store: DocumentStore) -> Optional[LeaderboardSnapshot]:
        """Copie le classement overall courant vers overall_previous et le retourne.

        Un échec est journalisé : les deltas du cycle valent alors 0.
        """
        try:
            document = await store.get(RANKINGS_COLLECTION, LeaderboardType.OVERALL.value)
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la lecture du classement précédent: {exc}")
            return None
        if document is None:
            return None

        try:
            await store.set(RANKINGS_COLLECTION, PREVIOUS_OVERALL_DOC_ID, document)
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la sauvegarde du classement précédent: {exc}")
            return None

        try:
            return LeaderboardSnapshot.model_validate(document)
        except ValueError as exc:
            logger.error(f"Classement précédent illisible: {exc}")
            return None

    # ------------------------------------------------------------------
    # Persisting
    # ------------------------------------------------------------------

    async def _persist_overall(self, store: DocumentStore, entries: List[RankingEntry], now: datetime) -> None:
        snapshot = LeaderboardSnapshot(
            type=LeaderboardType.OVERALL,
            rankings=entries,
            total_users=len(entries),
            last_updated=now,
        )
        try:
            await store.set(RANKINGS_COLLECTION, LeaderboardType.OVERALL.value, snapshot.to_document())
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de l'écriture du classement overall: {exc}")
            raise ComputationError(f"Écriture du classement overall impossible: {exc}") from exc

    async def _persist_period(
        self,
        store: DocumentStore,
        leaderboard_type: LeaderboardType,
        period: LeaderboardPeriod,
        entries: List[RankingEntry],
        activity_by_user: Dict[str, RankingCandidate],
        now: datetime,
    ) -> None:
        """Filtre le classement global sur la période, sans recalculer les rangs"""
        period_entries = [
            entry for entry in entries
            if activity_by_user[entry.user_id].active_during(period)
        ]
        snapshot = LeaderboardSnapshot(
            type=leaderboard_type,
            rankings=period_entries,
            total_users=len(period_entries),
            last_updated=now,
            period=period,
        )
        try:
            await store.set(RANKINGS_COLLECTION, leaderboard_type.value, snapshot.to_document())
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de l'écriture du classement {leaderboard_type.value}: {exc}")

    async def _update_tier_statistics(self, store: DocumentStore, entries: List[RankingEntry], now: datetime) -> None:
        tier_stats = {tier.value: 0 for tier in Tier}
        for entry in entries:
            tier_stats[entry.tier.value] += 1

        distribution = TierDistribution(tier_stats=tier_stats, total_users=len(entries), last_updated=now)
        try:
            await store.set(STATISTICS_COLLECTION, TIER_DISTRIBUTION_DOC_ID, distribution.to_document())
        except DocumentStoreError as exc:
            logger.error(f"Erreur lors de la mise à jour des statistiques de paliers: {exc}")


ranking_engine = RankingEngine()
