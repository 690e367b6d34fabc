"""
Tests pour le moteur de classement (cycle complet sur un store en mémoire).
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.core.document_store import DocumentStoreError, InMemoryDocumentStore
from app.domain.entities import LeaderboardType, RankChange, Tier, UserMetrics, UserScoreRecord
from app.domain.exceptions import ComputationError
from app.domain.services.ranking_engine import (
    PREVIOUS_OVERALL_DOC_ID,
    RANKINGS_COLLECTION,
    STATISTICS_COLLECTION,
    TIER_DISTRIBUTION_DOC_ID,
    USER_SCORES_COLLECTION,
    month_period,
    progress_collection,
    ranking_engine,
    week_period,
)

# Mercredi
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


class FailingStore(InMemoryDocumentStore):
    """Store en mémoire dont certaines opérations échouent."""

    def __init__(self, fail_set=(), fail_scan=(), fail_query=()):
        super().__init__()
        self.fail_set = set(fail_set)
        self.fail_scan = set(fail_scan)
        self.fail_query = set(fail_query)

    async def set(self, collection, doc_id, value, merge=False):
        if (collection, doc_id) in self.fail_set:
            raise DocumentStoreError(f"set {collection}/{doc_id}")
        await super().set(collection, doc_id, value, merge)

    async def scan(self, collection):
        if collection in self.fail_scan:
            raise DocumentStoreError(f"scan {collection}")
        return await super().scan(collection)

    async def query(self, collection, *args, **kwargs):
        if collection in self.fail_query:
            raise DocumentStoreError(f"query {collection}")
        return await super().query(collection, *args, **kwargs)


def _seed_user(store, user_id, total_score, total_workouts=5, timestamp=NOW, **metrics):
    record = UserScoreRecord(
        user_id=user_id,
        total_score=total_score,
        strength_score=total_score,
        last_updated=NOW,
        metrics=UserMetrics(total_workouts=total_workouts, timestamp=timestamp, **metrics),
    )
    asyncio.run(store.set(USER_SCORES_COLLECTION, user_id, record.to_document()))


def _rankings(store, doc_id="overall"):
    document = asyncio.run(store.get(RANKINGS_COLLECTION, doc_id))
    return document["rankings"] if document else None


class TestPeriods:
    """Tests pour week_period et month_period."""

    def test_week_starts_monday(self):
        period = week_period(NOW)
        assert period.start == datetime(2024, 5, 13, tzinfo=timezone.utc)
        assert period.end == datetime(2024, 5, 19, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_sunday_belongs_to_previous_monday(self):
        sunday = datetime(2024, 5, 19, 22, 0, tzinfo=timezone.utc)
        assert week_period(sunday).start == datetime(2024, 5, 13, tzinfo=timezone.utc)

    def test_month(self):
        period = month_period(NOW)
        assert period.start == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert period.end == datetime(2024, 5, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_december(self):
        period = month_period(datetime(2024, 12, 31, 23, 0, tzinfo=timezone.utc))
        assert period.end == datetime(2024, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)


class TestUpdateRankings:
    """Tests pour RankingEngine.update_rankings."""

    def test_sorted_dense_ranks(self, store):
        _seed_user(store, "low", 20)
        _seed_user(store, "high", 90)
        _seed_user(store, "mid", 55)

        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))

        assert [e.user_id for e in entries] == ["high", "mid", "low"]
        assert [e.rank for e in entries] == [1, 2, 3]
        stored = _rankings(store)
        assert [r["userId"] for r in stored] == ["high", "mid", "low"]
        assert stored[0]["tier"] == Tier.DIAMOND.value
        assert stored[2]["tier"] == Tier.BRONZE.value

    def test_ties_keep_scan_order(self, store):
        _seed_user(store, "first", 50)
        _seed_user(store, "second", 50)

        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))
        assert [(e.user_id, e.rank) for e in entries] == [("first", 1), ("second", 2)]

    def test_inactive_users_excluded(self, store):
        _seed_user(store, "active", 10)
        _seed_user(store, "idle", 80, total_workouts=0)
        _seed_user(store, "lifter", 30, total_workouts=0, max_weight_lifted=100)

        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))
        assert [e.user_id for e in entries] == ["lifter", "active"]

    def test_progress_entry_makes_user_active(self, store):
        _seed_user(store, "tracker", 40, total_workouts=0)
        asyncio.run(store.set(progress_collection("tracker"), "p1", {"date": NOW.isoformat(), "squat": 100}))

        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))
        assert [e.user_id for e in entries] == ["tracker"]

    def test_rerun_is_stable(self, store):
        for index, score in enumerate([70, 50, 30]):
            _seed_user(store, f"u{index}", score)

        asyncio.run(ranking_engine.update_rankings(store, NOW))
        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))

        assert [e.rank for e in entries] == [1, 2, 3]
        assert all(e.rank_delta == 0 and e.rank_change == RankChange.STABLE for e in entries)

    def test_rank_deltas_after_score_change(self, store):
        _seed_user(store, "a", 80)
        _seed_user(store, "b", 60)
        _seed_user(store, "c", 40)
        asyncio.run(ranking_engine.update_rankings(store, NOW))

        _seed_user(store, "c", 95)
        _seed_user(store, "d", 10)
        entries = {e.user_id: e for e in asyncio.run(ranking_engine.update_rankings(store, NOW))}

        assert entries["c"].rank == 1
        assert entries["c"].rank_delta == 2
        assert entries["c"].rank_change == RankChange.UP
        assert entries["a"].rank_delta == -1
        assert entries["a"].rank_change == RankChange.DOWN
        assert entries["d"].rank_delta == 0
        assert entries["d"].rank_change == RankChange.STABLE

    def test_previous_snapshot_copied(self, store):
        _seed_user(store, "a", 80)
        asyncio.run(ranking_engine.update_rankings(store, NOW))
        first = asyncio.run(store.get(RANKINGS_COLLECTION, "overall"))

        _seed_user(store, "b", 90)
        asyncio.run(ranking_engine.update_rankings(store, NOW))

        assert asyncio.run(store.get(RANKINGS_COLLECTION, PREVIOUS_OVERALL_DOC_ID)) == first

    def test_weekly_and_monthly_filter_by_activity(self, store):
        _seed_user(store, "this_week", 50, timestamp=NOW - timedelta(days=1))
        _seed_user(store, "this_month", 70, timestamp=datetime(2024, 5, 2, tzinfo=timezone.utc))
        _seed_user(store, "last_month", 90, timestamp=datetime(2024, 4, 20, tzinfo=timezone.utc))

        asyncio.run(ranking_engine.update_rankings(store, NOW))

        assert [r["userId"] for r in _rankings(store)] == ["last_month", "this_month", "this_week"]
        weekly = _rankings(store, LeaderboardType.WEEKLY.value)
        monthly = _rankings(store, LeaderboardType.MONTHLY.value)
        assert [r["userId"] for r in weekly] == ["this_week"]
        assert [r["userId"] for r in monthly] == ["this_month", "this_week"]
        # Rangs du classement global, pas de re-classement par période
        assert [r["rank"] for r in monthly] == [2, 3]

    def test_weekly_snapshot_carries_period(self, store):
        _seed_user(store, "a", 50)
        asyncio.run(ranking_engine.update_rankings(store, NOW))

        weekly = asyncio.run(store.get(RANKINGS_COLLECTION, "weekly"))
        assert weekly["totalUsers"] == 1
        assert weekly["period"]["start"].startswith("2024-05-13T00:00:00")

    def test_last_workout_date_counts_as_activity(self, store):
        _seed_user(store, "a", 50, timestamp=None, last_workout_date=NOW - timedelta(hours=2))
        asyncio.run(ranking_engine.update_rankings(store, NOW))
        assert [r["userId"] for r in _rankings(store, "weekly")] == ["a"]

    def test_tier_statistics(self, store):
        for index in range(20):
            _seed_user(store, f"u{index:02d}", 100 - index)

        asyncio.run(ranking_engine.update_rankings(store, NOW))

        stats = asyncio.run(store.get(STATISTICS_COLLECTION, TIER_DISTRIBUTION_DOC_ID))
        assert stats["totalUsers"] == 20
        assert sum(stats["tierStats"].values()) == 20
        assert stats["tierStats"]["Diamond"] == 2
        assert stats["tierStats"]["Bronze"] == 9

    def test_empty_population(self, store):
        assert asyncio.run(ranking_engine.update_rankings(store, NOW)) == []
        assert _rankings(store) == []


class TestUpdateRankingsFailures:
    """Tests des échecs partiels et fatals du cycle."""

    def test_population_read_failure_is_fatal(self):
        store = FailingStore(fail_scan={USER_SCORES_COLLECTION})
        with pytest.raises(ComputationError):
            asyncio.run(ranking_engine.update_rankings(store, NOW))

    def test_overall_write_failure_is_fatal(self):
        store = FailingStore(fail_set={(RANKINGS_COLLECTION, "overall")})
        _seed_user(store, "a", 50)
        with pytest.raises(ComputationError):
            asyncio.run(ranking_engine.update_rankings(store, NOW))
        assert _rankings(store, "weekly") is None

    def test_weekly_write_failure_is_logged_only(self):
        store = FailingStore(fail_set={(RANKINGS_COLLECTION, "weekly")})
        _seed_user(store, "a", 50)

        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))

        assert len(entries) == 1
        assert _rankings(store, "weekly") is None
        assert [r["userId"] for r in _rankings(store, "monthly")] == ["a"]

    def test_user_with_unreadable_progress_is_skipped(self):
        store = FailingStore(fail_query={progress_collection("broken")})
        _seed_user(store, "ok", 50)
        _seed_user(store, "broken", 90)

        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))
        assert [e.user_id for e in entries] == ["ok"]

    def test_previous_copy_failure_gives_zero_deltas(self):
        store = FailingStore(fail_set={(RANKINGS_COLLECTION, PREVIOUS_OVERALL_DOC_ID)})
        _seed_user(store, "a", 50)
        _seed_user(store, "b", 40)
        asyncio.run(ranking_engine.update_rankings(store, NOW))

        _seed_user(store, "b", 60)
        entries = asyncio.run(ranking_engine.update_rankings(store, NOW))

        assert [e.user_id for e in entries] == ["b", "a"]
        assert all(e.rank_delta == 0 and e.rank_change == RankChange.STABLE for e in entries)
