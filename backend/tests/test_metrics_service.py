"""
Tests pour le pipeline de soumission des métriques.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.document_store import DocumentStoreError
from app.domain.entities import DEFAULT_WEIGHTS
from app.domain.exceptions import ComputationError
from app.domain.services.metrics_service import USER_METRICS_COLLECTION, metrics_service
from app.domain.services.ranking_engine import RANKINGS_COLLECTION, USER_SCORES_COLLECTION, progress_collection
from app.domain.services.score_calculator import (
    SCORE_BREAKDOWNS_COLLECTION, SYSTEM_CONFIG_COLLECTION, WEIGHTS_DOC_ID, history_collection,
    score_calculator_service,
)

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)

RAW_METRICS = {
    "maxWeightLifted": 100,
    "bodyWeight": 100,
    "oneRepMax": 100,
    "totalWeightLifted": 1000,
    "totalWorkouts": 12,
    "lastWorkoutDate": (NOW - timedelta(days=1)).isoformat(),
}


def _history(store, user_id):
    return asyncio.run(store.scan(history_collection(user_id)))


class TestSubmitMetrics:
    """Tests pour MetricsService.submit_metrics."""

    def test_invalid_user_id(self, store):
        result = asyncio.run(metrics_service.submit_metrics(store, "bad id", RAW_METRICS, NOW))
        assert result["valid"] is False
        assert result["errors"] == ["User ID can only contain letters, numbers, underscores, and hyphens"]

    def test_invalid_metrics_write_nothing(self, store):
        result = asyncio.run(metrics_service.submit_metrics(store, "u1", {"bodyWeight": 5}, NOW))

        assert result["valid"] is False
        assert "bodyWeight must be a positive number between 20 and 500 kg" in result["errors"]
        assert asyncio.run(store.get(USER_SCORES_COLLECTION, "u1")) is None

    def test_valid_submission_persists_everything(self, store):
        result = asyncio.run(metrics_service.submit_metrics(store, "u1", RAW_METRICS, NOW))

        assert result["valid"] is True
        assert result["changed"] is True
        assert result["rankingUpdated"] is True
        assert result["score"].strength_score == 36
        assert result["score"].improvement_score == 50

        score = asyncio.run(store.get(USER_SCORES_COLLECTION, "u1"))
        assert score["totalScore"] == result["score"].total_score
        assert score["metrics"]["maxWeightLifted"] == 100

        metrics = asyncio.run(store.get(USER_METRICS_COLLECTION, "u1"))
        assert metrics["userId"] == "u1"
        assert "cardioMinutes" not in metrics

        assert asyncio.run(store.get(SCORE_BREAKDOWNS_COLLECTION, "u1")) is not None
        assert len(_history(store, "u1")) == 1

        overall = asyncio.run(store.get(RANKINGS_COLLECTION, "overall"))
        assert [r["userId"] for r in overall["rankings"]] == ["u1"]

    def test_unchanged_resubmission_skips_recompute(self, store):
        asyncio.run(metrics_service.submit_metrics(store, "u1", RAW_METRICS, NOW))

        with patch(
            "app.domain.services.metrics_service.ranking_engine.update_rankings", new_callable=AsyncMock,
        ) as update_rankings:
            result = asyncio.run(metrics_service.submit_metrics(store, "u1", RAW_METRICS, NOW + timedelta(minutes=5)))

        assert result["changed"] is False
        assert result["score"] is None
        update_rankings.assert_not_called()
        assert len(_history(store, "u1")) == 1

    def test_changed_resubmission_appends_history(self, store):
        asyncio.run(metrics_service.submit_metrics(store, "u1", RAW_METRICS, NOW))
        result = asyncio.run(metrics_service.submit_metrics(
            store, "u1", {**RAW_METRICS, "maxWeightLifted": 120}, NOW + timedelta(hours=1),
        ))

        assert result["changed"] is True
        assert len(_history(store, "u1")) == 2

    def test_recompute_can_be_disabled(self, store):
        settings = MagicMock(RECOMPUTE_ON_SUBMIT=False)
        with patch("app.domain.services.metrics_service.get_settings", return_value=settings):
            result = asyncio.run(metrics_service.submit_metrics(store, "u1", RAW_METRICS, NOW))

        assert result["rankingUpdated"] is False
        assert asyncio.run(store.get(RANKINGS_COLLECTION, "overall")) is None

    def test_ranking_failure_does_not_fail_submission(self, store):
        with patch(
            "app.domain.services.metrics_service.ranking_engine.update_rankings",
            new_callable=AsyncMock,
            side_effect=ComputationError("boom"),
        ):
            result = asyncio.run(metrics_service.submit_metrics(store, "u1", RAW_METRICS, NOW))

        assert result["valid"] is True
        assert result["rankingUpdated"] is False
        assert asyncio.run(store.get(USER_SCORES_COLLECTION, "u1")) is not None

    def test_score_write_failure_raises(self):
        failing = AsyncMock()
        failing.get.return_value = None
        failing.query.return_value = []
        failing.set.side_effect = DocumentStoreError("down")

        with pytest.raises(ComputationError):
            asyncio.run(metrics_service.submit_metrics(failing, "u1", RAW_METRICS, NOW))


class TestLogProgressEntry:
    """Tests pour MetricsService.log_progress_entry."""

    def test_valid_entry_is_stored(self, store):
        result = asyncio.run(metrics_service.log_progress_entry(
            store, "u1", {"date": "2024-05-14T18:00:00Z", "squat": 140, "bench": "100"}, NOW,
        ))

        assert result.is_valid
        stored = asyncio.run(store.get(progress_collection("u1"), result.data["id"]))
        assert stored["squat"] == 140
        assert stored["bench"] == 100
        assert stored["date"].startswith("2024-05-14T18:00:00")

    def test_invalid_entry(self, store):
        result = asyncio.run(metrics_service.log_progress_entry(store, "u1", {"squat": 140}, NOW))
        assert not result.is_valid
        assert result.errors == ["date is required"]
        assert asyncio.run(store.scan(progress_collection("u1"))) == {}


class TestRecalculateAllScores:
    """Tests pour MetricsService.recalculate_all_scores."""

    def test_recalculates_valid_users_and_rankings(self, store):
        asyncio.run(store.set(USER_METRICS_COLLECTION, "a", {
            "userId": "a", "maxWeightLifted": 100, "totalWorkouts": 3, "timestamp": NOW.isoformat(),
        }))
        asyncio.run(store.set(USER_METRICS_COLLECTION, "b", {
            "userId": "b", "maxWeightLifted": 200, "totalWorkouts": 8, "timestamp": NOW.isoformat(),
        }))
        asyncio.run(store.set(USER_METRICS_COLLECTION, "broken", {"bodyWeight": 5}))

        processed = asyncio.run(metrics_service.recalculate_all_scores(store, NOW))

        assert processed == 2
        assert asyncio.run(store.get(USER_SCORES_COLLECTION, "broken")) is None
        overall = asyncio.run(store.get(RANKINGS_COLLECTION, "overall"))
        assert [r["userId"] for r in overall["rankings"]] == ["b", "a"]

    def test_recalculation_without_changes_keeps_scores(self, store):
        later = NOW + timedelta(hours=1)
        asyncio.run(metrics_service.submit_metrics(store, "u1", {
            **RAW_METRICS, "workoutDuration": 60, "workoutStreak": 5,
        }, NOW))
        asyncio.run(metrics_service.submit_metrics(store, "u1", {
            **RAW_METRICS, "maxWeightLifted": 150, "workoutDuration": 90, "workoutStreak": 10,
        }, later))
        before = asyncio.run(store.get(USER_SCORES_COLLECTION, "u1"))

        asyncio.run(metrics_service.recalculate_all_scores(store, later))
        after = asyncio.run(store.get(USER_SCORES_COLLECTION, "u1"))

        for field in ("totalScore", "strengthScore", "staminaScore", "consistencyScore", "improvementScore"):
            assert after[field] == before[field], field
        assert after["improvementScore"] == 50

    def test_weights_read_once_per_pass(self, store):
        for user_id in ("a", "b", "c"):
            asyncio.run(store.set(USER_METRICS_COLLECTION, user_id, {"totalWorkouts": 1}))

        with patch.object(
            score_calculator_service, "get_current_weights", new_callable=AsyncMock, return_value=DEFAULT_WEIGHTS,
        ) as get_weights:
            processed = asyncio.run(metrics_service.recalculate_all_scores(store, NOW))

        assert processed == 3
        get_weights.assert_awaited_once()


class TestUpdateRankingWeights:
    """Tests pour MetricsService.update_ranking_weights."""

    def test_valid_weights_persisted(self, store):
        weights = {"strength": 0.4, "stamina": 0.2, "consistency": 0.2, "improvement": 0.2}
        result = asyncio.run(metrics_service.update_ranking_weights(store, weights, updated_by="coach", now=NOW))

        assert result.is_valid
        stored = asyncio.run(store.get(SYSTEM_CONFIG_COLLECTION, WEIGHTS_DOC_ID))
        assert stored["weights"] == weights
        assert stored["updatedBy"] == "coach"
        assert stored["lastUpdated"] == NOW.isoformat()
        assert asyncio.run(score_calculator_service.get_current_weights(store)).strength == 0.4

    def test_invalid_weights_not_persisted(self, store):
        result = asyncio.run(metrics_service.update_ranking_weights(store, {"strength": 1.0}))

        assert not result.is_valid
        assert asyncio.run(store.get(SYSTEM_CONFIG_COLLECTION, WEIGHTS_DOC_ID)) is None
