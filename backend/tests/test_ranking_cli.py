"""
Tests pour le CLI d'import et de recalcul.
"""
import asyncio
import json

import pytest

from app.domain.services.ranking_engine import RANKINGS_COLLECTION, USER_SCORES_COLLECTION
from pipeline.ranking_cli import RankingCLI


class TestLoadInputFile:
    """Tests pour RankingCLI.load_input_file."""

    def test_object_keyed_by_user(self, store, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text(json.dumps({"a": {"totalWorkouts": 3}}))

        assert RankingCLI(store).load_input_file(str(path)) == [{"totalWorkouts": 3, "userId": "a"}]

    def test_invalid_shape(self, store, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text("42")
        with pytest.raises(ValueError):
            RankingCLI(store).load_input_file(str(path))


class TestImportMetrics:
    """Tests pour RankingCLI.import_metrics."""

    def test_import_then_single_ranking_update(self, store):
        cli = RankingCLI(store)
        report = asyncio.run(cli.import_metrics([
            {"userId": "a", "totalWorkouts": 3, "maxWeightLifted": 80},
            {"userId": "b", "totalWorkouts": 9, "maxWeightLifted": 150},
            {"userId": "bad id", "totalWorkouts": 1},
            {"userId": "c", "bodyWeight": 1},
        ]))

        assert report == {"imported": 2, "unchanged": 0, "rejected": 2}
        assert asyncio.run(store.get(USER_SCORES_COLLECTION, "a")) is not None
        overall = asyncio.run(store.get(RANKINGS_COLLECTION, "overall"))
        assert [r["userId"] for r in overall["rankings"]] == ["b", "a"]

    def test_recalculate(self, store):
        cli = RankingCLI(store)
        asyncio.run(cli.import_metrics([{"userId": "a", "totalWorkouts": 3}]))
        assert asyncio.run(cli.recalculate()) == 1
