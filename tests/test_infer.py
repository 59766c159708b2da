"""Tests for loading a trained recommender and generating recommendations."""

import random
from pathlib import Path

import joblib
import numpy as np
import pandas as pd
import pytest
from scipy.sparse import csr_matrix
from sklearn.decomposition import TruncatedSVD

from seedrec.exceptions import RecommendationError
from seedrec.recommender.builder import DEFAULT_MODEL_NAME
from seedrec.recommender.recommend import (
    CandidateRecommender,
    batch_recommend_for_users,
    load_recommender,
    recommend_items_for_user,
)
from seedrec.recommender.scorer import SVDItemScorer
from seedrec.recommender.train import TrainingConfig, train_with_config


@pytest.fixture(scope="module")
def trained_model_dir(tmp_path_factory) -> Path:
    """Train a small model once for the whole module."""
    tmp_dir = tmp_path_factory.mktemp("infer")
    rng = random.Random(3)

    ratings = pd.DataFrame(
        [
            {
                "user_id": rng.randint(1, 15),
                "item_id": rng.randint(1, 30),
                "timestamp": 1_700_000_000 + rng.randint(0, 20 * 86400),
                "rating": rng.randint(1, 5),
            }
            for _ in range(150)
        ]
    )
    ratings_csv = tmp_dir / "ratings.csv"
    ratings.to_csv(ratings_csv, index=False)

    topics = ["camera lens", "running shoes", "garden hose", "desk lamp", "phone case"]
    content = pd.DataFrame(
        {
            "item_id": list(range(1, 31)),
            "content": [f"{topics[i % 5]} model{i}" for i in range(1, 31)],
        }
    )
    content_csv = tmp_dir / "content.csv"
    content.to_csv(content_csv, index=False)

    model_dir = tmp_dir / "models"
    train_with_config(
        TrainingConfig(
            ratings_csv=str(ratings_csv),
            content_path=str(content_csv),
            output_dir=str(model_dir),
            n_components=4,
            n_iter=5,
        )
    )
    return model_dir


def test_load_recommender(trained_model_dir):
    recommender = load_recommender(str(trained_model_dir))

    assert isinstance(recommender, CandidateRecommender)
    assert isinstance(recommender.scorer, SVDItemScorer)
    assert recommender.similarity is not None
    assert len(recommender.similarity) == len(recommender.store.all_item_ids())


def test_load_recommender_without_similarity_model(trained_model_dir, tmp_path):
    """A missing similarity model falls back to seed-only recommendations."""
    for artifact in trained_model_dir.iterdir():
        if artifact.name != f"{DEFAULT_MODEL_NAME}.joblib":
            (tmp_path / artifact.name).write_bytes(artifact.read_bytes())

    recommender = load_recommender(str(tmp_path))

    assert recommender.similarity is None
    ranked = recommender.recommend(999, 10)
    assert 0 < len(ranked) <= 4
    assert {c.item_id for c in ranked} <= recommender.seed_set().items


def test_load_recommender_missing_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_recommender(str(tmp_path / "absent"))


def test_recommend_items_for_user(trained_model_dir):
    """Results are bounded, sorted and exclude the user's history."""
    recommender = load_recommender(str(trained_model_dir))
    user_id = recommender.store.all_user_ids()[0]
    history = {event.item_id for event in recommender.store.events_for_user(user_id)}

    ranked = recommend_items_for_user(user_id, str(trained_model_dir), top_n=5)

    assert len(ranked) <= 5
    assert not history & {c.item_id for c in ranked}
    scores = [c.score for c in ranked]
    assert scores == sorted(scores, reverse=True)


def test_recommend_items_for_user_missing_model(tmp_path):
    with pytest.raises(FileNotFoundError):
        recommend_items_for_user(1, str(tmp_path / "absent"))


def test_recommend_items_for_user_wraps_failures(trained_model_dir, monkeypatch):
    """Unexpected failures surface as RecommendationError."""

    def explode(self, *args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(CandidateRecommender, "recommend", explode)

    with pytest.raises(RecommendationError) as exc_info:
        recommend_items_for_user(1, str(trained_model_dir))

    assert exc_info.value.details["error"] == "boom"


def test_batch_recommend_for_users(trained_model_dir):
    results = batch_recommend_for_users([1, 2, 999], str(trained_model_dir), top_n=3)

    assert set(results) == {1, 2, 999}
    assert all(len(ranked) <= 3 for ranked in results.values())


def test_svd_scorer_fallbacks():
    """Unknown items cannot be scored; unknown users get the mean profile."""
    rng = np.random.RandomState(0)
    matrix = rng.rand(6, 5)
    model = TruncatedSVD(n_components=2, random_state=0).fit(matrix)
    user_map = {user_id: idx for idx, user_id in enumerate(range(100, 106))}
    item_map = {item_id: idx for idx, item_id in enumerate(range(1, 6))}

    scorer = SVDItemScorer(model, user_map, item_map, csr_matrix(matrix))

    assert scorer.score(100, 99) is None
    assert scorer.score(999, 1) == pytest.approx(float(np.mean(model.components_[:, 0])))
    assert isinstance(scorer.score(100, 1), float)
    assert set(scorer.score_items(100, [1, 2, 99])) == {1, 2}


def test_svd_scorer_rejects_mismatched_mapping():
    model = TruncatedSVD(n_components=2, random_state=0).fit(np.random.RandomState(0).rand(4, 4))

    with pytest.raises(ValueError, match="Item mapping"):
        SVDItemScorer(model, {1: 0}, {1: 0, 2: 1})


def test_saved_events_snapshot_round_trips(trained_model_dir):
    snapshot = joblib.load(trained_model_dir / "events.joblib")

    assert set(snapshot) == {"events", "item_ids"}
    assert len(snapshot["events"]) == 150
