"""Tests for the training pipeline and data loading.

Covers rating and content loading, SVD scorer training, artifact saving and
the similarity model build performed during training.
"""

import random
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from sklearn.decomposition import TruncatedSVD

from seedrec.recommender.builder import DEFAULT_MODEL_NAME, ContentSimilarityMatrixBuilder
from seedrec.recommender.scorer import SVDItemScorer
from seedrec.recommender.similarity import SimilarityMatrix
from seedrec.recommender.train import TrainingConfig, train_svd_model, train_with_config
from seedrec.recommender.utils import (
    EVENTS_FILENAME,
    ITEM_MAPPING_FILENAME,
    MODEL_FILENAME,
    USER_MAPPING_FILENAME,
    check_model_exists,
    load_item_content,
    load_model_artifacts,
    load_ratings_csv,
)

WORDS = ["red", "blue", "shoes", "jacket", "garden", "hose", "lamp", "desk", "camera", "phone"]


@pytest.fixture
def ratings_csv(tmp_path: Path) -> Path:
    """Fake ratings: 10 users, 20 items, 80 ratings with unix timestamps."""
    rng = random.Random(42)
    rows = [
        {
            "user_id": rng.randint(1, 10),
            "item_id": rng.randint(1, 20),
            "timestamp": 1_700_000_000 + rng.randint(0, 30 * 86400),
            "rating": rng.randint(1, 5),
        }
        for _ in range(80)
    ]
    csv_path = tmp_path / "ratings.csv"
    pd.DataFrame(rows).to_csv(csv_path, index=False)
    return csv_path


@pytest.fixture
def content_csv(tmp_path: Path) -> Path:
    """Three-word descriptions for items 1-20."""
    rng = random.Random(7)
    rows = [
        {"item_id": item_id, "content": " ".join(rng.sample(WORDS, 3))}
        for item_id in range(1, 21)
    ]
    csv_path = tmp_path / "content.csv"
    pd.DataFrame(rows).to_csv(csv_path, index=False)
    return csv_path


@pytest.fixture
def model_dir(tmp_path: Path) -> Path:
    return tmp_path / "models"


def make_config(ratings_csv, content_csv, model_dir, **overrides) -> TrainingConfig:
    settings = dict(
        ratings_csv=str(ratings_csv),
        content_path=str(content_csv) if content_csv is not None else None,
        output_dir=str(model_dir),
        n_components=3,
        n_iter=5,
    )
    settings.update(overrides)
    return TrainingConfig(**settings)


def test_train_with_config_creates_artifacts(ratings_csv, content_csv, model_dir):
    """Training saves the scorer artifacts and the similarity model."""
    scorer, similarity = train_with_config(make_config(ratings_csv, content_csv, model_dir))

    assert isinstance(scorer, SVDItemScorer)
    assert scorer.model.n_components == 3
    assert isinstance(similarity, SimilarityMatrix)
    assert similarity.item_ids == sorted(scorer.item_id_to_idx)
    assert similarity.is_symmetric()

    for filename in (MODEL_FILENAME, USER_MAPPING_FILENAME, ITEM_MAPPING_FILENAME, EVENTS_FILENAME):
        assert (model_dir / filename).exists(), f"Missing artifact: {filename}"
    assert (model_dir / f"{DEFAULT_MODEL_NAME}.joblib").exists()
    assert check_model_exists(str(model_dir))

    model, user_map, item_map, store = load_model_artifacts(str(model_dir))
    assert isinstance(model, TruncatedSVD)
    assert user_map == scorer.user_id_to_idx
    assert item_map == scorer.item_id_to_idx
    assert store.all_item_ids() == sorted(item_map)
    assert len(store) == 80


def test_n_components_is_adjusted_to_matrix_size(ratings_csv, model_dir):
    """Too many components are reduced to min(n_users, n_items) - 1."""
    scorer, _ = train_with_config(
        make_config(ratings_csv, None, model_dir, n_components=500, build_similarity=False)
    )

    n_users = len(scorer.user_id_to_idx)
    n_items = len(scorer.item_id_to_idx)
    assert scorer.model.n_components == min(n_users, n_items) - 1


def test_similarity_model_is_reused_across_runs(ratings_csv, content_csv, model_dir, monkeypatch):
    """Retraining with unchanged content reuses the cached similarity model."""
    builds = []
    original = ContentSimilarityMatrixBuilder._compute

    def counting_compute(self, *args, **kwargs):
        builds.append(self.model_name)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(ContentSimilarityMatrixBuilder, "_compute", counting_compute)
    config = make_config(ratings_csv, content_csv, model_dir)

    _, first = train_with_config(config)
    _, second = train_with_config(config)
    assert len(builds) == 1
    assert second.fingerprint == first.fingerprint

    config.force_rebuild = True
    train_with_config(config)
    assert len(builds) == 2


def test_training_without_similarity(ratings_csv, model_dir):
    scorer, similarity = train_with_config(
        make_config(ratings_csv, None, model_dir, build_similarity=False)
    )

    assert similarity is None
    assert check_model_exists(str(model_dir))
    assert not (model_dir / f"{DEFAULT_MODEL_NAME}.joblib").exists()


def test_training_without_content_gives_zero_similarities(ratings_csv, model_dir):
    """Every item has empty content, so every similarity is 0.0."""
    _, similarity = train_with_config(make_config(ratings_csv, None, model_dir))

    assert np.all(similarity.scores == 0.0)


def test_train_svd_model_rejects_invalid_components(ratings_csv):
    from seedrec.recommender.events import EventStore

    matrix, _, _ = EventStore(load_ratings_csv(str(ratings_csv))).rating_matrix()

    with pytest.raises(ValueError, match="n_components"):
        train_svd_model(matrix, n_components=0)
    with pytest.raises(ValueError, match="n_components"):
        train_svd_model(matrix, n_components=min(matrix.shape))


def test_missing_ratings_csv_raises(tmp_path, model_dir):
    with pytest.raises(FileNotFoundError):
        train_with_config(make_config(tmp_path / "absent.csv", None, model_dir))


def test_ratings_csv_missing_columns(tmp_path):
    csv_path = tmp_path / "bad.csv"
    pd.DataFrame({"user_id": [1], "item_id": [2]}).to_csv(csv_path, index=False)

    with pytest.raises(ValueError, match="missing required columns"):
        load_ratings_csv(str(csv_path))


def test_empty_ratings_csv(tmp_path):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("user_id,item_id,timestamp,rating\n")

    with pytest.raises(ValueError, match="empty CSV"):
        load_ratings_csv(str(csv_path))


def test_ratings_csv_with_dates_and_plain_events(tmp_path):
    """Date strings become unix seconds and blank ratings become plain events."""
    csv_path = tmp_path / "dates.csv"
    csv_path.write_text(
        "user_id,item_id,timestamp,rating\n"
        "1,10,2024-01-01T00:00:00Z,4\n"
        "2,10,2024-01-02T00:00:00Z,\n"
    )

    events = load_ratings_csv(str(csv_path))

    assert events["timestamp"].tolist() == [1704067200, 1704153600]
    assert events["rating"].iloc[0] == 4.0
    assert pd.isna(events["rating"].iloc[1])


def test_load_item_content_from_directory(tmp_path):
    """One file per item, named by item id, lines joined by spaces."""
    content_dir = tmp_path / "abstracts"
    content_dir.mkdir()
    (content_dir / "1.txt").write_text("red shoes\nfor running\n")
    (content_dir / "2").write_text("blue jacket")
    (content_dir / "notes.md").write_text("not an item")

    assert load_item_content(str(content_dir)) == {
        1: "red shoes for running",
        2: "blue jacket",
    }


def test_load_item_content_from_csv(tmp_path):
    csv_path = tmp_path / "content.csv"
    csv_path.write_text("item_id,content\n1,red shoes\n2,\n")

    assert load_item_content(str(csv_path)) == {1: "red shoes", 2: ""}


def test_load_item_content_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_item_content(str(tmp_path / "absent"))

    csv_path = tmp_path / "bad.csv"
    csv_path.write_text("id,text\n1,x\n")
    with pytest.raises(ValueError, match="missing required columns"):
        load_item_content(str(csv_path))
