"""End-to-end tests for the SeedRec API.

Tests the full request/response cycle: training a model on fake data,
loading it through the API, generating recommendations and inspecting
seeds and status.
"""

import logging
import random
from pathlib import Path
from typing import Generator

import pandas as pd
import pytest
from fastapi.testclient import TestClient

import seedrec.api.routes.recommend as recommend_module
from seedrec.api.main import app
from seedrec.api.metrics import metrics_service
from seedrec.recommender.train import TrainingConfig, train_with_config

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)

# Create test client
client = TestClient(app)

CATEGORIES = ["electronics", "clothing", "garden", "sports", "books"]
ATTRIBUTES = ["premium", "budget", "portable", "durable", "vintage", "compact"]


@pytest.fixture(scope="module")
def trained_model(tmp_path_factory) -> Generator[Path, None, None]:
    """Create a trained model with a similarity model for e2e testing.

    Generates fake ratings and item content, trains, and yields the model
    directory.
    """
    rng = random.Random(42)
    model_dir = tmp_path_factory.mktemp("e2e_model")

    ratings = []
    for _ in range(200):
        ratings.append({
            "user_id": rng.randint(1, 20),
            "item_id": rng.randint(1, 50),
            "timestamp": 1_700_000_000 + rng.randint(0, 30 * 86400),
            "rating": rng.randint(1, 5),
        })
    ratings_csv = model_dir / "test_ratings.csv"
    pd.DataFrame(ratings).to_csv(ratings_csv, index=False)

    content = [
        {
            "item_id": item_id,
            "content": " ".join(
                [CATEGORIES[item_id % len(CATEGORIES)]] + rng.sample(ATTRIBUTES, 2)
            ),
        }
        for item_id in range(1, 51)
    ]
    content_csv = model_dir / "test_content.csv"
    pd.DataFrame(content).to_csv(content_csv, index=False)

    train_with_config(
        TrainingConfig(
            ratings_csv=str(ratings_csv),
            content_path=str(content_csv),
            output_dir=str(model_dir),
            n_components=10,
            n_iter=5,
            random_state=42,
        )
    )

    yield model_dir


@pytest.fixture
def default_model_dir(trained_model: Path) -> Generator[Path, None, None]:
    """Point the API at the trained model and clear the model cache."""
    original_default = recommend_module.DEFAULT_MODEL_DIR
    recommend_module.DEFAULT_MODEL_DIR = str(trained_model)
    recommend_module._model_cache = None
    try:
        yield trained_model
    finally:
        recommend_module.DEFAULT_MODEL_DIR = original_default
        recommend_module._model_cache = None


def test_e2e_recommend(default_model_dir: Path):
    """Test end-to-end recommendation flow.

    Verifies:
    - Request succeeds
    - Response has correct structure
    - Recommendations are bounded and sorted by score
    """
    user_id = 1
    top_n = 5

    response = client.get(f"/recommend/{user_id}?top_n={top_n}")

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.text}"
    data = response.json()

    assert data["user_id"] == user_id
    assert isinstance(data["model_version"], str)
    assert 0 < len(data["recommendations"]) <= top_n
    assert data["recommendations"] == [item["item_id"] for item in data["scores"]]

    scores = [item["score"] for item in data["scores"]]
    assert scores == sorted(scores, reverse=True)
    for item_id in data["recommendations"]:
        assert isinstance(item_id, int)
        assert 1 <= item_id <= 50


def test_e2e_recommend_excludes_history(default_model_dir: Path):
    """By default items the user interacted with are not recommended."""
    response = client.get("/recommend/1?top_n=20")
    assert response.status_code == 200

    ratings = pd.read_csv(default_model_dir / "test_ratings.csv")
    history = set(ratings.loc[ratings["user_id"] == 1, "item_id"])
    assert not history & set(response.json()["recommendations"])


def test_e2e_recommend_explicit_excludes(default_model_dir: Path):
    """Explicitly excluded items never appear."""
    first = client.get("/recommend/7?top_n=10").json()["recommendations"]
    excluded = first[:2]

    query = "&".join(f"exclude={item_id}" for item_id in excluded)
    response = client.get(f"/recommend/7?top_n=10&{query}")

    assert response.status_code == 200
    assert not set(excluded) & set(response.json()["recommendations"])


def test_e2e_recommend_is_idempotent(default_model_dir: Path):
    first = client.get("/recommend/3?top_n=8").json()
    second = client.get("/recommend/3?top_n=8").json()

    assert first["recommendations"] == second["recommendations"]


def test_e2e_zero_top_n(default_model_dir: Path):
    response = client.get("/recommend/3?top_n=0")

    assert response.status_code == 200
    assert response.json()["recommendations"] == []


def test_e2e_unknown_user_gets_recommendations(default_model_dir: Path):
    """Users without history are served from the seed items."""
    response = client.get("/recommend/999999?top_n=5")

    assert response.status_code == 200
    assert len(response.json()["recommendations"]) > 0


def test_e2e_seeds(default_model_dir: Path):
    response = client.get("/recommend/seeds")

    assert response.status_code == 200
    data = response.json()
    assert 1 <= len(data["items"]) <= 4
    assert data["most_popular_ever"] in data["items"]
    assert len(set(data["items"])) == len(data["items"])


def test_e2e_status_after_load(default_model_dir: Path):
    client.get("/recommend/1")

    data = client.get("/status").json()

    assert data["model_loaded"] is True
    assert data["similarity_model_loaded"] is True
    assert data["num_users"] > 0
    assert data["num_items"] > 0
    assert isinstance(data["timestamp_last_loaded"], str)


def test_e2e_reload_model(default_model_dir: Path):
    response = client.post("/recommend/reload-model")

    assert response.status_code == 200
    assert response.json() == {"status": "Model reloaded successfully"}
    assert recommend_module._model_cache["model_dir"] == str(default_model_dir)


def test_e2e_metrics_are_recorded(default_model_dir: Path):
    metrics_service.reset()

    client.get("/recommend/1?top_n=3")
    client.get("/recommend/2?top_n=3")

    assert client.get("/metrics").json()["recommendation_count"] == 2
    metrics_service.reset()
