"""Recommendation endpoints for the SeedRec API.

This module provides API endpoints for generating seed-based recommendations
and inspecting the current seed items.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from seedrec import __version__
from seedrec.api.metrics import metrics_service
from seedrec.exceptions import ModelLoadError, ModelNotFoundError, RecommendationError
from seedrec.recommender.recommend import CandidateRecommender, load_recommender
from seedrec.recommender.utils import check_model_exists

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(
    prefix="/recommend",
    tags=["recommendations"],
)

# Default model directory, read at request time
DEFAULT_MODEL_DIR = "models"
DEFAULT_TOP_N = 10
MAX_TOP_N = 100

# Cache for the loaded recommender
_model_cache: Optional[Dict[str, Any]] = None
_model_lock = threading.Lock()


class ScoredItem(BaseModel):
    """A recommended item with its predicted score."""

    item_id: int = Field(..., description="Recommended item ID")
    score: float = Field(..., description="Predicted score for the user")


class RecommendationResponse(BaseModel):
    """Response model for recommendation requests.

    Attributes:
        user_id: The user ID for which recommendations were generated.
        recommendations: Recommended item IDs, best first.
        scores: Recommended items with their scores, best first.
        model_version: Version of the service that produced them.
    """

    model_config = ConfigDict(protected_namespaces=())

    user_id: int = Field(..., description="User ID for recommendations")
    recommendations: List[int] = Field(
        ..., description="List of recommended item IDs"
    )
    scores: List[ScoredItem] = Field(
        default_factory=list, description="Recommended items with scores"
    )
    model_version: str = Field(default=__version__, description="Model version")


class SeedSetResponse(BaseModel):
    """Seed items of the loaded event snapshot, one per category."""

    most_popular_ever: Optional[int] = None
    most_popular_recent: Optional[int] = None
    last_positively_rated: Optional[int] = None
    last_added_unrated: Optional[int] = None
    items: List[int] = Field(default_factory=list)


def load_model_if_needed(model_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load the recommender from disk if not already loaded.

    Uses a module-level cache to avoid reloading the model on every request.
    Requesting a different model directory replaces the cached model.

    Returns:
        Dictionary containing:
            - recommender: CandidateRecommender
            - model_dir: Directory the model was loaded from
            - loaded_at: ISO timestamp of the load

    Raises:
        ModelNotFoundError: If model files are not found.
        ModelLoadError: If the model cannot be loaded.
    """
    global _model_cache

    model_dir = model_dir or DEFAULT_MODEL_DIR

    with _model_lock:
        if _model_cache is not None and _model_cache["model_dir"] == model_dir:
            logger.debug("Using cached model")
            return _model_cache

        if not check_model_exists(model_dir):
            logger.error(f"Model not found in {model_dir}")
            raise ModelNotFoundError(model_dir)

        try:
            logger.info(f"Loading model from {model_dir}")
            recommender = load_recommender(model_dir)
        except Exception as e:
            logger.error(f"Failed to load model: {e}", exc_info=True)
            raise ModelLoadError(model_dir, e) from e

        _model_cache = {
            "recommender": recommender,
            "model_dir": model_dir,
            "loaded_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.info("Model loaded successfully")
        return _model_cache


def get_model_status() -> Dict[str, Any]:
    """Describe the currently loaded model without loading one."""
    cache = _model_cache
    if cache is None:
        return {
            "model_loaded": False,
            "timestamp_last_loaded": None,
            "num_users": 0,
            "num_items": 0,
            "similarity_model_loaded": False,
        }

    recommender: CandidateRecommender = cache["recommender"]
    return {
        "model_loaded": True,
        "timestamp_last_loaded": cache["loaded_at"],
        "num_users": len(recommender.store.all_user_ids()),
        "num_items": len(recommender.store.all_item_ids()),
        "similarity_model_loaded": recommender.similarity is not None,
    }


@router.get("/seeds", response_model=SeedSetResponse)
def get_seed_items(model_dir: Optional[str] = None) -> SeedSetResponse:
    """Get the seed items of the loaded event snapshot."""
    recommender: CandidateRecommender = load_model_if_needed(model_dir)["recommender"]
    seeds = recommender.seed_set()
    return SeedSetResponse(
        most_popular_ever=seeds.most_popular_ever,
        most_popular_recent=seeds.most_popular_recent,
        last_positively_rated=seeds.last_positively_rated,
        last_added_unrated=seeds.last_added_unrated,
        items=seeds.ordered_items(),
    )


@router.get("/{user_id}", response_model=RecommendationResponse)
def get_recommendations(
    user_id: int,
    top_n: int = Query(DEFAULT_TOP_N, ge=0, le=MAX_TOP_N),
    candidate: Optional[List[int]] = Query(None),
    exclude: Optional[List[int]] = Query(None),
    model_dir: Optional[str] = None,
) -> RecommendationResponse:
    """Get recommendations for a user.

    Args:
        user_id: User ID for which to generate recommendations.
        top_n: Maximum number of recommendations to return.
        candidate: Items eligible for recommendation (repeatable); all
            catalog items when omitted.
        exclude: Items never to recommend (repeatable); the user's
            interacted items when omitted.
        model_dir: Directory containing model artifacts.

    Example:
        GET /recommend/42?top_n=5&exclude=7
        Returns top 5 recommendations for user 42, never item 7.
    """
    logger.info(f"Generating recommendations for user {user_id}, top_n={top_n}")

    start_time = time.time()
    recommender: CandidateRecommender = load_model_if_needed(model_dir)["recommender"]

    try:
        ranked = recommender.recommend(
            user_id, top_n, candidates=candidate, excludes=exclude
        )
    except Exception as e:
        logger.error(
            f"Error generating recommendations for user {user_id}: {e}",
            exc_info=True,
        )
        raise RecommendationError(user_id, e) from e

    latency_ms = (time.time() - start_time) * 1000
    metrics_service.record_recommendation(latency_ms, len(ranked))

    return RecommendationResponse(
        user_id=user_id,
        recommendations=[item.item_id for item in ranked],
        scores=[
            ScoredItem(item_id=item.item_id, score=item.score)
            for item in ranked
        ],
    )


@router.post("/reload-model")
def reload_model(model_dir: Optional[str] = None) -> Dict[str, str]:
    """Reload the model from disk.

    Clears the cached model, useful after training a new model without
    restarting the server.
    """
    global _model_cache

    logger.info("Reloading model...")
    with _model_lock:
        _model_cache = None

    load_model_if_needed(model_dir)
    return {"status": "Model reloaded successfully"}
