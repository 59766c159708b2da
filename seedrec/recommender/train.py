"""Model training module.

Trains the two models the seed recommender needs from an event log and item
content: a Truncated SVD scorer over the user-item rating matrix, and the
item content similarity model. Both are persisted to the output directory.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from scipy.sparse import csr_matrix
from sklearn.decomposition import TruncatedSVD

from seedrec.recommender.builder import DEFAULT_MODEL_NAME, ContentSimilarityMatrixBuilder
from seedrec.recommender.cache import JoblibSimilarityCache
from seedrec.recommender.events import EventStore
from seedrec.recommender.scorer import SVDItemScorer
from seedrec.recommender.similarity import SimilarityMatrix, TfidfCosineSimilarity
from seedrec.recommender.utils import (
    load_item_content,
    load_ratings_csv,
    save_model_artifacts,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Model configuration constants
DEFAULT_N_COMPONENTS = 50
DEFAULT_N_ITERATIONS = 10
DEFAULT_RANDOM_STATE = 42
DEFAULT_OUTPUT_DIR = "models"


@dataclass
class TrainingConfig:
    """Settings of a training run.

    Attributes:
        ratings_csv: CSV with columns user_id, item_id, timestamp[, rating].
        content_path: CSV with columns item_id, content, or a directory with
            one text file per item. Without it every item has empty content.
        output_dir: Directory where model artifacts will be saved.
        n_components: Number of latent features for SVD. Adjusted down if
            too large for the rating matrix.
        n_iter: Number of iterations for the SVD solver.
        random_state: Random seed for reproducibility.
        model_name: Name of the similarity model in the cache.
        build_similarity: If False, only the scorer is trained.
        force_rebuild: If True, discard any cached similarity model first.
    """

    ratings_csv: str
    content_path: Optional[str] = None
    output_dir: str = DEFAULT_OUTPUT_DIR
    n_components: int = DEFAULT_N_COMPONENTS
    n_iter: int = DEFAULT_N_ITERATIONS
    random_state: int = DEFAULT_RANDOM_STATE
    model_name: str = DEFAULT_MODEL_NAME
    build_similarity: bool = True
    force_rebuild: bool = False


def train_svd_model(
    rating_matrix: csr_matrix,
    n_components: int = DEFAULT_N_COMPONENTS,
    n_iter: int = DEFAULT_N_ITERATIONS,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> TruncatedSVD:
    """Train a Truncated SVD model on the user-item rating matrix.

    Args:
        rating_matrix: Sparse matrix of user-item ratings.
        n_components: Number of latent features to extract. Must be less than
            min(n_users, n_items).
        n_iter: Number of iterations for randomized SVD solver.
        random_state: Random seed for reproducibility.

    Returns:
        Trained TruncatedSVD model.

    Raises:
        ValueError: If n_components is invalid or matrix is empty.
    """
    n_users, n_items = rating_matrix.shape

    if n_components < 1 or n_components >= min(n_users, n_items):
        raise ValueError(
            f"n_components ({n_components}) must be between 1 and "
            f"min(n_users, n_items) - 1 = {min(n_users, n_items) - 1}"
        )

    if rating_matrix.nnz == 0:
        raise ValueError("Cannot train on empty rating matrix")

    logger.info(f"Training SVD model with {n_components} components")
    logger.info(f"Random state: {random_state}, Iterations: {n_iter}")

    model = TruncatedSVD(
        n_components=n_components,
        n_iter=n_iter,
        random_state=random_state,
    )
    model.fit(rating_matrix)

    logger.info("Model training completed")
    logger.info(f"Explained variance ratio: {model.explained_variance_ratio_.sum():.4f}")

    return model


def train_with_config(config: TrainingConfig) -> Tuple[SVDItemScorer, Optional[SimilarityMatrix]]:
    """Run a full training pipeline.

    Loads the event log, trains and saves the SVD scorer, then builds the
    content similarity model through the on-disk cache in the output
    directory.

    Returns:
        The trained scorer and the similarity model (None when
        ``build_similarity`` is False).

    Raises:
        FileNotFoundError: If the ratings CSV or content path does not exist.
        ValueError: If data is invalid or training parameters are incorrect.
        SimilarityBuildError: If the similarity model cannot be built.
    """
    logger.info("=" * 60)
    logger.info("Starting seed recommender training")
    logger.info("=" * 60)

    try:
        store = EventStore(load_ratings_csv(config.ratings_csv))
        rating_matrix, user_id_to_idx, item_id_to_idx = store.rating_matrix()

        n_users, n_items = rating_matrix.shape
        n_components = config.n_components
        if n_components >= min(n_users, n_items):
            adjusted_components = max(min(n_users, n_items) - 1, 1)
            logger.warning(
                f"Requested n_components ({n_components}) is too large for "
                f"matrix size ({n_users}x{n_items}). "
                f"Adjusting to {adjusted_components}."
            )
            n_components = adjusted_components

        model = train_svd_model(
            rating_matrix,
            n_components=n_components,
            n_iter=config.n_iter,
            random_state=config.random_state,
        )
        save_model_artifacts(model, user_id_to_idx, item_id_to_idx, store, config.output_dir)
        scorer = SVDItemScorer(model, user_id_to_idx, item_id_to_idx, rating_matrix)

        similarity = None
        if config.build_similarity:
            if config.content_path is not None:
                contents = load_item_content(config.content_path)
            else:
                logger.warning("No item content given, all items have empty content")
                contents = {}

            cache = JoblibSimilarityCache(config.output_dir)
            if config.force_rebuild and cache.delete(config.model_name):
                logger.info(f"Discarded cached similarity model '{config.model_name}'")

            builder = ContentSimilarityMatrixBuilder(
                cache,
                metric=TfidfCosineSimilarity(),
                model_name=config.model_name,
            )
            similarity = builder.build(store.all_item_ids(), contents)

        logger.info("=" * 60)
        logger.info("Training completed successfully!")
        logger.info("=" * 60)

        return scorer, similarity

    except Exception as e:
        logger.error(f"Training failed: {e}", exc_info=True)
        raise


def train_seed_recommender(
    ratings_csv: str,
    content_path: Optional[str] = None,
    output_dir: str = DEFAULT_OUTPUT_DIR,
    n_components: int = DEFAULT_N_COMPONENTS,
    n_iter: int = DEFAULT_N_ITERATIONS,
    random_state: int = DEFAULT_RANDOM_STATE,
) -> Tuple[SVDItemScorer, Optional[SimilarityMatrix]]:
    """Train the scorer and similarity model from files.

    Example:
        >>> scorer, similarity = train_seed_recommender(
        ...     "data/fake_ratings.csv",
        ...     content_path="data/fake_item_content.csv",
        ...     output_dir="models",
        ... )
        >>> print(f"Similarity model covers {len(similarity)} items")
    """
    return train_with_config(
        TrainingConfig(
            ratings_csv=ratings_csv,
            content_path=content_path,
            output_dir=output_dir,
            n_components=n_components,
            n_iter=n_iter,
            random_state=random_state,
        )
    )
