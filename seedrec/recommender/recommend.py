"""Candidate generation and top-N ranking.

Merges the seed items, the user's rating history and one-hop neighbor
expansion through the content similarity model into a ranked list of
recommendations.
"""

import heapq
import logging
import math
import threading
import time
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from seedrec.exceptions import RecommendationError
from seedrec.recommender.builder import DEFAULT_MODEL_NAME
from seedrec.recommender.cache import JoblibSimilarityCache
from seedrec.recommender.events import EventStore
from seedrec.recommender.scorer import ItemScorer, SVDItemScorer
from seedrec.recommender.seeds import SeedSelector, SeedSet
from seedrec.recommender.similarity import SimilarityMatrix
from seedrec.recommender.utils import load_model_artifacts

# Configure module logger
logger = logging.getLogger(__name__)

# Default parameters
DEFAULT_TOP_N = 10
DEFAULT_MODEL_DIR = "models"


class RankedCandidate(NamedTuple):
    """A recommended item and its predicted score."""

    item_id: int
    score: float


class TopNAccumulator:
    """Keeps the ``n`` highest-scored items put into it.

    Ties on score favor the lower item id. An item is kept with the score it
    was first put with; later puts of the same item are ignored.
    """

    def __init__(self, n: int):
        self.n = max(n, 0)
        self._heap: List[Tuple[float, int]] = []
        self._members: Set[int] = set()

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._members

    def put(self, item_id: int, score: float) -> bool:
        """Offer an item. Returns True if it is currently retained."""
        if self.n == 0 or item_id in self._members:
            return False

        entry = (score, -item_id)
        if len(self._heap) < self.n:
            heapq.heappush(self._heap, entry)
            self._members.add(item_id)
            return True

        if entry > self._heap[0]:
            evicted = heapq.heapreplace(self._heap, entry)
            self._members.discard(-evicted[1])
            self._members.add(item_id)
            return True

        return False

    def finish(self) -> List[RankedCandidate]:
        """Return the retained items, best first, and reset the accumulator."""
        ranked = [
            RankedCandidate(item_id=-neg_item_id, score=score)
            for score, neg_item_id in sorted(self._heap, reverse=True)
        ]
        self._heap = []
        self._members = set()
        return ranked


class CandidateRecommender:
    """Seed-based candidate recommender.

    For a user, scores the seed items, then expands every seed and every
    item the user has rated to its strongest unseen neighbor in the content
    similarity model, and returns the best ``n`` scored items.

    Items the scorer cannot score (None, NaN, or an exception) are left out
    of the result. Excluded items are never recommended. The candidate set
    only restricts results when ``restrict_to_candidates`` is True.

    Args:
        store: Event store with the catalog and user histories.
        scorer: Per-user item scorer.
        similarity: Content similarity model, or None for seed-only results.
        seed_selector: Seed selector; defaults to one over ``store``.
        restrict_to_candidates: If True, drop results outside the effective
            candidate set.
    """

    def __init__(
        self,
        store: EventStore,
        scorer: ItemScorer,
        similarity: Optional[SimilarityMatrix] = None,
        seed_selector: Optional[SeedSelector] = None,
        restrict_to_candidates: bool = False,
    ):
        self.store = store
        self.scorer = scorer
        self.similarity = similarity
        self.seed_selector = seed_selector or SeedSelector(store)
        self.restrict_to_candidates = restrict_to_candidates
        self._seed_set: Optional[SeedSet] = None
        self._seed_lock = threading.Lock()

        if similarity is None:
            logger.warning("No similarity model, neighbor expansion disabled")

    def seed_set(self) -> SeedSet:
        """Seed items of the event snapshot, computed once."""
        if self._seed_set is None:
            with self._seed_lock:
                if self._seed_set is None:
                    self._seed_set = self.seed_selector.select()
        return self._seed_set

    def resolve_excludes(
        self, user_id: int, excludes: Optional[Iterable[int]] = None
    ) -> Set[int]:
        """Excluded items; by default every item the user has an event for."""
        if excludes is not None:
            return set(excludes)
        events = self.store.events_for_user(user_id)
        if events is None:
            return set()
        return {event.item_id for event in events}

    def effective_candidates(
        self,
        user_id: int,
        candidates: Optional[Iterable[int]] = None,
        excludes: Optional[Iterable[int]] = None,
    ) -> Set[int]:
        """Candidate items minus excluded items."""
        candidate_set = (
            set(self.store.all_item_ids()) if candidates is None else set(candidates)
        )
        exclude_set = self.resolve_excludes(user_id, excludes)
        if exclude_set:
            candidate_set = candidate_set - exclude_set
        return candidate_set

    def _score(self, user_id: int, item_id: int) -> Optional[float]:
        try:
            score = self.scorer.score(user_id, item_id)
            if score is None:
                return None
            score = float(score)
        except Exception as e:
            logger.warning(
                "Scorer failed, leaving item unscored",
                extra={"user_id": user_id, "item_id": item_id, "error": str(e)},
            )
            return None

        if math.isnan(score):
            return None
        return score

    def recommend(
        self,
        user_id: int,
        n: int = DEFAULT_TOP_N,
        candidates: Optional[Iterable[int]] = None,
        excludes: Optional[Iterable[int]] = None,
    ) -> List[RankedCandidate]:
        """Get up to ``n`` recommendations for a user, best first.

        Args:
            user_id: User to recommend for.
            n: Maximum number of recommendations.
            candidates: Items eligible for recommendation; all catalog items
                if None.
            excludes: Items never to recommend; the user's interacted items
                if None.

        Returns:
            RankedCandidate list sorted by descending score, ties by
            ascending item id.
        """
        start_time = time.time()
        if n <= 0:
            return []

        exclude_set = self.resolve_excludes(user_id, excludes)
        effective = self.effective_candidates(user_id, candidates, exclude_set)

        accumulator = TopNAccumulator(n)
        considered: Set[int] = set()
        unscored: List[int] = []

        def consider(item_id: int) -> None:
            if item_id in considered or item_id in exclude_set:
                return
            considered.add(item_id)
            if self.restrict_to_candidates and item_id not in effective:
                return
            score = self._score(user_id, item_id)
            if score is None:
                unscored.append(item_id)
                return
            accumulator.put(item_id, score)

        seeds = self.seed_set().ordered_items()
        for seed in seeds:
            consider(seed)

        working = list(seeds)
        history = self.store.ratings_for_user(user_id)
        if history is not None:
            for rating in history:
                if rating.item_id not in working:
                    working.append(rating.item_id)

        n_expanded = 0
        if self.similarity is not None:
            for item_id in working:
                row = self.similarity.row(item_id)
                if not row:
                    continue
                neighbor = row.first_neighbor(exclude=exclude_set)
                if neighbor is not None:
                    consider(neighbor)
                    n_expanded += 1

        recommendations = accumulator.finish()

        logger.info(
            "Recommendations generated",
            extra={
                "user_id": user_id,
                "num_seeds": len(seeds),
                "num_history_items": len(working) - len(seeds),
                "num_expanded": n_expanded,
                "num_unscored": len(unscored),
                "num_effective_candidates": len(effective),
                "num_recommendations": len(recommendations),
                "total_time_ms": round((time.time() - start_time) * 1000, 2),
            },
        )

        return recommendations


def load_recommender(
    model_dir: str = DEFAULT_MODEL_DIR,
    model_name: str = DEFAULT_MODEL_NAME,
    restrict_to_candidates: bool = False,
) -> CandidateRecommender:
    """Create a recommender from saved model files.

    A missing similarity model disables neighbor expansion instead of
    failing, so seed recommendations stay available.

    Raises:
        FileNotFoundError: If the scorer artifacts are not found.
    """
    model, user_id_to_idx, item_id_to_idx, store = load_model_artifacts(model_dir)
    rating_matrix, matrix_users, matrix_items = store.rating_matrix()
    if matrix_users != user_id_to_idx or matrix_items != item_id_to_idx:
        raise ValueError(f"Event snapshot in {model_dir} does not match the saved model")

    scorer = SVDItemScorer(model, user_id_to_idx, item_id_to_idx, rating_matrix)

    similarity = JoblibSimilarityCache(model_dir).get(model_name)
    if similarity is None:
        logger.warning(
            f"No similarity model '{model_name}' found in {model_dir}. "
            "Recommender will fall back to seed items only."
        )

    return CandidateRecommender(
        store=store,
        scorer=scorer,
        similarity=similarity,
        restrict_to_candidates=restrict_to_candidates,
    )


def recommend_items_for_user(
    user_id: int,
    model_path: str = DEFAULT_MODEL_DIR,
    top_n: int = DEFAULT_TOP_N,
    candidates: Optional[Iterable[int]] = None,
    excludes: Optional[Iterable[int]] = None,
) -> List[RankedCandidate]:
    """Get recommendations for a user.

    Loads the model and returns the top N recommendations.

    Raises:
        FileNotFoundError: If model files are not found at model_path.
        RecommendationError: If recommendation generation fails.
    """
    start_time = time.time()

    logger.info(
        "Starting recommendation generation",
        extra={"user_id": user_id, "top_n": top_n, "model_path": model_path},
    )

    try:
        recommender = load_recommender(model_path)
        recommendations = recommender.recommend(
            user_id, top_n, candidates=candidates, excludes=excludes
        )
    except FileNotFoundError as e:
        logger.error(
            "Model files not found",
            extra={"user_id": user_id, "model_path": model_path, "error": str(e)},
        )
        raise
    except Exception as e:
        logger.error(
            "Recommendation generation failed",
            extra={
                "user_id": user_id,
                "error": str(e),
                "error_type": type(e).__name__,
                "total_time_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        raise RecommendationError(user_id, e) from e

    return recommendations


def batch_recommend_for_users(
    user_ids: List[int],
    model_path: str = DEFAULT_MODEL_DIR,
    top_n: int = DEFAULT_TOP_N,
) -> Dict[int, List[RankedCandidate]]:
    """Generate recommendations for multiple users in batch.

    Loads the model once and reuses it for all users. A user whose
    recommendations fail gets an empty list.

    Raises:
        FileNotFoundError: If model files are not found at model_path.

    Example:
        >>> recommendations = batch_recommend_for_users([1, 5, 10], top_n=5)
        >>> for user_id, recs in recommendations.items():
        ...     print(f"User {user_id}: {[r.item_id for r in recs]}")
    """
    logger.info(
        f"Generating batch recommendations for {len(user_ids)} users, "
        f"top_n={top_n}"
    )

    try:
        recommender = load_recommender(model_path)
    except FileNotFoundError as e:
        logger.error(f"Model files not found: {e}")
        raise

    results = {}
    for user_id in user_ids:
        try:
            results[user_id] = recommender.recommend(user_id, top_n)
        except Exception as e:
            logger.error(f"Failed to generate recommendations for user {user_id}: {e}")
            results[user_id] = []

    logger.info(f"Batch recommendations completed for {len(results)} users")

    return results
