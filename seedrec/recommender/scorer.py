"""Per-user item scorers.

A scorer predicts how relevant an item is to a user. The recommender only
relies on ``score(user_id, item_id)``, which returns a float or None when
the pair cannot be scored. The default scorer reconstructs ratings from a
Truncated SVD factorization of the user-item rating matrix.
"""

import logging
from typing import Dict, Iterable, Optional

import numpy as np
from scipy.sparse import csr_matrix
from sklearn.decomposition import TruncatedSVD

# Configure module logger
logger = logging.getLogger(__name__)


class ItemScorer:
    """Base class for scorers."""

    def score(self, user_id: int, item_id: int) -> Optional[float]:
        raise NotImplementedError

    def score_items(self, user_id: int, item_ids: Iterable[int]) -> Dict[int, float]:
        """Score several items, leaving out the ones that cannot be scored."""
        scores = {}
        for item_id in item_ids:
            value = self.score(user_id, item_id)
            if value is not None:
                scores[item_id] = value
        return scores


class SVDItemScorer(ItemScorer):
    """Scores items from a Truncated SVD model of the rating matrix.

    Known users are projected into the latent space using their row of the
    rating matrix. Users without a row fall back to the average of the model
    components. Items outside the model cannot be scored.
    """

    def __init__(
        self,
        model: TruncatedSVD,
        user_id_to_idx: Dict[int, int],
        item_id_to_idx: Dict[int, int],
        user_item_matrix: Optional[csr_matrix] = None,
    ):
        self.model = model
        self.user_id_to_idx = user_id_to_idx
        self.item_id_to_idx = item_id_to_idx

        n_items = model.components_.shape[1]
        if len(item_id_to_idx) != n_items:
            raise ValueError(
                f"Item mapping has {len(item_id_to_idx)} items but the model "
                f"has {n_items} columns"
            )

        self._user_factors: Optional[np.ndarray] = None
        if user_item_matrix is not None:
            if user_item_matrix.shape != (len(user_id_to_idx), n_items):
                raise ValueError(
                    f"Rating matrix shape {user_item_matrix.shape} does not match "
                    f"({len(user_id_to_idx)}, {n_items})"
                )
            self._user_factors = model.transform(user_item_matrix)
        else:
            logger.debug("Using scorer without rating matrix")

        # Just use average if no data
        self._mean_scores = np.mean(model.components_, axis=0)

        logger.info(
            f"Initialized SVDItemScorer: {len(user_id_to_idx)} users, "
            f"{n_items} items, {model.n_components} components"
        )

    def score(self, user_id: int, item_id: int) -> Optional[float]:
        item_idx = self.item_id_to_idx.get(item_id)
        if item_idx is None:
            return None

        user_idx = self.user_id_to_idx.get(user_id)
        if user_idx is None or self._user_factors is None:
            return float(self._mean_scores[item_idx])

        return float(
            np.dot(self._user_factors[user_idx], self.model.components_[:, item_idx])
        )
