"""Item content similarity model.

Holds the symmetric item-item similarity matrix built from item textual
content, and the text similarity metrics used to build it. The default
metric is TF-IDF cosine similarity.
"""

import logging
from collections.abc import Mapping
from typing import Container, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy.sparse import csr_matrix
from sklearn.exceptions import NotFittedError
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

# Configure module logger
logger = logging.getLogger(__name__)


class SimilarityRow(Mapping):
    """Similarity scores of one item against its computed neighbors.

    Behaves as a read-only mapping from neighbor item id to score. Iteration
    follows descending score, ties broken by ascending item id.
    """

    def __init__(self, item_id: int, scores: Dict[int, float]):
        self.item_id = item_id
        self._scores = dict(scores)
        self._order = sorted(self._scores, key=lambda nid: (-self._scores[nid], nid))

    def __getitem__(self, neighbor_id: int) -> float:
        return self._scores[neighbor_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._scores)

    def __repr__(self) -> str:
        return f"SimilarityRow(item_id={self.item_id}, neighbors={len(self)})"

    def neighbors_by_value(self) -> List[int]:
        """Neighbor ids by descending similarity, then ascending id."""
        return list(self._order)

    def first_neighbor(self, exclude: Container[int] = ()) -> Optional[int]:
        """Strongest neighbor other than the item itself and any excluded item."""
        for neighbor_id in self._order:
            if neighbor_id == self.item_id or neighbor_id in exclude:
                continue
            return neighbor_id
        return None


class SimilarityMatrix:
    """Symmetric item x item content similarity matrix.

    Scores are stored densely; entries that were never computed are NaN and
    are absent from the item's row. The matrix is not modified after
    construction.

    Attributes:
        fingerprint: Checksum of the catalog and content the matrix was
            built from, used to detect stale cached models.
    """

    def __init__(
        self,
        item_ids: Sequence[int],
        scores: np.ndarray,
        fingerprint: Optional[str] = None,
    ):
        n_items = len(item_ids)
        if scores.shape != (n_items, n_items):
            raise ValueError(
                f"Score matrix shape {scores.shape} does not match "
                f"{n_items} items"
            )

        self.item_id_to_idx = {int(item_id): idx for idx, item_id in enumerate(item_ids)}
        self.idx_to_item_id = {idx: item_id for item_id, idx in self.item_id_to_idx.items()}
        self._scores = np.array(scores, dtype=np.float64)
        self.fingerprint = fingerprint
        self._rows: Dict[int, SimilarityRow] = {}

    def __len__(self) -> int:
        return len(self.item_id_to_idx)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.item_id_to_idx

    def __getstate__(self) -> dict:
        state = self.__dict__.copy()
        state["_rows"] = {}
        return state

    @property
    def item_ids(self) -> List[int]:
        return [self.idx_to_item_id[idx] for idx in range(len(self))]

    @property
    def scores(self) -> np.ndarray:
        """Read-only view of the dense score matrix."""
        view = self._scores.view()
        view.flags.writeable = False
        return view

    def similarity(self, item_a: int, item_b: int) -> Optional[float]:
        """Similarity of two items, or None if it was not computed."""
        idx_a = self.item_id_to_idx.get(item_a)
        idx_b = self.item_id_to_idx.get(item_b)
        if idx_a is None or idx_b is None:
            return None
        value = self._scores[idx_a, idx_b]
        if np.isnan(value):
            return None
        return float(value)

    def row(self, item_id: int) -> SimilarityRow:
        """Row of an item. Unknown items get an empty row."""
        if item_id in self._rows:
            return self._rows[item_id]

        idx = self.item_id_to_idx.get(item_id)
        if idx is None:
            return SimilarityRow(item_id, {})

        values = self._scores[idx]
        computed = np.flatnonzero(~np.isnan(values))
        row = SimilarityRow(
            item_id,
            {self.idx_to_item_id[int(j)]: float(values[j]) for j in computed},
        )
        self._rows[item_id] = row
        return row

    def neighbors(self, item_id: int) -> List[Tuple[int, float]]:
        """(neighbor, score) pairs of an item, strongest first."""
        row = self.row(item_id)
        return [(neighbor_id, row[neighbor_id]) for neighbor_id in row]

    def is_symmetric(self) -> bool:
        return bool(np.array_equal(self._scores, self._scores.T, equal_nan=True))


class TextSimilarityMetric:
    """Similarity between two textual item descriptions.

    Subclasses implement ``similarity``. Metrics that learn from the corpus
    (vocabulary, weights) override ``fit``, which the model builder calls
    with every item's content before computing pairs.
    """

    def fit(self, documents: Iterable[str]) -> "TextSimilarityMetric":
        return self

    def similarity(self, text_a: str, text_b: str) -> float:
        raise NotImplementedError

    def __call__(self, text_a: str, text_b: str) -> float:
        return self.similarity(text_a, text_b)


class TfidfCosineSimilarity(TextSimilarityMetric):
    """Cosine similarity between TF-IDF vectors of two texts, in [0, 1].

    Texts with no known terms, including empty content, have similarity 0.0
    to everything.
    """

    def __init__(
        self,
        max_features: Optional[int] = None,
        min_df: int = 1,
        max_df: float = 1.0,
        stop_words: Optional[str] = "english",
    ):
        self.max_features = max_features
        self.min_df = min_df
        self.max_df = max_df
        self.stop_words = stop_words
        self.vectorizer: Optional[TfidfVectorizer] = None
        self._fitted = False
        self._vectors: Dict[str, csr_matrix] = {}

    def fit(self, documents: Iterable[str]) -> "TfidfCosineSimilarity":
        documents = list(documents)
        vectorizer = TfidfVectorizer(
            max_features=self.max_features,
            min_df=self.min_df,
            max_df=self.max_df,
            lowercase=True,
            stop_words=self.stop_words,
        )

        self._vectors = {}
        try:
            matrix = vectorizer.fit_transform(documents)
        except ValueError as e:
            if "empty vocabulary" not in str(e):
                raise
            logger.warning(
                f"No usable terms in {len(documents)} documents, "
                "all content similarities will be 0.0"
            )
            self.vectorizer = None
        else:
            self.vectorizer = vectorizer
            for idx, document in enumerate(documents):
                self._vectors[document] = matrix[idx]
            logger.info(f"TF-IDF vocabulary size: {len(vectorizer.vocabulary_)}")

        self._fitted = True
        return self

    def _vector(self, text: str) -> csr_matrix:
        # Only corpus documents are cached; other texts are transformed per call
        vector = self._vectors.get(text)
        if vector is None:
            vector = self.vectorizer.transform([text])
        return vector

    def similarity(self, text_a: str, text_b: str) -> float:
        if not self._fitted:
            raise NotFittedError("TfidfCosineSimilarity must be fit before use")
        if self.vectorizer is None:
            return 0.0

        value = cosine_similarity(self._vector(text_a), self._vector(text_b))[0, 0]
        return float(min(max(value, 0.0), 1.0))
