"""Item content similarity model builder.

Builds the symmetric item x item content similarity matrix for the whole
catalog. Every unordered pair of items, self-pairs included, is scored once
with the text similarity metric and stored in both rows. The build costs
n(n+1)/2 metric evaluations, so finished models are kept in a
SimilarityCache and reused until the catalog or its content changes.
"""

import hashlib
import logging
import threading
import time
from collections.abc import Mapping
from typing import Callable, Dict, Iterable, List, Optional, Union

import numpy as np

from seedrec.exceptions import SimilarityBuildCancelled, SimilarityBuildError
from seedrec.recommender.cache import SimilarityCache
from seedrec.recommender.similarity import (
    SimilarityMatrix,
    TextSimilarityMetric,
    TfidfCosineSimilarity,
)

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "ItemContentMatrixModel"
PROGRESS_LOG_INTERVAL = 100

ContentSource = Union[Mapping, Callable[[int], Optional[str]]]


def resolve_item_content(
    item_ids: Iterable[int],
    content_of: ContentSource,
) -> Dict[int, str]:
    """Look up the textual content of every item.

    Missing content (absent key, unreadable file, None) becomes an empty
    string and is logged; it never fails the lookup.
    """
    lookup = content_of.get if isinstance(content_of, Mapping) else content_of

    contents: Dict[int, str] = {}
    missing: List[int] = []
    for item_id in item_ids:
        try:
            content = lookup(item_id)
        except (KeyError, OSError, UnicodeError) as e:
            logger.debug(f"Could not read content for item {item_id}: {e}")
            content = None

        if content is None:
            missing.append(item_id)
            content = ""
        contents[item_id] = str(content)

    if missing:
        logger.warning(
            "Items without content, using empty text",
            extra={"num_missing": len(missing), "sample": missing[:10]},
        )
    return contents


def catalog_fingerprint(contents: Dict[int, str]) -> str:
    """Checksum over item ids and their content, independent of dict order."""
    digest = hashlib.sha256()
    for item_id in sorted(contents):
        digest.update(f"{item_id}\x1f{contents[item_id]}\x1e".encode("utf-8"))
    return digest.hexdigest()


class ContentSimilarityMatrixBuilder:
    """Builds and caches the item content similarity model.

    Args:
        cache: Cache consulted before building and updated after.
        metric: Text similarity metric. Defaults to TF-IDF cosine similarity.
        model_name: Cache key of the model.
        validate_cache: If True, a cached model built from a different
            catalog or content is treated as stale and rebuilt. If False,
            any cached model is returned as is.
    """

    def __init__(
        self,
        cache: SimilarityCache,
        metric: Optional[TextSimilarityMetric] = None,
        model_name: str = DEFAULT_MODEL_NAME,
        validate_cache: bool = True,
    ):
        self.cache = cache
        self.metric = metric if metric is not None else TfidfCosineSimilarity()
        self.model_name = model_name
        self.validate_cache = validate_cache

    def build(
        self,
        items: Iterable[int],
        content_of: ContentSource,
        cancel_event: Optional[threading.Event] = None,
    ) -> SimilarityMatrix:
        """Return the similarity model for a catalog, building it if needed.

        Concurrent calls for the same model name wait for an in-flight build
        and then reuse its result.

        Args:
            items: Catalog item ids.
            content_of: Mapping or callable giving the text of an item.
            cancel_event: Optional event; once set, the build stops at the
                next pair evaluation.

        Returns:
            The cached or freshly built SimilarityMatrix.

        Raises:
            SimilarityBuildError: If the metric fails for any pair. Nothing
                is stored in the cache.
            SimilarityBuildCancelled: If ``cancel_event`` is set during the build.
        """
        item_ids = sorted({int(item_id) for item_id in items})
        contents = resolve_item_content(item_ids, content_of)
        fingerprint = catalog_fingerprint(contents)

        with self.cache.lock_for(self.model_name):
            cached = self.cache.get(self.model_name)
            if cached is not None:
                if not self.validate_cache or cached.fingerprint == fingerprint:
                    logger.info(
                        f"Using cached similarity model '{self.model_name}' "
                        f"({len(cached)} items)"
                    )
                    return cached
                logger.warning(
                    "Cached similarity model is stale, rebuilding",
                    extra={
                        "model_name": self.model_name,
                        "cached_items": len(cached),
                        "catalog_items": len(item_ids),
                    },
                )

            matrix = self._compute(item_ids, contents, fingerprint, cancel_event)
            self.cache.put(self.model_name, matrix)

        return matrix

    def _compute(
        self,
        item_ids: List[int],
        contents: Dict[int, str],
        fingerprint: str,
        cancel_event: Optional[threading.Event],
    ) -> SimilarityMatrix:
        n_items = len(item_ids)
        documents = [contents[item_id] for item_id in item_ids]
        scores = np.full((n_items, n_items), np.nan, dtype=np.float64)

        logger.info(f"Building item-content similarity model for {n_items} items")
        logger.info("Item-content similarity model is symmetric")

        try:
            self.metric.fit(documents)
        except Exception as e:
            logger.error(f"Similarity metric failed to fit: {e}", exc_info=True)
            raise SimilarityBuildError(self.model_name, e) from e

        start_time = time.time()
        n_evaluations = 0
        for a in range(n_items):
            for b in range(a, n_items):
                pair = (item_ids[a], item_ids[b])
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(
                        "Similarity model build cancelled",
                        extra={"model_name": self.model_name, "item_pair": list(pair)},
                    )
                    raise SimilarityBuildCancelled(self.model_name, item_pair=pair)

                try:
                    value = float(self.metric.similarity(documents[a], documents[b]))
                    if not np.isfinite(value):
                        raise ValueError(f"non-finite similarity {value}")
                except Exception as e:
                    logger.error(
                        "Similarity computation failed, aborting build",
                        extra={
                            "model_name": self.model_name,
                            "item_pair": list(pair),
                            "error": str(e),
                        },
                    )
                    raise SimilarityBuildError(self.model_name, e, item_pair=pair) from e

                scores[a, b] = value
                scores[b, a] = value
                n_evaluations += 1

            done = a + 1
            if done % PROGRESS_LOG_INTERVAL == 0:
                elapsed = time.time() - start_time
                logger.debug(
                    f"Computed {done} of {n_items} model rows "
                    f"({elapsed / done:.3f}s/row)"
                )

        elapsed = time.time() - start_time
        logger.info(
            "Built similarity model",
            extra={
                "model_name": self.model_name,
                "num_items": n_items,
                "num_evaluations": n_evaluations,
                "build_time_ms": round(elapsed * 1000, 2),
            },
        )

        return SimilarityMatrix(item_ids, scores, fingerprint=fingerprint)


def build_similarity_model(
    items: Iterable[int],
    content_of: ContentSource,
    cache: SimilarityCache,
    metric: Optional[TextSimilarityMetric] = None,
    model_name: str = DEFAULT_MODEL_NAME,
) -> SimilarityMatrix:
    """Build (or fetch from cache) the content similarity model of a catalog."""
    builder = ContentSimilarityMatrixBuilder(cache, metric=metric, model_name=model_name)
    return builder.build(items, content_of)
