"""Similarity model cache.

Key/value stores mapping a model name to a built SimilarityMatrix, so the
quadratic similarity computation runs at most once per catalog. Each cache
also hands out one lock per model name; builders hold it around the
check, build and store sequence.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

import joblib

from seedrec.recommender.similarity import SimilarityMatrix

# Configure module logger
logger = logging.getLogger(__name__)

CACHE_FILE_SUFFIX = ".joblib"


class SimilarityCache:
    """Base class for similarity model caches."""

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def get(self, model_name: str) -> Optional[SimilarityMatrix]:
        """Return the cached model, or None if absent."""
        raise NotImplementedError

    def put(self, model_name: str, matrix: SimilarityMatrix) -> None:
        """Store a model, replacing any previous one with the same name."""
        raise NotImplementedError

    def __contains__(self, model_name: str) -> bool:
        return self.get(model_name) is not None

    def lock_for(self, model_name: str) -> threading.RLock:
        """Lock serializing builds of one model name."""
        with self._locks_guard:
            lock = self._locks.get(model_name)
            if lock is None:
                lock = threading.RLock()
                self._locks[model_name] = lock
            return lock


class InMemorySimilarityCache(SimilarityCache):
    """Process-local cache, mostly useful for tests and short-lived jobs."""

    def __init__(self):
        super().__init__()
        self._models: Dict[str, SimilarityMatrix] = {}

    def get(self, model_name: str) -> Optional[SimilarityMatrix]:
        return self._models.get(model_name)

    def put(self, model_name: str, matrix: SimilarityMatrix) -> None:
        self._models[model_name] = matrix

    def clear(self) -> None:
        self._models.clear()


class JoblibSimilarityCache(SimilarityCache):
    """Disk-backed cache storing each model as ``<cache_dir>/<model_name>.joblib``.

    Files are written to a temporary path and moved into place, so a failed
    write never leaves a truncated model behind. Unreadable files are
    treated as cache misses.
    """

    # Shared by every instance so caches on the same directory build once
    _dir_locks: Dict[Tuple[str, str], threading.RLock] = {}
    _dir_locks_guard = threading.Lock()

    def __init__(self, cache_dir: str):
        super().__init__()
        self.cache_dir = Path(cache_dir)

    def lock_for(self, model_name: str) -> threading.RLock:
        """Lock serializing builds of one model name in this directory."""
        key = (str(self.cache_dir.resolve()), model_name)
        with JoblibSimilarityCache._dir_locks_guard:
            lock = JoblibSimilarityCache._dir_locks.get(key)
            if lock is None:
                lock = threading.RLock()
                JoblibSimilarityCache._dir_locks[key] = lock
            return lock

    def path_for(self, model_name: str) -> Path:
        return self.cache_dir / f"{model_name}{CACHE_FILE_SUFFIX}"

    def get(self, model_name: str) -> Optional[SimilarityMatrix]:
        model_file = self.path_for(model_name)
        if not model_file.exists():
            logger.debug(f"No cached similarity model at {model_file}")
            return None

        try:
            matrix = joblib.load(model_file)
        except Exception as e:
            logger.warning(
                "Failed to read cached similarity model",
                extra={"path": str(model_file), "error": str(e)},
            )
            return None

        if not isinstance(matrix, SimilarityMatrix):
            logger.warning(
                f"Ignoring {model_file}: expected SimilarityMatrix, "
                f"found {type(matrix).__name__}"
            )
            return None

        logger.info(f"Loaded similarity model from {model_file} ({len(matrix)} items)")
        return matrix

    def put(self, model_name: str, matrix: SimilarityMatrix) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        model_file = self.path_for(model_name)
        tmp_file = model_file.with_name(model_file.name + ".tmp")

        try:
            joblib.dump(matrix, tmp_file)
            os.replace(tmp_file, model_file)
        finally:
            if tmp_file.exists():
                tmp_file.unlink()

        logger.info(f"Saved similarity model to {model_file}")

    def delete(self, model_name: str) -> bool:
        """Remove a cached model. Returns True if a file was removed."""
        model_file = self.path_for(model_name)
        if model_file.exists():
            model_file.unlink()
            return True
        return False
