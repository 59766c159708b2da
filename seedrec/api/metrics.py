"""Metrics service for tracking recommendation performance.

Singleton service counting recommendation requests, their latency and
the number of items returned.
"""

import threading
from typing import Dict


class MetricsService:
    """Singleton service for tracking API metrics.

    Thread-safe counters for recommendation calls.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(MetricsService, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._reset_counters()
        self._initialized = True

    def _reset_counters(self) -> None:
        self._recommendation_count = 0
        self._empty_result_count = 0
        self._items_returned = 0
        self._total_latency_ms = 0.0
        self._min_latency_ms = float("inf")
        self._max_latency_ms = 0.0

    def record_recommendation(self, latency_ms: float, num_items: int) -> None:
        """Record a recommendation call.

        Args:
            latency_ms: Latency in milliseconds
            num_items: Number of recommended items returned
        """
        with self._lock:
            self._recommendation_count += 1
            self._items_returned += num_items
            if num_items == 0:
                self._empty_result_count += 1

            self._total_latency_ms += latency_ms
            self._min_latency_ms = min(self._min_latency_ms, latency_ms)
            self._max_latency_ms = max(self._max_latency_ms, latency_ms)

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with metrics including:
            - recommendation_count: Total number of recommendation calls
            - empty_result_count: Calls that returned no items
            - average_items_returned: Mean number of items per call
            - average_latency_ms / min_latency_ms / max_latency_ms
        """
        with self._lock:
            count = self._recommendation_count
            return {
                "recommendation_count": count,
                "empty_result_count": self._empty_result_count,
                "average_items_returned": round(self._items_returned / count, 2) if count else 0.0,
                "average_latency_ms": round(self._total_latency_ms / count, 2) if count else 0.0,
                "min_latency_ms": round(self._min_latency_ms, 2) if count else 0.0,
                "max_latency_ms": round(self._max_latency_ms, 2),
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._reset_counters()


# Global singleton instance
metrics_service = MetricsService()
