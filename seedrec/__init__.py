"""SeedRec: seed-based candidate generation for collaborative filtering.

This package builds ranked recommendation candidates for a user from a small
set of seed items, a precomputed item-item content similarity matrix and a
per-user item scorer.

Modules:
    api: FastAPI application and REST API endpoints
    recommender: Seed selection, similarity model building and ranking
"""

__version__ = "0.1.0"
