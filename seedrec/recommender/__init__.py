"""Recommendation core for SeedRec.

This module contains the event store, seed item selection, the item content
similarity model and its cache, the SVD item scorer, and the candidate
recommender that merges them into top-N recommendations.
"""
