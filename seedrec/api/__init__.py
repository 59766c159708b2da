"""FastAPI application module for SeedRec.

This module contains the FastAPI application, route handlers, and API
endpoints for serving seed-based recommendations.
"""
