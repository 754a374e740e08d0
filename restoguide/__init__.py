"""
Restaurant guide API package.

A FastAPI service for discovering restaurants in Belarus: geospatial
search, favorites, reviews, partner onboarding and admin moderation,
backed by PostgreSQL/PostGIS (SQLite for local runs and tests).
"""

__version__ = "0.1.0"
