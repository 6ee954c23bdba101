# app/services/__init__.py
from __future__ import annotations

from flask import current_app

from .queries import MarketplaceQueries
from .storage import Storage
from .transitions import TransitionEngine


def get_storage() -> Storage:
    return current_app.extensions["storage"]


def get_engine() -> TransitionEngine:
    return current_app.extensions["transitions"]


def get_queries() -> MarketplaceQueries:
    return current_app.extensions["queries"]


__all__ = ["MarketplaceQueries", "Storage", "TransitionEngine", "get_storage", "get_engine", "get_queries"]
