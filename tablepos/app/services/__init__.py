"""Service layer helpers for the API."""

from .analytics import restaurant_analytics

__all__ = ["restaurant_analytics"]
