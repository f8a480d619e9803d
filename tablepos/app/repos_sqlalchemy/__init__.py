"""SQLAlchemy-backed repository implementations.

Every helper takes the ``restaurant_id`` it operates on and filters all of
its queries by it; an identifier owned by another restaurant is reported as
not found.
"""

from . import (
    orders_repo_sql,
    restaurants_repo_sql,
    summary_repo_sql,
    tables_repo_sql,
)

__all__ = [
    "orders_repo_sql",
    "restaurants_repo_sql",
    "summary_repo_sql",
    "tables_repo_sql",
]
