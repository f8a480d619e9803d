"""Side effects that run after an order write has committed."""

from .table_map import publish_table_state

__all__ = ["publish_table_state"]
