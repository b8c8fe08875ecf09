"""
Store module.
Contains the Redis connection shared by the approval components.
"""

from approval_gate.store.connection import close_store, get_redis, init_store

__all__ = [
    "get_redis",
    "init_store",
    "close_store",
]
