"""Connector state stores and the locking protocol."""

from ._base import BaseConnectorStateStore
from .memory import InMemoryConnectorStateStore
from .redis import RedisConnectorStateStore

__all__ = [
    "BaseConnectorStateStore",
    "InMemoryConnectorStateStore",
    "RedisConnectorStateStore",
]
