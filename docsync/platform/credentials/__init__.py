"""Credential boundary."""

from ._base import BaseTokenStore, OAuthToken
from .file_store import FileTokenStore
from .memory import InMemoryTokenStore

__all__ = ["BaseTokenStore", "FileTokenStore", "InMemoryTokenStore", "OAuthToken"]
