"""Pydantic schemas shared with callers of the sync engine."""

from .connector_state import ConnectorState

__all__ = ["ConnectorState"]
