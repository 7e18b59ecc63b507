"""Shared enums used across the sync engine."""

from enum import Enum


class ConnectorType(str, Enum):
    """Connector variants with a registered implementation."""

    GOOGLE_DRIVE = "googledrive"
    GMAIL = "gmail"


class ConnectorSyncState(str, Enum):
    """Scheduling state of a connector, derived from its ConnectorState.

    AUTH_INVALID is absorbing: the syncer skips the connector until it is
    re-authorized externally.
    """

    UNSYNCED = "unsynced"
    DUE = "due"
    SYNCING = "syncing"
    SYNCED = "synced"
    AUTH_INVALID = "auth_invalid"
