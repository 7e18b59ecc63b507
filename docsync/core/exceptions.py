"""Shared exceptions module."""

from typing import Optional


class DocsyncException(Exception):
    """Base exception for docsync errors."""

    pass


class ConnectorNotFoundError(DocsyncException):
    """Raised when a connector id has no state in the store."""

    def __init__(self, connector_id: str):
        """Create a new ConnectorNotFoundError instance.

        Args:
            connector_id: The id that could not be resolved
        """
        self.connector_id = connector_id
        super().__init__(f"Connector {connector_id} not found")


class ConnectorLockedError(DocsyncException):
    """Raised when a connector lock is already held by another sync."""

    def __init__(self, connector_id: str):
        """Create a new ConnectorLockedError instance.

        Args:
            connector_id: The connector whose lock is held
        """
        self.connector_id = connector_id
        super().__init__(f"Connector {connector_id} is already locked")


class StateStoreError(DocsyncException):
    """Raised when the connector state store cannot be read or written."""

    pass


class UnknownConnectorTypeError(DocsyncException):
    """Raised when a connector type has no registered implementation."""

    def __init__(self, connector_type: str):
        """Create a new UnknownConnectorTypeError instance.

        Args:
            connector_type: The unresolved type key
        """
        self.connector_type = connector_type
        super().__init__(f"Unknown connector type {connector_type}")


class AuthenticationError(DocsyncException):
    """Raised when a connector credential is missing, expired or revoked.

    Surfaced from a sync as a systemic connector error. The syncer flips the
    connector to ``auth_valid=False`` until it is re-authorized.
    """

    def __init__(self, message: str, connector_id: Optional[str] = None):
        """Create a new AuthenticationError instance.

        Args:
            message: Description of the failure
            connector_id: The affected connector, if known
        """
        self.connector_id = connector_id
        super().__init__(message)


class TokenRefreshError(AuthenticationError):
    """Raised when an OAuth refresh token cannot be exchanged for an access token."""

    pass
