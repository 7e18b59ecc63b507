"""Connectors and the closed registry resolving them by type."""

import uuid
from types import MappingProxyType
from typing import Any, Mapping, Optional, Type, Union

from docsync.core.exceptions import UnknownConnectorTypeError
from docsync.core.shared_models import ConnectorType

from ._base import BaseConnector
from ._google import GoogleConnector
from .gmail import GmailConnector
from .google_drive import GoogleDriveConnector

CONNECTOR_REGISTRY: Mapping[ConnectorType, Type[BaseConnector]] = MappingProxyType(
    {
        ConnectorType.GOOGLE_DRIVE: GoogleDriveConnector,
        ConnectorType.GMAIL: GmailConnector,
    }
)


def build_connector(
    connector_type: Union[ConnectorType, str],
    connector_id: Optional[str] = None,
    **dependencies: Any,
) -> BaseConnector:
    """Instantiate the connector registered for ``connector_type``.

    Args:
        connector_type: Registry key (enum member or its string value)
        connector_id: Id of an existing connector; a new one is generated if omitted
        **dependencies: Constructor arguments shared by all connectors

    Raises:
        UnknownConnectorTypeError: If the type has no implementation
    """
    try:
        key = ConnectorType(connector_type)
        connector_cls = CONNECTOR_REGISTRY[key]
    except (ValueError, KeyError) as e:
        raise UnknownConnectorTypeError(str(connector_type)) from e
    return connector_cls(connector_id or str(uuid.uuid4()), **dependencies)


__all__ = [
    "BaseConnector",
    "CONNECTOR_REGISTRY",
    "GmailConnector",
    "GoogleConnector",
    "GoogleDriveConnector",
    "build_connector",
]
