"""Connector state schema."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docsync.core.datetime_utils import NEVER, ensure_utc
from docsync.core.shared_models import ConnectorType


class ConnectorState(BaseModel):
    """Durable per-connector sync record.

    ``syncing=True`` implies the connector lock is held. ``last_sync`` only
    advances after a successful sync completes.
    """

    connector_id: str = Field(..., description="Unique id of the connector instance.")
    connector_type: ConnectorType = Field(..., description="Connector variant.")
    name: str = Field("", description="Display name.")
    syncing: bool = Field(False, description="Whether a sync currently holds the lock.")
    auth_valid: bool = Field(False, description="Whether a usable credential exists.")
    last_sync: datetime = Field(NEVER, description="Start time of the last successful sync.")
    num_documents: int = Field(0, ge=0, description="Documents persisted so far.")
    num_chunks: int = Field(0, ge=0, description="Chunks persisted so far.")
    user: str = Field("", description="Authenticated identity, usually an email.")

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("last_sync")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)
