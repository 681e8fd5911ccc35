"""
Audit record types and Pydantic models for request/response validation.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Audit Models
# ============================================================================

class EventType(str, Enum):
    """Operations recorded in the audit log."""

    SHOW_TENANT_UPDATE = "ShowTenantUpdate"
    START_TENANT_UPDATE = "StartTenantUpdate"
    STOP_TENANT_UPDATE = "StopTenantUpdate"


# Parameter name -> value, in insertion order
EventParams = Dict[str, str]


class AuditRecord(BaseModel):
    """An audit record as built by the caller, before it is stored."""

    model_config = ConfigDict(frozen=True)

    event_type: EventType
    identity_id: UUID
    event_params: EventParams = Field(default_factory=dict)


class AuditLogEntry(AuditRecord):
    """A stored audit record."""

    id: UUID
    created_at: datetime


class AuditLogList(BaseModel):
    """A page of stored audit records, newest first."""

    audit_logs: List[AuditLogEntry]
    count: int
    limit: int
    offset: int


# ============================================================================
# Tenant Update Models
# ============================================================================

class StartTenantUpdateParams(BaseModel):
    """Optional parameters of a tenant update start request."""

    cluster_url: Optional[str] = Field(default=None, alias="clusterURL")
    env_type: Optional[str] = Field(default=None, alias="envType")

    def to_event_params(self) -> EventParams:
        """Only the parameters that were supplied, empty strings included."""
        params: EventParams = {}
        if self.cluster_url is not None:
            params["clusterURL"] = self.cluster_url
        if self.env_type is not None:
            params["envType"] = self.env_type
        return params


# ============================================================================
# Health Check Models
# ============================================================================

class HealthStatus(BaseModel):
    """Health check response."""

    status: str = Field(..., examples=["healthy", "unhealthy"])
    version: str
    database: str = Field(..., examples=["connected", "disconnected"])
    uptime_seconds: float
    timestamp: datetime
