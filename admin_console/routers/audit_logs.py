"""
Audit log query endpoint - GET /api/auditlogs
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from admin_console.auth import require_identity
from admin_console.database import Database, get_db
from admin_console.errors import BadParameterError
from admin_console.models import AuditLogList, EventType
from admin_console.services.audit_log import AuditLogRepository, get_audit_log_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["audit logs"])


@router.get("/auditlogs", response_model=AuditLogList)
async def list_audit_logs(
    identity_id: Optional[str] = None,
    event_type: Optional[str] = None,
    limit: int = Query(default=100, ge=1),
    offset: int = Query(default=0, ge=0),
    caller: UUID = Depends(require_identity),
    db: Database = Depends(get_db),
    repository: AuditLogRepository = Depends(get_audit_log_repository)
):
    """
    List audit records, newest first.

    **Query Parameters:**
    - `identity_id`: Only records of this identity
    - `event_type`: `ShowTenantUpdate`, `StartTenantUpdate` or `StopTenantUpdate`
    - `limit`: Maximum number of records to return (default: 100, max: 1000)
    - `offset`: Number of records to skip (for pagination)
    """
    identity_filter = None
    if identity_id:
        try:
            identity_filter = UUID(identity_id)
        except ValueError:
            raise BadParameterError(f"identity_id is not a valid UUID: {identity_id}")

    type_filter = None
    if event_type:
        try:
            type_filter = EventType(event_type)
        except ValueError:
            raise BadParameterError(f"unknown event_type: {event_type}")

    logger.debug(f"Audit log query by {caller}")

    return await repository.list(
        db,
        identity_id=identity_filter,
        event_type=type_filter,
        limit=limit,
        offset=offset,
    )
