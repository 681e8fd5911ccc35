"""
Audit log store.

Audit records are append-only: this module inserts and reads them, it never
updates or deletes them. Writes run on a connection supplied by the caller so
that they take part in the caller's transaction.
"""

import json
import logging
import uuid
from typing import Optional
from uuid import UUID

from asyncpg import Connection

from admin_console.database import DATABASE_ERRORS, Database
from admin_console.errors import StorageError
from admin_console.models import AuditLogEntry, AuditLogList, AuditRecord, EventType

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 1000

SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_logs (
    id            uuid PRIMARY KEY,
    event_type    text NOT NULL,
    identity_id   uuid NOT NULL,
    event_params  jsonb NOT NULL DEFAULT '{}'::jsonb,
    created_at    timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS audit_logs_identity_id_idx ON audit_logs (identity_id);
CREATE INDEX IF NOT EXISTS audit_logs_event_type_created_at_idx
    ON audit_logs (event_type, created_at);
"""


async def ensure_schema(db: Database) -> None:
    """Create the audit log table and its indexes if they do not exist."""
    await db.execute(SCHEMA)
    logger.info("Audit log schema ready")


def _row_to_entry(row) -> AuditLogEntry:
    params = row['event_params']
    if isinstance(params, str):
        params = json.loads(params)
    return AuditLogEntry(
        id=row['id'],
        event_type=EventType(row['event_type']),
        identity_id=row['identity_id'],
        event_params=params,
        created_at=row['created_at'],
    )


class AuditLogRepository:
    """Persistence of audit records in the audit_logs table."""

    async def create(self, conn: Connection, record: AuditRecord) -> AuditLogEntry:
        """
        Insert an audit record.

        Args:
            conn: Connection of the enclosing transaction
            record: The record to store

        Returns:
            The stored record with its ID and creation time
        """
        record_id = uuid.uuid4()
        row = await conn.fetchrow(
            """
            INSERT INTO audit_logs (id, event_type, identity_id, event_params)
            VALUES ($1, $2, $3, $4::jsonb)
            RETURNING id, created_at
            """,
            record_id,
            record.event_type.value,
            record.identity_id,
            json.dumps(record.event_params),
        )

        logger.info(
            f"Audit record stored: id={row['id']}, type={record.event_type.value}, "
            f"identity={record.identity_id}"
        )

        return AuditLogEntry(
            id=row['id'],
            event_type=record.event_type,
            identity_id=record.identity_id,
            event_params=record.event_params,
            created_at=row['created_at'],
        )

    async def list(
        self,
        db: Database,
        identity_id: Optional[UUID] = None,
        event_type: Optional[EventType] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> AuditLogList:
        """
        List audit records, newest first.

        Args:
            db: Database to read from
            identity_id: Only records of this identity
            event_type: Only records of this type
            limit: Maximum number of records (clamped to 1000)
            offset: Number of records to skip
        """
        conditions = []
        params = []

        if identity_id:
            conditions.append(f"identity_id = ${len(params) + 1}")
            params.append(identity_id)

        if event_type:
            conditions.append(f"event_type = ${len(params) + 1}")
            params.append(event_type.value)

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        limit = min(limit, MAX_LIST_LIMIT)

        query = f"""
            SELECT id, event_type, identity_id, event_params, created_at
            FROM audit_logs
            WHERE {where_clause}
            ORDER BY created_at DESC
            LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
        """
        params.extend([limit, offset])

        try:
            rows = await db.fetch(query, *params)
        except DATABASE_ERRORS as e:
            raise StorageError(f"failed to list audit records: {e}") from e

        entries = [_row_to_entry(row) for row in rows]
        return AuditLogList(
            audit_logs=entries,
            count=len(entries),
            limit=limit,
            offset=offset,
        )


_repository = AuditLogRepository()


def get_audit_log_repository() -> AuditLogRepository:
    """Dependency injection for the audit log repository."""
    return _repository
