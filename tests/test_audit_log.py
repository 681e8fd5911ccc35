"""
Tests for the audit log store and transaction handling.
"""

import asyncio
import json
import uuid

import asyncpg
import pydantic
import pytest

from admin_console.database import Database, transactional
from admin_console.errors import StorageError
from admin_console.models import AuditRecord, EventType
from admin_console.services.audit_log import AuditLogRepository


def make_record(event_type=EventType.SHOW_TENANT_UPDATE, identity_id=None, **params):
    return AuditRecord(
        event_type=event_type,
        identity_id=identity_id or uuid.uuid4(),
        event_params=params,
    )


class TestCreate:
    """Tests for storing audit records."""

    @pytest.mark.asyncio
    async def test_create_commits_record(self, mock_db):
        repository = AuditLogRepository()
        record = make_record(EventType.START_TENANT_UPDATE, clusterURL="https://foo")

        entry = await transactional(mock_db, lambda conn: repository.create(conn, record))

        assert len(mock_db.audit_logs) == 1
        stored = mock_db.audit_logs[0]
        assert stored["id"] == entry.id
        assert stored["event_type"] == "StartTenantUpdate"
        assert stored["identity_id"] == record.identity_id
        assert json.loads(stored["event_params"]) == {"clusterURL": "https://foo"}
        assert entry.created_at is not None

    @pytest.mark.asyncio
    async def test_params_keep_insertion_order(self, mock_db):
        repository = AuditLogRepository()
        record = make_record(
            EventType.START_TENANT_UPDATE,
            clusterURL="https://foo",
            envType="stage",
        )

        await transactional(mock_db, lambda conn: repository.create(conn, record))

        assert mock_db.audit_logs[0]["event_params"] == '{"clusterURL": "https://foo", "envType": "stage"}'

    @pytest.mark.asyncio
    async def test_identical_records_are_stored_twice(self, mock_db):
        repository = AuditLogRepository()
        record = make_record()

        first = await transactional(mock_db, lambda conn: repository.create(conn, record))
        second = await transactional(mock_db, lambda conn: repository.create(conn, record))

        assert len(mock_db.audit_logs) == 2
        assert first.id != second.id

    def test_record_is_immutable(self):
        record = make_record()

        with pytest.raises(pydantic.ValidationError):
            record.identity_id = uuid.uuid4()


class TestTransactional:
    """Tests for the transaction helper."""

    @pytest.mark.asyncio
    async def test_insert_failure_rolls_back(self, mock_db):
        repository = AuditLogRepository()
        mock_db.insert_error = asyncpg.InterfaceError("connection is closed")

        with pytest.raises(StorageError) as exc_info:
            await transactional(mock_db, lambda conn: repository.create(conn, make_record()))

        assert mock_db.audit_logs == []
        assert mock_db.rollbacks == 1
        assert isinstance(exc_info.value.__cause__, asyncpg.InterfaceError)

    @pytest.mark.asyncio
    async def test_begin_failure_is_storage_error(self, mock_db):
        mock_db.transaction_error = ConnectionRefusedError("connection refused")

        with pytest.raises(StorageError, match="connection refused"):
            await transactional(mock_db, lambda conn: AuditLogRepository().create(conn, make_record()))

        assert mock_db.audit_logs == []

    @pytest.mark.asyncio
    async def test_timeout_is_storage_error(self, mock_db):
        mock_db.insert_error = asyncio.TimeoutError()

        with pytest.raises(StorageError) as exc_info:
            await transactional(mock_db, lambda conn: AuditLogRepository().create(conn, make_record()))

        assert mock_db.audit_logs == []
        assert isinstance(exc_info.value.__cause__, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_other_errors_propagate_unchanged(self, mock_db):
        async def fail(conn):
            raise ValueError("not a database fault")

        with pytest.raises(ValueError):
            await transactional(mock_db, fail)

        assert mock_db.rollbacks == 1


class TestList:
    """Tests for listing audit records."""

    async def _store(self, mock_db, *records):
        repository = AuditLogRepository()
        for record in records:
            await transactional(mock_db, lambda conn, r=record: repository.create(conn, r))

    @pytest.mark.asyncio
    async def test_newest_first(self, mock_db):
        first = make_record(EventType.START_TENANT_UPDATE)
        second = make_record(EventType.STOP_TENANT_UPDATE)
        await self._store(mock_db, first, second)

        result = await AuditLogRepository().list(mock_db)

        assert result.count == 2
        assert [e.event_type for e in result.audit_logs] == [
            EventType.STOP_TENANT_UPDATE,
            EventType.START_TENANT_UPDATE,
        ]

    @pytest.mark.asyncio
    async def test_filters(self, mock_db):
        alice = uuid.uuid4()
        await self._store(
            mock_db,
            make_record(EventType.SHOW_TENANT_UPDATE, identity_id=alice),
            make_record(EventType.START_TENANT_UPDATE, identity_id=alice, envType="run"),
            make_record(EventType.START_TENANT_UPDATE),
        )

        result = await AuditLogRepository().list(
            mock_db,
            identity_id=alice,
            event_type=EventType.START_TENANT_UPDATE,
        )

        assert result.count == 1
        entry = result.audit_logs[0]
        assert entry.identity_id == alice
        assert entry.event_params == {"envType": "run"}

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, mock_db):
        result = await AuditLogRepository().list(mock_db, limit=50000)

        assert result.limit == 1000

    @pytest.mark.asyncio
    async def test_fetch_failure_is_storage_error(self, mock_db):
        mock_db.fetch_error = asyncpg.InterfaceError("pool is closed")

        with pytest.raises(StorageError):
            await AuditLogRepository().list(mock_db)


class TestDatabase:
    """Tests for the pool owner before it is connected."""

    @pytest.mark.asyncio
    async def test_health_check_without_pool(self):
        assert await Database().health_check() is False

    def test_pool_requires_connect(self):
        with pytest.raises(RuntimeError):
            Database().pool
