"""
Test fixtures and configuration for pytest.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from admin_console.auth import create_access_token
from admin_console.database import get_db
from admin_console.main import app
from admin_console.services.forwarder import DownstreamForwarder, get_forwarder

TENANT_SERVICE_URL = "http://localhost:8090"


class MockConnection:
    """Connection of a MockDatabase transaction."""

    def __init__(self, db: "MockDatabase"):
        self.db = db
        self.pending = []

    async def fetchrow(self, query: str, *args):
        """Mock fetchrow."""
        if "INSERT INTO audit_logs" in query:
            if self.db.insert_error is not None:
                raise self.db.insert_error
            row = {
                "id": args[0],
                "event_type": args[1],
                "identity_id": args[2],
                "event_params": args[3],
                "created_at": self.db.next_timestamp(),
            }
            self.pending.append(row)
            return {"id": row["id"], "created_at": row["created_at"]}
        return None


class MockDatabase:
    """Mock database for testing without PostgreSQL."""

    def __init__(self):
        self.audit_logs = []
        self.transaction_error: Optional[Exception] = None
        self.insert_error: Optional[Exception] = None
        self.fetch_error: Optional[Exception] = None
        self.healthy = True
        self.rollbacks = 0
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def next_timestamp(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    @asynccontextmanager
    async def transaction(self):
        """Mock transaction: inserts become visible only on commit."""
        if self.transaction_error is not None:
            raise self.transaction_error
        conn = MockConnection(self)
        try:
            yield conn
        except BaseException:
            self.rollbacks += 1
            raise
        self.audit_logs.extend(conn.pending)

    async def fetch(self, query: str, *args):
        """Mock fetch of the audit log listing query."""
        if self.fetch_error is not None:
            raise self.fetch_error
        filters = list(args[:-2])
        limit, offset = args[-2:]
        rows = list(self.audit_logs)
        if "identity_id = $" in query:
            identity_id = filters.pop(0)
            rows = [r for r in rows if r["identity_id"] == identity_id]
        if "event_type = $" in query:
            event_type = filters.pop(0)
            rows = [r for r in rows if r["event_type"] == event_type]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return rows[offset:offset + limit]

    async def execute(self, query: str, *args):
        """Mock execute."""
        return "CREATE TABLE"

    async def health_check(self) -> bool:
        return self.healthy


class MockTenantService:
    """Records forwarded requests and answers them with a canned response."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.headers = {"content-type": "application/json"}
        self.content = b'{"data": {"status": "finished"}}'
        self.error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        # Streamed like a network response so the body can be read raw
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            stream=httpx.ByteStream(self.content),
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(lambda request: self.handler(request))


@pytest.fixture
def mock_db() -> MockDatabase:
    """Create a mock database for testing."""
    return MockDatabase()


@pytest.fixture
def tenant_service() -> MockTenantService:
    return MockTenantService()


@pytest.fixture
def forwarder(tenant_service: MockTenantService) -> DownstreamForwarder:
    return DownstreamForwarder(httpx.AsyncClient(transport=tenant_service.transport()))


@pytest.fixture
def identity_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def auth_headers(identity_id: uuid.UUID) -> dict:
    """Authorization header with a valid token for identity_id."""
    return {"Authorization": f"Bearer {create_access_token(identity_id)}"}


@pytest.fixture
def client(mock_db: MockDatabase, forwarder: DownstreamForwarder, monkeypatch):
    """Test client with the database and the tenant service replaced."""
    from admin_console.config import settings

    monkeypatch.setattr(settings, "tenant_service_url", TENANT_SERVICE_URL)
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_forwarder] = lambda: forwarder
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Build a starlette Request without a server."""

    def _make(
        method: str = "GET",
        path: str = "/api/tenants/update",
        query: str = "",
        body: bytes = b"",
        headers: Optional[dict] = None,
    ) -> Request:
        sent = False

        async def receive():
            nonlocal sent
            if sent:
                return {"type": "http.disconnect"}
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        scope = {
            "type": "http",
            "http_version": "1.1",
            "scheme": "http",
            "method": method,
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": query.encode(),
            "headers": [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in (headers or {}).items()
            ],
            "server": ("testserver", 80),
            "client": ("testclient", 50000),
        }
        return Request(scope, receive)

    return _make
