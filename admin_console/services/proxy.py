"""
Audit-gated proxy to the tenant service.

Every tenant update operation runs the same sequence:

1. resolve the caller identity from the request credentials
2. store an audit record of the operation in its own transaction
3. forward the original request to the tenant service and relay the response

A failure in step 1 or 2 ends the request with an error response, so nothing
is forwarded without an audit record. Errors of the forward itself are not
handled here.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict
from uuid import UUID

from fastapi import Depends, Request, Response
from prometheus_client import Counter, Histogram

from admin_console.auth import locate_identity
from admin_console.config import settings
from admin_console.database import Database, get_db, transactional
from admin_console.errors import ErrorResponder, StorageError, UnauthorizedError, get_error_responder
from admin_console.models import AuditRecord, EventParams, EventType, StartTenantUpdateParams
from admin_console.services.audit_log import AuditLogRepository, get_audit_log_repository
from admin_console.services.forwarder import DownstreamForwarder, get_forwarder

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = "invalid authorization token (invalid 'sub' claim)"

ParamExtractor = Callable[[Request], Awaitable[EventParams]]
IdentityResolver = Callable[[Request], UUID]

# Prometheus metrics
tenant_update_requests = Counter(
    'tenant_update_requests_total',
    'Tenant update requests by outcome',
    ['event_type', 'outcome']
)
audit_write_duration = Histogram(
    'audit_write_seconds',
    'Audit record write duration'
)
forward_duration = Histogram(
    'tenant_service_forward_seconds',
    'Duration of requests forwarded to the tenant service'
)


# ============================================================================
# Parameter extraction
# ============================================================================

async def no_params(request: Request) -> EventParams:
    """Operations that record no parameters."""
    return {}


def _is_json(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


async def _json_body(request: Request) -> Dict[str, Any]:
    if not _is_json(request.headers.get("content-type", "")):
        return {}
    body = await request.body()
    if not body:
        return {}
    try:
        document = json.loads(body)
    except ValueError:
        # The tenant service rejects the body; the audit has no fields from it
        logger.debug("Request body is not valid JSON")
        return {}
    return document if isinstance(document, dict) else {}


async def start_params(request: Request) -> EventParams:
    """
    Parameters of a tenant update start.

    ``clusterURL`` and ``envType`` are read from the query string, or else from
    a JSON object body. A parameter that is not supplied is left out.
    """
    body = await _json_body(request)
    fields = {}
    for name in ("clusterURL", "envType"):
        if name in request.query_params:
            fields[name] = request.query_params[name]
        elif body.get(name) is not None:
            fields[name] = str(body[name])
    return StartTenantUpdateParams.model_validate(fields).to_event_params()


# ============================================================================
# Proxy
# ============================================================================

class TenantsUpdateProxy:
    """Runs tenant update operations through audit, then the tenant service."""

    def __init__(
        self,
        db: Database,
        repository: AuditLogRepository,
        forwarder: DownstreamForwarder,
        responder: ErrorResponder,
        tenant_service_url: str,
        resolve_identity: IdentityResolver = locate_identity,
    ):
        self._db = db
        self._repository = repository
        self._forwarder = forwarder
        self._responder = responder
        self._tenant_service_url = tenant_service_url
        self._resolve_identity = resolve_identity

    async def handle(
        self,
        request: Request,
        event_type: EventType,
        extract_params: ParamExtractor,
    ) -> Response:
        """
        Audit an operation and forward the request to the tenant service.

        Args:
            request: The inbound request, forwarded as is
            event_type: Type of the audit record
            extract_params: Builds the audit record parameters from the request

        Returns:
            The tenant service response, or an error response when the caller
            is not authenticated or the audit record cannot be stored
        """
        try:
            identity_id = self._resolve_identity(request)
        except UnauthorizedError as e:
            logger.error(f"Unable to proxy to tenant service: {e}")
            tenant_update_requests.labels(event_type=event_type.value, outcome="unauthorized").inc()
            return self._responder.respond(UnauthorizedError(INVALID_TOKEN_MESSAGE))

        record = AuditRecord(
            event_type=event_type,
            identity_id=identity_id,
            event_params=await extract_params(request),
        )

        async def create_record(conn):
            return await self._repository.create(conn, record)

        try:
            with audit_write_duration.time():
                await transactional(self._db, create_record)
        except StorageError as e:
            logger.error(f"Unable to proxy to tenant service: {e}")
            tenant_update_requests.labels(event_type=event_type.value, outcome="storage_failure").inc()
            return self._responder.respond(e)

        with forward_duration.time():
            response = await self._forwarder.forward(request, self._tenant_service_url)
        tenant_update_requests.labels(event_type=event_type.value, outcome="forwarded").inc()
        return response

    async def show(self, request: Request) -> Response:
        """Information about the ongoing tenant update."""
        return await self.handle(request, EventType.SHOW_TENANT_UPDATE, no_params)

    async def start(self, request: Request) -> Response:
        """Start a tenant update."""
        return await self.handle(request, EventType.START_TENANT_UPDATE, start_params)

    async def stop(self, request: Request) -> Response:
        """Stop the ongoing tenant update."""
        return await self.handle(request, EventType.STOP_TENANT_UPDATE, no_params)


def get_tenants_update_proxy(
    db: Database = Depends(get_db),
    repository: AuditLogRepository = Depends(get_audit_log_repository),
    forwarder: DownstreamForwarder = Depends(get_forwarder),
    responder: ErrorResponder = Depends(get_error_responder),
) -> TenantsUpdateProxy:
    """Dependency injection for the tenant update proxy."""
    return TenantsUpdateProxy(
        db=db,
        repository=repository,
        forwarder=forwarder,
        responder=responder,
        tenant_service_url=settings.get_tenant_service_url(),
    )
