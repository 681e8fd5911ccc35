"""
FastAPI Application Entry Point

This is the main application module that sets up the FastAPI app,
configures middleware, and includes all routers.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from admin_console.config import settings
from admin_console.database import database
from admin_console.errors import AdminConsoleError, get_error_responder
from admin_console.routers import audit_logs, health, tenants_update
from admin_console.services.audit_log import ensure_schema
from admin_console.services.forwarder import close_http_client, init_http_client

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    - Startup: database pool, audit log schema, tenant service HTTP client
    - Shutdown: close both
    """
    logger.info("Starting Admin Console...")
    await database.connect()
    await ensure_schema(database)
    await init_http_client()
    logger.info("Admin Console started successfully")

    yield

    logger.info("Shutting down Admin Console...")
    await close_http_client()
    await database.disconnect()
    logger.info("Admin Console stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    # Admin Console API

    Administrative front for the tenant service. Every tenant update
    operation is recorded in an append-only audit log before it is
    forwarded to the tenant service.

    - **Show** `GET /api/tenants/update`
    - **Start** `POST /api/tenants/update/start`
    - **Stop** `POST /api/tenants/update/stop`
    - **Audit log** `GET /api/auditlogs`

    All operations require a bearer token whose `sub` claim is the
    caller's identity ID.
    """,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan
)


# ============================================================================
# Middleware
# ============================================================================

if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def add_request_timing(request: Request, call_next):
    """Add request timing header for monitoring."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    # Tenant service responses are relayed with their own headers only
    if request.url.path.startswith(tenants_update.router.prefix):
        logger.debug(f"{request.method} {request.url.path} relayed in {process_time:.4f}s")
    else:
        response.headers["X-Process-Time"] = str(process_time)
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests."""
    logger.debug(f"{request.method} {request.url.path}")
    response = await call_next(request)
    return response


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(AdminConsoleError)
async def admin_console_error_handler(request: Request, exc: AdminConsoleError):
    """Errors raised outside the proxy, e.g. by authentication dependencies."""
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return get_error_responder().respond(exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Returns generic error responses to prevent information leakage.
    Detailed errors are logged internally.
    """
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# ============================================================================
# Include Routers
# ============================================================================

# Tenant update operations, audited and proxied to the tenant service
app.include_router(tenants_update.router)

# Audit log queries
app.include_router(audit_logs.router)

# Health check and monitoring
app.include_router(health.router)


# ============================================================================
# Root Endpoint
# ============================================================================

@app.get("/", tags=["root"])
async def root():
    """Basic service information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "running"
    }


# ============================================================================
# Development Server
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "admin_console.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers
    )
