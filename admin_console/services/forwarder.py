"""
Forwarding of requests to the tenant service.

The forwarder is a transparent relay: the inbound method, path, query string,
headers and body are sent to the target service and its response is returned
as received. It does not retry and does not translate errors.
"""

import logging
from typing import Optional

import httpx
from fastapi import Request, Response

from admin_console.config import settings

logger = logging.getLogger(__name__)

# Connection-level headers that are not relayed (RFC 9110, section 7.6.1)
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# Request headers recomputed by the client for the new target
RECOMPUTED_REQUEST_HEADERS = frozenset({"host", "content-length"})


class DownstreamForwarder:
    """Relays requests through a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def forward(self, request: Request, target_base_url: str) -> Response:
        """
        Forward a request to the same path on ``target_base_url``.

        Returns:
            The downstream status code, headers and raw body

        Raises:
            httpx.HTTPError: If the downstream service cannot be reached
        """
        url = target_base_url.rstrip("/") + request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"
        headers = [
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
            and name.lower() not in RECOMPUTED_REQUEST_HEADERS
        ]
        body = await request.body()

        outbound = self._client.build_request(
            request.method,
            url,
            headers=headers,
            content=body,
        )
        logger.debug(f"Forwarding {request.method} {request.url.path} to {url}")

        upstream = await self._client.send(outbound, stream=True)
        try:
            # Raw bytes, so that a content-encoded body still matches its headers
            content = b"".join([chunk async for chunk in upstream.aiter_raw()])
        finally:
            await upstream.aclose()

        response = Response(content=content, status_code=upstream.status_code)
        # Response() sets its own content-length; downstream values replace it
        del response.headers["content-length"]
        for name, value in upstream.headers.multi_items():
            if name.lower() not in HOP_BY_HOP_HEADERS:
                response.headers.append(name, value)
        if (
            "content-length" not in response.headers
            and upstream.status_code >= 200
            and upstream.status_code not in (204, 304)
        ):
            response.headers["content-length"] = str(len(content))
        return response


# ============================================================================
# Shared client
# ============================================================================

_client: Optional[httpx.AsyncClient] = None


def create_http_client() -> httpx.AsyncClient:
    """Create the HTTP client used to reach the tenant service."""
    if settings.forward_timeout_seconds is not None:
        return httpx.AsyncClient(timeout=settings.forward_timeout_seconds)
    return httpx.AsyncClient()


async def init_http_client() -> None:
    """Create the shared client. Called on application startup."""
    global _client
    if _client is not None:
        return
    _client = create_http_client()
    logger.info("Tenant service HTTP client initialized")


async def close_http_client() -> None:
    """Close the shared client. Called on application shutdown."""
    global _client
    if _client is None:
        return
    await _client.aclose()
    _client = None
    logger.info("Tenant service HTTP client closed")


def get_forwarder() -> DownstreamForwarder:
    """Dependency injection for the forwarder."""
    if _client is None:
        raise RuntimeError("HTTP client not initialized. Call init_http_client() first.")
    return DownstreamForwarder(_client)
