"""
Tenant update endpoints, proxied to the tenant service.
"""

from fastapi import APIRouter, Depends, Request

from admin_console.services.proxy import TenantsUpdateProxy, get_tenants_update_proxy

router = APIRouter(prefix="/api/tenants/update", tags=["tenants update"])


@router.get("")
async def show_tenants_update(
    request: Request,
    proxy: TenantsUpdateProxy = Depends(get_tenants_update_proxy)
):
    """
    Show information about the ongoing tenant update.

    The call is recorded in the audit log, then answered by the tenant service.

    **Headers:**
    - `Authorization: Bearer <token>` (required)
    """
    return await proxy.show(request)


@router.post("/start")
async def start_tenants_update(
    request: Request,
    proxy: TenantsUpdateProxy = Depends(get_tenants_update_proxy)
):
    """
    Start a tenant update.

    **Optional parameters** (query string or JSON body):
    - `clusterURL`: Only update tenants on this cluster
    - `envType`: Only update environments of this type

    The parameters that are supplied are recorded in the audit log along with
    the caller identity. The request is then forwarded to the tenant service.
    """
    return await proxy.start(request)


@router.post("/stop")
async def stop_tenants_update(
    request: Request,
    proxy: TenantsUpdateProxy = Depends(get_tenants_update_proxy)
):
    """Stop the ongoing tenant update."""
    return await proxy.stop(request)
