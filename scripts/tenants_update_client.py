#!/usr/bin/env python3
"""
Tenant Update Client

Drives tenant updates through the Admin Console.

Usage:
    python tenants_update_client.py show
    python tenants_update_client.py start [--cluster-url URL] [--env-type TYPE]
    python tenants_update_client.py stop

The bearer token is read from ADMIN_CONSOLE_TOKEN. When it is unset and
DEV_IDENTITY_ID is set, a token is minted locally with the configured
JWT_SECRET_KEY (development only).
"""

import argparse
import json
import os
import sys
from typing import Optional
from uuid import UUID

import httpx


class TenantsUpdateClient:
    """
    Client for the tenant update endpoints of the Admin Console.
    """

    def __init__(self, api_url: str, token: str, timeout: float = 30.0):
        """
        Initialize the client.

        Args:
            api_url: Base URL of the Admin Console
            token: Bearer token of the caller
            timeout: Request timeout in seconds
        """
        self.api_url = api_url.rstrip('/')
        self.client = httpx.Client(
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout
        )

    def show(self) -> httpx.Response:
        """Get the state of the ongoing tenant update."""
        return self.client.get(f"{self.api_url}/api/tenants/update")

    def start(self, cluster_url: Optional[str] = None, env_type: Optional[str] = None) -> httpx.Response:
        """
        Start a tenant update.

        Args:
            cluster_url: Only update tenants on this cluster
            env_type: Only update environments of this type
        """
        params = {}
        if cluster_url is not None:
            params["clusterURL"] = cluster_url
        if env_type is not None:
            params["envType"] = env_type
        return self.client.post(f"{self.api_url}/api/tenants/update/start", params=params)

    def stop(self) -> httpx.Response:
        """Stop the ongoing tenant update."""
        return self.client.post(f"{self.api_url}/api/tenants/update/stop")

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def resolve_token() -> str:
    """Token from the environment, or a locally minted development token."""
    token = os.environ.get("ADMIN_CONSOLE_TOKEN")
    if token:
        return token

    identity_id = os.environ.get("DEV_IDENTITY_ID")
    if not identity_id:
        sys.exit("Set ADMIN_CONSOLE_TOKEN (or DEV_IDENTITY_ID to mint a dev token)")

    from admin_console.auth import create_access_token
    return create_access_token(UUID(identity_id))


def print_response(response: httpx.Response) -> None:
    print(f"HTTP {response.status_code}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


def main() -> int:
    parser = argparse.ArgumentParser(description="Drive tenant updates through the Admin Console")
    parser.add_argument("--api-url", default=os.environ.get("ADMIN_CONSOLE_URL", "http://localhost:8080"))
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("show", help="Show the ongoing tenant update")
    start = subparsers.add_parser("start", help="Start a tenant update")
    start.add_argument("--cluster-url")
    start.add_argument("--env-type")
    subparsers.add_parser("stop", help="Stop the ongoing tenant update")

    args = parser.parse_args()

    with TenantsUpdateClient(args.api_url, resolve_token()) as client:
        if args.command == "show":
            response = client.show()
        elif args.command == "start":
            response = client.start(cluster_url=args.cluster_url, env_type=args.env_type)
        else:
            response = client.stop()

    print_response(response)
    return 0 if response.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
