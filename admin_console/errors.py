"""
Error taxonomy and JSON error responses.

Errors are rendered in the JSON-API error format used by the tenant service:

    {"errors": [{"id": "...", "code": "unauthorized_error", "status": "401",
                 "title": "Unauthorized", "detail": "..."}]}
"""

import uuid
from typing import Any, Dict

from fastapi import status
from fastapi.responses import JSONResponse


# ============================================================================
# Errors
# ============================================================================

class AdminConsoleError(Exception):
    """Base for all errors that are reported to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_server_error"
    title: str = "Internal Server Error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthorizedError(AdminConsoleError):
    """Missing or invalid credentials, or no usable subject claim."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized_error"
    title = "Unauthorized"


class StorageError(AdminConsoleError):
    """The audit store could not persist or read records."""


class BadParameterError(AdminConsoleError):
    """A request parameter has an unusable value."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_parameter"
    title = "Bad Request"


# ============================================================================
# Responses
# ============================================================================

class ErrorResponder:
    """Formats errors as JSON-API error documents."""

    def to_body(self, error: AdminConsoleError) -> Dict[str, Any]:
        return {
            "errors": [
                {
                    "id": str(uuid.uuid4()),
                    "code": error.code,
                    "status": str(error.status_code),
                    "title": error.title,
                    "detail": error.message,
                }
            ]
        }

    def respond(self, error: AdminConsoleError) -> JSONResponse:
        headers = None
        if isinstance(error, UnauthorizedError):
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=error.status_code,
            content=self.to_body(error),
            headers=headers,
        )


_responder = ErrorResponder()


def get_error_responder() -> ErrorResponder:
    """Dependency injection for the error responder."""
    return _responder
