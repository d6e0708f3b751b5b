"""
Error types and FastAPI handlers.

Every failure is rendered with the storefront envelope
``{"success": false, "error": "<message>"}`` so the presentation layer can
treat search, facet and admin responses uniformly.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidRequest(APIError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": field} if field else None,
        )


class InvalidSearchRequest(InvalidRequest):
    """A search parameter broke a validation rule. Raised before any query runs."""


class AuthenticationRequired(APIError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class AdminRequired(APIError):
    def __init__(self, message: str = "Admin privileges required"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


class ResourceNotFound(APIError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id},
        )


class OperationInProgress(APIError):
    def __init__(self, message: str):
        super().__init__(message=message, status_code=status.HTTP_409_CONFLICT)


class CatalogStoreError(APIError):
    """The catalog store failed (connection loss, server error, bulk write failure)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class SearchTimeout(CatalogStoreError):
    """The request deadline elapsed before the catalog store answered."""


def _envelope(message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": message}
    if details:
        body["details"] = details
    return body


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register the envelope-producing handlers on the app.

    Store failures are returned with their generic message only; the
    details (request parameters, batch numbers) stay in the logs.
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        if exc.status_code >= 500:
            logger.error("api error path=%s msg=%s details=%s", request.url.path, exc.message, exc.details)
            return JSONResponse(status_code=exc.status_code, content=_envelope(exc.message))
        logger.warning("client error path=%s status=%s msg=%s", request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_envelope(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("request validation error path=%s errors=%s", request.url.path, exc.errors())
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_envelope("Request validation failed", {"errors": errors}),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("unexpected error path=%s err=%s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope("An unexpected error occurred"),
        )
