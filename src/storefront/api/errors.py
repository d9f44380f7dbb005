"""JSON error responses for the storefront API.

Every error body has the same shape::

    {"error": "NotFound", "details": "...", "timestamp": "2026-01-10T12:34:56+00:00"}
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import ORJSONResponse

from storefront.errors import CatalogSourceError

logger = logging.getLogger(__name__)


def error_body(code: str, text: str) -> dict[str, Any]:
    return {"error": code, "details": text, "timestamp": datetime.now(UTC).isoformat()}


class StorefrontApiError(HTTPException):
    """Base exception for storefront API errors."""

    def __init__(self, status_code: int, code: str, text: str):
        self.code = code
        self.text = text
        super().__init__(status_code=status_code, detail=text)

    def to_dict(self) -> dict[str, Any]:
        return error_body(self.code, self.text)


class NotFoundError(StorefrontApiError):
    """Resource not found (404)."""

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            status_code=404,
            code="NotFound",
            text=f"{resource_type} '{identifier}' not found",
        )


class BadRequestError(StorefrontApiError):
    """Invalid request (400)."""

    def __init__(self, text: str):
        super().__init__(status_code=400, code="BadRequest", text=text)


class SourceUnavailableError(StorefrontApiError):
    """Catalog database unreachable (503)."""

    def __init__(self, text: str = "Database connection failed"):
        super().__init__(status_code=503, code="ServiceUnavailable", text=text)


async def storefront_api_exception_handler(
    request: Request, exc: StorefrontApiError
) -> ORJSONResponse:
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def catalog_source_exception_handler(
    request: Request, exc: CatalogSourceError
) -> ORJSONResponse:
    """A source failure that reached the API: the database is unavailable."""
    logger.error(f"Catalog source failure on {request.url.path}: {exc}")
    error = SourceUnavailableError()
    return ORJSONResponse(status_code=error.status_code, content=error.to_dict())


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Exception handler for unexpected errors."""
    logger.exception(f"Unhandled error on {request.url.path}")
    return ORJSONResponse(
        status_code=500,
        content=error_body("InternalServerError", "An unexpected error occurred"),
    )
