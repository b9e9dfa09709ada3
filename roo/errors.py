# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
API error types and FastAPI exception handlers.

Every failure leaves the service as a JSON body of the form
{"error": <token>, "error_description": <text>}, where the token is the
lower-cased, underscored HTTP reason phrase ("not_found", "bad_request")
or a more specific OAuth2 token such as "invalid_scope".

Assumptions:
- Access and validation code raises these types; routers never build
  error responses by hand
- Request validation failures are client errors (400), not 422
"""
from http import HTTPStatus
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from roo.logging_utils import log_application_event


def error_token(status_code: int) -> str:
    """Build the canonical error token for an HTTP status code.
    
    Args:
        status_code: HTTP status code
        
    Returns:
        str: Reason phrase, lower-cased with spaces replaced by underscores
    """
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        return "error"
    return phrase.lower().replace(" ", "_").replace("-", "_")


class ApiError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_server_error"
    default_description = "Internal failure."

    def __init__(self, description: Optional[str] = None, headers: Optional[dict[str, str]] = None):
        self.description = description or self.default_description
        self.headers = headers
        super().__init__(self.description)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}({self.description})"


class BadRequestError(ApiError):
    """Malformed input, unresolvable reference or forbidden field change."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "bad_request"
    default_description = "Bad Request"


class InvalidScopeError(BadRequestError):
    """The caller's scopes do not permit the requested filter or link."""

    error = "invalid_scope"
    default_description = "The requested scope is invalid, unknown, or malformed."


class UnauthorizedError(ApiError):
    """Missing, unknown, expired or under-scoped bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"
    default_description = "Unauthorized"

    def __init__(self, description: Optional[str] = None, scopes: Optional[list[str]] = None):
        challenge = 'Bearer realm="roo"'
        if scopes:
            challenge += f', scope="{" ".join(scopes)}"'
        super().__init__(description, headers={"WWW-Authenticate": challenge})


class ForbiddenError(ApiError):
    """The entity exists and is visible, but may not be changed."""

    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"
    default_description = "Forbidden"


class NotFoundError(ApiError):
    """The entity does not exist or the caller may not know that it does."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"
    default_description = "Not Found"


class ConflictError(ApiError):
    """The write would violate a uniqueness rule."""

    status_code = status.HTTP_409_CONFLICT
    error = "conflict"
    default_description = "Conflict"


def _error_response(status_code: int, error: str, description: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"error": error, "error_description": description}),
        headers=headers,
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Render an ApiError raised anywhere below a route."""
    return _error_response(exc.status_code, exc.error, exc.description, exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing errors (unknown path, wrong method) in the same envelope."""
    return _error_response(
        exc.status_code,
        error_token(exc.status_code),
        str(exc.detail),
        getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as 400 bad_request."""
    fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
    log_application_event(
        "request_validation_failed",
        path=request.url.path,
        fields=fields,
    )
    description = "Invalid request: " + ", ".join(fields) if fields else "Invalid request."
    return _error_response(status.HTTP_400_BAD_REQUEST, "bad_request", description)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all error handlers to an application.
    
    Args:
        app: FastAPI application
    """
    app.exception_handler(ApiError)(api_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
