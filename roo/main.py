# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Main FastAPI application entry point.

This module creates and configures the FastAPI application.

Assumptions:
- FastAPI instance should include OpenAPI documentation
- API versioning is handled via path prefix
- Every request is logged once with its status and duration
"""
import time
import uuid

from fastapi import FastAPI, Request

from roo.api.applications import router as applications_router
from roo.api.authenticators import router as authenticators_router
from roo.api.client_uris import redirects_router, referrers_router
from roo.api.clients import router as clients_router
from roo.api.config_api import router as config_router
from roo.api.identities import router as identities_router
from roo.api.roles import router as roles_router
from roo.api.scopes import router as scopes_router
from roo.api.tokens import router as tokens_router
from roo.api.users import router as users_router
from roo.config import settings
from roo.errors import register_exception_handlers
from roo.logging_config import bind_context, clear_context, get_logger

VERSION = "1.0.0"

logger = get_logger("roo.api")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.
    
    Returns:
        FastAPI: Configured FastAPI application instance
        
    Assumptions:
    - OpenAPI docs are enabled by default
    - Database schema is initialized on startup
    - The admin application is created lazily by the first request
    """
    from roo.database.session import init_db
    init_db()
    
    app = FastAPI(
        title="Roo Admin",
        description="Administrative API for OAuth2 applications, clients, users and tokens",
        version=VERSION,
        docs_url=f"/api/{settings.api_version}/docs",
        redoc_url=f"/api/{settings.api_version}/redoc",
        openapi_url=f"/api/{settings.api_version}/openapi.json",
    )
    
    register_exception_handlers(app)
    
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        bind_context(
            request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()
        try:
            response = await call_next(request)
            logger.info(
                "api_request",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            return response
        finally:
            clear_context()
    
    @app.get("/api/health")
    async def health_check():
        """API health check endpoint.
        
        Returns:
            dict: Service status information
        """
        return {
            "service": "roo",
            "version": VERSION,
            "status": "running"
        }
    
    app.include_router(config_router)
    app.include_router(applications_router)
    app.include_router(clients_router)
    app.include_router(redirects_router)
    app.include_router(referrers_router)
    app.include_router(authenticators_router)
    app.include_router(roles_router)
    app.include_router(scopes_router)
    app.include_router(users_router)
    app.include_router(identities_router)
    app.include_router(tokens_router)
    
    return app


def cli() -> None:
    """Run the API server with uvicorn."""
    import uvicorn
    
    uvicorn.run(
        "roo.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
    )
