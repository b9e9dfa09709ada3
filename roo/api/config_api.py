# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Public configuration endpoint for the admin web UI.

Assumptions:
- GET /api/v1/config needs no token; the UI calls it before logging in
- Only the web UI client id and the admin scope names are exposed
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from roo.api.dependencies import get_admin_bootstrap
from roo.bootstrap import AdminBootstrap
from roo.config import settings
from roo.database.schema import ApplicationScope
from roo.database.session import get_db

router = APIRouter(prefix=f"/api/{settings.api_version}/config", tags=["config"])


class ConfigResponse(BaseModel):
    """Schema for the UI configuration."""
    client: str
    scopes: list[str]


@router.get("", response_model=ConfigResponse)
def read_config(
    bootstrap: AdminBootstrap = Depends(get_admin_bootstrap),
    db: Session = Depends(get_db)
):
    """Return what the web UI needs to start an OAuth2 login."""
    scopes = (
        db.query(ApplicationScope.name)
        .filter(ApplicationScope.application_id == bootstrap.admin_app_id.value)
        .order_by(ApplicationScope.name)
        .all()
    )
    return ConfigResponse(client=bootstrap.client_id, scopes=[name for (name,) in scopes])
