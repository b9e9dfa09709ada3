# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Authenticator API endpoints.

Assumptions:
- GET /api/v1/authenticators - Browse, filtered by owner, client and type
- GET /api/v1/authenticators/search?q= - Fuzzy search on type
- POST/GET/PUT/DELETE /api/v1/authenticators[/{id}]
- An authenticator stays with the client it was created for
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from roo.api.common import (
    assert_body_id, assert_new_entity, assert_unchanged, record_audit, set_location
)
from roo.api.dependencies import access_control
from roo.api.listing import PageParams, browse, build_list_response, page_params, page_response, search_window
from roo.auth.access import AccessControl
from roo.auth.scopes import AUTHENTICATOR_POLICY
from roo.config import settings
from roo.database.schema import Authenticator, AuthenticatorType, Client
from roo.database.session import commit_or_conflict, get_db
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/authenticators", tags=["authenticators"])

authenticator_access = access_control(AUTHENTICATOR_POLICY)

SORTABLE = {
    "created_date": Authenticator.created_date,
    "modified_date": Authenticator.modified_date,
    "type": Authenticator.type,
}
SEARCH_FIELDS = ["type"]


class AuthenticatorBody(BaseModel):
    """Schema for creating or updating an authenticator."""
    id: Optional[UUID] = None
    client: Optional[UUID] = None
    type: AuthenticatorType
    configuration: dict = Field(default_factory=dict)


class AuthenticatorResponse(BaseModel):
    """Schema for authenticator response."""
    id: str
    client: str
    type: AuthenticatorType
    configuration: dict
    created_date: datetime
    modified_date: datetime


def _to_response(authenticator: Authenticator) -> AuthenticatorResponse:
    return AuthenticatorResponse(
        id=authenticator.id,
        client=authenticator.client_id,
        type=authenticator.type,
        configuration=authenticator.configuration or {},
        created_date=authenticator.created_date,
        modified_date=authenticator.modified_date,
    )


@router.get("")
def browse_authenticators(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    client: Optional[UUID] = Query(None),
    type: Optional[AuthenticatorType] = Query(None),
    access: AccessControl = Depends(authenticator_access),
    db: Session = Depends(get_db)
):
    """Browse authenticators visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    client_filter = access.resolve_filter_entity(Client, client)
    
    query = db.query(Authenticator)
    if owner_filter is not None:
        query = query.filter(Authenticator.owned_by(owner_filter))
    if client_filter is not None:
        query = query.filter(Authenticator.client_id == client_filter.id)
    if type is not None:
        query = query.filter(Authenticator.type == type)
    
    return page_response(browse(query, Authenticator, page, SORTABLE), _to_response)


@router.get("/search")
def search_authenticators(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    client: Optional[UUID] = Query(None),
    type: Optional[AuthenticatorType] = Query(None),
    access: AccessControl = Depends(authenticator_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search authenticators by type."""
    owner_filter = access.resolve_ownership_filter(owner)
    client_filter = access.resolve_filter_entity(Client, client)
    
    query = SearchIndex(db).fuzzy_query(Authenticator, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    if client_filter is not None:
        query.add_equality_filter("client", client_filter)
    if type is not None:
        query.add_equality_filter("type", type)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(authenticator) for authenticator in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{authenticator_id:uuid}", response_model=AuthenticatorResponse)
def read_authenticator(
    authenticator_id: UUID,
    access: AccessControl = Depends(authenticator_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single authenticator."""
    authenticator = db.get(Authenticator, str(authenticator_id))
    access.assert_can_access(authenticator)
    return _to_response(authenticator)


@router.post("", response_model=AuthenticatorResponse, status_code=status.HTTP_201_CREATED)
def create_authenticator(
    body: AuthenticatorBody,
    request: Request,
    response: Response,
    access: AccessControl = Depends(authenticator_access),
    db: Session = Depends(get_db)
):
    """Configure an identity provider for a client."""
    assert_new_entity(body.id)
    client = access.require_entity_input(Client, body.client)
    access.assert_can_create_in(client.application)
    access.assert_not_admin_application(client.application)
    
    authenticator = Authenticator(client=client, type=body.type, configuration=body.configuration)
    db.add(authenticator)
    commit_or_conflict(db)
    
    record_audit(access, "create", "Authenticator", authenticator.id, body.model_dump(mode="json"))
    set_location(request, response, "read_authenticator", authenticator_id=authenticator.id)
    return _to_response(authenticator)


@router.put("/{authenticator_id:uuid}", response_model=AuthenticatorResponse)
def update_authenticator(
    authenticator_id: UUID,
    body: AuthenticatorBody,
    access: AccessControl = Depends(authenticator_access),
    db: Session = Depends(get_db)
):
    """Change an authenticator's type or configuration."""
    authenticator = db.get(Authenticator, str(authenticator_id))
    access.assert_can_access(authenticator)
    access.assert_not_admin_application(authenticator.application)
    assert_body_id(body.id, authenticator.id)
    assert_unchanged(body.client, authenticator.client_id, "client")
    
    authenticator.type = body.type
    authenticator.configuration = body.configuration
    commit_or_conflict(db)
    
    record_audit(access, "update", "Authenticator", authenticator.id, body.model_dump(mode="json"))
    return _to_response(authenticator)


@router.delete("/{authenticator_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_authenticator(
    authenticator_id: UUID,
    access: AccessControl = Depends(authenticator_access),
    db: Session = Depends(get_db)
):
    """Delete an authenticator."""
    authenticator = db.get(Authenticator, str(authenticator_id))
    access.assert_can_access(authenticator)
    access.assert_not_admin_application(authenticator.application)
    
    deleted_id = authenticator.id
    db.delete(authenticator)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "Authenticator", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
