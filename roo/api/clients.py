# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Client API endpoints.

Assumptions:
- GET /api/v1/clients - Browse, filtered by owner, application and type
- GET /api/v1/clients/search?q= - Fuzzy search on name
- POST/GET/PUT/DELETE /api/v1/clients[/{id}]
- A client belongs to one application for its whole life
- client_secret is write-only
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
from roo.auth.scopes import CLIENT_POLICY
from roo.config import settings
from roo.database.schema import Application, Client, ClientType
from roo.database.session import commit_or_conflict, get_db
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/clients", tags=["clients"])

client_access = access_control(CLIENT_POLICY)

SORTABLE = {
    "created_date": Client.created_date,
    "modified_date": Client.modified_date,
    "name": Client.name,
    "type": Client.type,
}
SEARCH_FIELDS = ["name"]


class ClientCreate(BaseModel):
    """Schema for creating a client."""
    id: Optional[UUID] = None
    application: Optional[UUID] = None
    name: str = Field(min_length=1, max_length=255)
    type: ClientType
    client_secret: Optional[str] = None
    configuration: dict = Field(default_factory=dict)


class ClientUpdate(BaseModel):
    """Schema for updating a client."""
    id: Optional[UUID] = None
    application: Optional[UUID] = None
    name: str = Field(min_length=1, max_length=255)
    type: ClientType
    client_secret: Optional[str] = None
    configuration: dict = Field(default_factory=dict)


class ClientResponse(BaseModel):
    """Schema for client response."""
    id: str
    application: str
    name: str
    type: ClientType
    configuration: dict
    created_date: datetime
    modified_date: datetime


def _to_response(client: Client) -> ClientResponse:
    return ClientResponse(
        id=client.id,
        application=client.application_id,
        name=client.name,
        type=client.type,
        configuration=client.configuration or {},
        created_date=client.created_date,
        modified_date=client.modified_date,
    )


@router.get("")
def browse_clients(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    type: Optional[ClientType] = Query(None),
    access: AccessControl = Depends(client_access),
    db: Session = Depends(get_db)
):
    """Browse clients visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    
    query = db.query(Client)
    if owner_filter is not None:
        query = query.filter(Client.owned_by(owner_filter))
    if application_filter is not None:
        query = query.filter(Client.application_id == application_filter.id)
    if type is not None:
        query = query.filter(Client.type == type)
    
    return page_response(browse(query, Client, page, SORTABLE), _to_response)


@router.get("/search")
def search_clients(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    access: AccessControl = Depends(client_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search clients by name."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    
    query = SearchIndex(db).fuzzy_query(Client, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    if application_filter is not None:
        query.add_equality_filter("application", application_filter)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(client) for client in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{client_id:uuid}", response_model=ClientResponse)
def read_client(
    client_id: UUID,
    access: AccessControl = Depends(client_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single client."""
    client = db.get(Client, str(client_id))
    access.assert_can_access(client)
    return _to_response(client)


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    body: ClientCreate,
    request: Request,
    response: Response,
    access: AccessControl = Depends(client_access),
    db: Session = Depends(get_db)
):
    """Register a client in an application the caller may manage."""
    assert_new_entity(body.id)
    application = access.require_entity_input(Application, body.application)
    access.assert_can_create_in(application)
    access.assert_not_admin_application(application)
    
    client = Client(
        application=application,
        name=body.name,
        type=body.type,
        client_secret=body.client_secret,
        configuration=body.configuration,
    )
    db.add(client)
    commit_or_conflict(db)
    
    record_audit(access, "create", "Client", client.id, body.model_dump(mode="json"))
    set_location(request, response, "read_client", client_id=client.id)
    return _to_response(client)


@router.put("/{client_id:uuid}", response_model=ClientResponse)
def update_client(
    client_id: UUID,
    body: ClientUpdate,
    access: AccessControl = Depends(client_access),
    db: Session = Depends(get_db)
):
    """Update a client's name, type, secret and configuration."""
    client = db.get(Client, str(client_id))
    access.assert_can_access(client)
    access.assert_not_admin_application(client.application)
    assert_body_id(body.id, client.id)
    assert_unchanged(body.application, client.application_id, "application")
    
    client.name = body.name
    client.type = body.type
    client.client_secret = body.client_secret
    client.configuration = body.configuration
    commit_or_conflict(db)
    
    record_audit(access, "update", "Client", client.id, body.model_dump(mode="json"))
    return _to_response(client)


@router.delete("/{client_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: UUID,
    access: AccessControl = Depends(client_access),
    db: Session = Depends(get_db)
):
    """Delete a client with its URIs, authenticators and tokens."""
    client = db.get(Client, str(client_id))
    access.assert_can_access(client)
    access.assert_not_admin_application(client.application)
    
    deleted_id = client.id
    db.delete(client)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "Client", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
