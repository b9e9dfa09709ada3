# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Client redirect and referrer URI endpoints.

Both subresources share one shape, so their routers are built by
build_client_uri_router.

Assumptions:
- Paths live under /api/v1/clients/{client_id}/redirects and /referrers
- Reading or changing URIs requires access to the parent client (404)
- Creating a URI under an inaccessible client is a bad request (400),
  since the parent route itself was matched
- A URI is unique within its client
"""
from datetime import datetime
from typing import Optional, Type, Union
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from roo.api.common import assert_body_id, assert_new_entity, record_audit, set_location
from roo.api.dependencies import access_control
from roo.api.listing import PageParams, browse, page_params, page_response
from roo.auth.access import AccessControl
from roo.auth.scopes import CLIENT_POLICY
from roo.config import settings
from roo.database.schema import Client, ClientRedirect, ClientReferrer
from roo.database.session import commit_or_conflict, get_db
from roo.errors import ConflictError, NotFoundError

ClientUri = Union[ClientRedirect, ClientReferrer]

client_access = access_control(CLIENT_POLICY)


class ClientUriBody(BaseModel):
    """Schema for creating or updating a client URI."""
    id: Optional[UUID] = None
    uri: str = Field(min_length=1, max_length=2048)


class ClientUriResponse(BaseModel):
    """Schema for client URI response."""
    id: str
    client: str
    uri: str
    created_date: datetime
    modified_date: datetime


def _to_response(entity: ClientUri) -> ClientUriResponse:
    return ClientUriResponse(
        id=entity.id,
        client=entity.client_id,
        uri=entity.uri,
        created_date=entity.created_date,
        modified_date=entity.modified_date,
    )


def _assert_unique(db: Session, model: Type[ClientUri], client: Client, uri: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(model).filter(model.client_id == client.id, model.uri == uri)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    if query.count():
        raise ConflictError("The URI is already registered for this client.")


def build_client_uri_router(model: Type[ClientUri], segment: str) -> APIRouter:
    """Build the router for one kind of client URI.
    
    Args:
        model: ClientRedirect or ClientReferrer
        segment: Path segment below the client ("redirects" or "referrers")
        
    Returns:
        APIRouter: Browse, read, create, update and delete routes
    """
    router = APIRouter(
        prefix=f"/api/{settings.api_version}/clients/{{client_id:uuid}}/{segment}",
        tags=["clients"],
    )
    entity_type = model.__name__
    read_route = f"read_client_{segment}"
    sortable = {
        "created_date": model.created_date,
        "modified_date": model.modified_date,
        "uri": model.uri,
    }

    def _load(db: Session, client: Client, uri_id: UUID) -> ClientUri:
        entity = db.get(model, str(uri_id))
        if entity is None or entity.client_id != client.id:
            raise NotFoundError()
        return entity

    @router.get("", name=f"browse_client_{segment}")
    def browse_uris(
        client_id: UUID,
        page: PageParams = Depends(page_params),
        access: AccessControl = Depends(client_access),
        db: Session = Depends(get_db)
    ):
        client = db.get(Client, str(client_id))
        access.assert_can_access(client)
        query = db.query(model).filter(model.client_id == client.id)
        return page_response(browse(query, model, page, sortable), _to_response)

    @router.get("/{uri_id:uuid}", name=read_route, response_model=ClientUriResponse)
    def read_uri(
        client_id: UUID,
        uri_id: UUID,
        access: AccessControl = Depends(client_access),
        db: Session = Depends(get_db)
    ):
        client = db.get(Client, str(client_id))
        access.assert_can_access(client)
        entity = _load(db, client, uri_id)
        access.assert_can_access(entity)
        return _to_response(entity)

    @router.post("", name=f"create_client_{segment}", response_model=ClientUriResponse,
                 status_code=status.HTTP_201_CREATED)
    def create_uri(
        client_id: UUID,
        body: ClientUriBody,
        request: Request,
        response: Response,
        access: AccessControl = Depends(client_access),
        db: Session = Depends(get_db)
    ):
        client = db.get(Client, str(client_id))
        access.assert_can_access_subresource(client)
        access.assert_not_admin_application(client.application)
        assert_new_entity(body.id)
        _assert_unique(db, model, client, body.uri)
        
        entity = model(client=client, uri=body.uri)
        db.add(entity)
        commit_or_conflict(db)
        
        record_audit(access, "create", entity_type, entity.id, body.model_dump(mode="json"), client_id=client.id)
        set_location(request, response, read_route, client_id=client.id, uri_id=entity.id)
        return _to_response(entity)

    @router.put("/{uri_id:uuid}", name=f"update_client_{segment}", response_model=ClientUriResponse)
    def update_uri(
        client_id: UUID,
        uri_id: UUID,
        body: ClientUriBody,
        access: AccessControl = Depends(client_access),
        db: Session = Depends(get_db)
    ):
        client = db.get(Client, str(client_id))
        access.assert_can_access(client)
        entity = _load(db, client, uri_id)
        access.assert_not_admin_application(client.application)
        assert_body_id(body.id, entity.id)
        _assert_unique(db, model, client, body.uri, exclude_id=entity.id)
        
        entity.uri = body.uri
        commit_or_conflict(db)
        
        record_audit(access, "update", entity_type, entity.id, body.model_dump(mode="json"), client_id=client.id)
        return _to_response(entity)

    @router.delete("/{uri_id:uuid}", name=f"delete_client_{segment}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_uri(
        client_id: UUID,
        uri_id: UUID,
        access: AccessControl = Depends(client_access),
        db: Session = Depends(get_db)
    ):
        client = db.get(Client, str(client_id))
        access.assert_can_access(client)
        entity = _load(db, client, uri_id)
        access.assert_not_admin_application(client.application)
        
        deleted_id = entity.id
        db.delete(entity)
        commit_or_conflict(db)
        
        record_audit(access, "delete", entity_type, deleted_id, client_id=str(client_id))
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


redirects_router = build_client_uri_router(ClientRedirect, "redirects")
referrers_router = build_client_uri_router(ClientReferrer, "referrers")
