# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Application scope API endpoints.

Assumptions:
- GET /api/v1/scopes - Browse, filtered by owner, application and role
- GET /api/v1/scopes/search?q= - Fuzzy search on name
- POST/GET/PUT/DELETE /api/v1/scopes[/{id}]
- Scope names are unique within an application
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
from roo.auth.scopes import SCOPE_POLICY
from roo.config import settings
from roo.database.schema import Application, ApplicationScope, Role
from roo.database.session import commit_or_conflict, get_db
from roo.errors import ConflictError
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/scopes", tags=["scopes"])

scope_access = access_control(SCOPE_POLICY)

SORTABLE = {
    "created_date": ApplicationScope.created_date,
    "modified_date": ApplicationScope.modified_date,
    "name": ApplicationScope.name,
}
SEARCH_FIELDS = ["name"]


class ScopeBody(BaseModel):
    """Schema for creating or updating a scope."""
    id: Optional[UUID] = None
    application: Optional[UUID] = None
    name: str = Field(min_length=1, max_length=255)


class ScopeResponse(BaseModel):
    """Schema for scope response."""
    id: str
    application: str
    name: str
    created_date: datetime
    modified_date: datetime


def _to_response(scope: ApplicationScope) -> ScopeResponse:
    return ScopeResponse(
        id=scope.id,
        application=scope.application_id,
        name=scope.name,
        created_date=scope.created_date,
        modified_date=scope.modified_date,
    )


def _assert_unique_name(db: Session, application_id: str, name: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(ApplicationScope).filter(
        ApplicationScope.application_id == application_id,
        ApplicationScope.name == name
    )
    if exclude_id is not None:
        query = query.filter(ApplicationScope.id != exclude_id)
    if query.count():
        raise ConflictError("A scope with this name already exists in the application.")


@router.get("")
def browse_scopes(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    role: Optional[UUID] = Query(None),
    access: AccessControl = Depends(scope_access),
    db: Session = Depends(get_db)
):
    """Browse scopes visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    role_filter = access.resolve_filter_entity(Role, role)
    
    query = db.query(ApplicationScope)
    if owner_filter is not None:
        query = query.filter(ApplicationScope.owned_by(owner_filter))
    if application_filter is not None:
        query = query.filter(ApplicationScope.application_id == application_filter.id)
    if role_filter is not None:
        query = query.filter(ApplicationScope.roles.any(Role.id == role_filter.id))
    
    return page_response(browse(query, ApplicationScope, page, SORTABLE), _to_response)


@router.get("/search")
def search_scopes(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    role: Optional[UUID] = Query(None),
    access: AccessControl = Depends(scope_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search scopes by name."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    role_filter = access.resolve_filter_entity(Role, role)
    
    query = SearchIndex(db).fuzzy_query(ApplicationScope, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    if application_filter is not None:
        query.add_equality_filter("application", application_filter)
    if role_filter is not None:
        query.add_equality_filter("roles", role_filter)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(scope) for scope in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{scope_id:uuid}", response_model=ScopeResponse)
def read_scope(
    scope_id: UUID,
    access: AccessControl = Depends(scope_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single scope."""
    scope = db.get(ApplicationScope, str(scope_id))
    access.assert_can_access(scope)
    return _to_response(scope)


@router.post("", response_model=ScopeResponse, status_code=status.HTTP_201_CREATED)
def create_scope(
    body: ScopeBody,
    request: Request,
    response: Response,
    access: AccessControl = Depends(scope_access),
    db: Session = Depends(get_db)
):
    """Define a scope in an application the caller may manage."""
    assert_new_entity(body.id)
    application = access.require_entity_input(Application, body.application)
    access.assert_can_create_in(application)
    access.assert_not_admin_application(application)
    _assert_unique_name(db, application.id, body.name)
    
    scope = ApplicationScope(application=application, name=body.name)
    db.add(scope)
    commit_or_conflict(db)
    
    record_audit(access, "create", "ApplicationScope", scope.id, body.model_dump(mode="json"))
    set_location(request, response, "read_scope", scope_id=scope.id)
    return _to_response(scope)


@router.put("/{scope_id:uuid}", response_model=ScopeResponse)
def update_scope(
    scope_id: UUID,
    body: ScopeBody,
    access: AccessControl = Depends(scope_access),
    db: Session = Depends(get_db)
):
    """Rename a scope."""
    scope = db.get(ApplicationScope, str(scope_id))
    access.assert_can_access(scope)
    access.assert_not_admin_application(scope.application)
    assert_body_id(body.id, scope.id)
    assert_unchanged(body.application, scope.application_id, "application")
    _assert_unique_name(db, scope.application_id, body.name, exclude_id=scope.id)
    
    scope.name = body.name
    commit_or_conflict(db)
    
    record_audit(access, "update", "ApplicationScope", scope.id, body.model_dump(mode="json"))
    return _to_response(scope)


@router.delete("/{scope_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_scope(
    scope_id: UUID,
    access: AccessControl = Depends(scope_access),
    db: Session = Depends(get_db)
):
    """Delete a scope and its role links."""
    scope = db.get(ApplicationScope, str(scope_id))
    access.assert_can_access(scope)
    access.assert_not_admin_application(scope.application)
    
    deleted_id = scope.id
    db.delete(scope)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "ApplicationScope", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
