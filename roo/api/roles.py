# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Role API endpoints, including role/scope links.

Assumptions:
- GET /api/v1/roles - Browse, filtered by owner and application
- GET /api/v1/roles/search?q= - Fuzzy search on name
- POST/GET/PUT/DELETE /api/v1/roles[/{id}]
- POST/DELETE /api/v1/roles/{id}/scopes/{scope_id} - Link or unlink a scope
- Role names are unique within an application
- A role may only hold scopes of its own application
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
from roo.auth.scopes import ROLE_POLICY, Scope
from roo.config import settings
from roo.database.schema import Application, ApplicationScope, Role
from roo.database.session import commit_or_conflict, get_db
from roo.errors import BadRequestError, ConflictError, InvalidScopeError, NotFoundError
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/roles", tags=["roles"])

role_access = access_control(ROLE_POLICY)

SORTABLE = {
    "created_date": Role.created_date,
    "modified_date": Role.modified_date,
    "name": Role.name,
}
SEARCH_FIELDS = ["name"]


class RoleBody(BaseModel):
    """Schema for creating or updating a role."""
    id: Optional[UUID] = None
    application: Optional[UUID] = None
    name: str = Field(min_length=1, max_length=255)


class RoleResponse(BaseModel):
    """Schema for role response."""
    id: str
    application: str
    name: str
    scopes: list[str]
    created_date: datetime
    modified_date: datetime


def _to_response(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        application=role.application_id,
        name=role.name,
        scopes=sorted(scope.name for scope in role.scopes),
        created_date=role.created_date,
        modified_date=role.modified_date,
    )


def _assert_unique_name(db: Session, application_id: str, name: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(Role).filter(Role.application_id == application_id, Role.name == name)
    if exclude_id is not None:
        query = query.filter(Role.id != exclude_id)
    if query.count():
        raise ConflictError("A role with this name already exists in the application.")


@router.get("")
def browse_roles(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Browse roles visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    
    query = db.query(Role)
    if owner_filter is not None:
        query = query.filter(Role.owned_by(owner_filter))
    if application_filter is not None:
        query = query.filter(Role.application_id == application_filter.id)
    
    return page_response(browse(query, Role, page, SORTABLE), _to_response)


@router.get("/search")
def search_roles(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search roles by name."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    
    query = SearchIndex(db).fuzzy_query(Role, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    if application_filter is not None:
        query.add_equality_filter("application", application_filter)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(role) for role in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{role_id:uuid}", response_model=RoleResponse)
def read_role(
    role_id: UUID,
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single role."""
    role = db.get(Role, str(role_id))
    access.assert_can_access(role)
    return _to_response(role)


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleBody,
    request: Request,
    response: Response,
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Create a role in an application the caller may manage."""
    assert_new_entity(body.id)
    application = access.require_entity_input(Application, body.application)
    access.assert_can_create_in(application)
    access.assert_not_admin_application(application)
    _assert_unique_name(db, application.id, body.name)
    
    role = Role(application=application, name=body.name)
    db.add(role)
    commit_or_conflict(db)
    
    record_audit(access, "create", "Role", role.id, body.model_dump(mode="json"))
    set_location(request, response, "read_role", role_id=role.id)
    return _to_response(role)


@router.put("/{role_id:uuid}", response_model=RoleResponse)
def update_role(
    role_id: UUID,
    body: RoleBody,
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Rename a role."""
    role = db.get(Role, str(role_id))
    access.assert_can_access(role)
    access.assert_not_admin_application(role.application)
    assert_body_id(body.id, role.id)
    assert_unchanged(body.application, role.application_id, "application")
    _assert_unique_name(db, role.application_id, body.name, exclude_id=role.id)
    
    role.name = body.name
    commit_or_conflict(db)
    
    record_audit(access, "update", "Role", role.id, body.model_dump(mode="json"))
    return _to_response(role)


@router.delete("/{role_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: UUID,
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Delete a role; its users keep existing without a role."""
    role = db.get(Role, str(role_id))
    access.assert_can_access(role)
    access.assert_not_admin_application(role.application)
    
    deleted_id = role.id
    if role.application.default_role_id == role.id:
        role.application.default_role = None
        db.flush()
    db.delete(role)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "Role", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _load_link(access: AccessControl, db: Session, role_id: UUID, scope_id: UUID) -> tuple[Role, ApplicationScope]:
    role = db.get(Role, str(role_id))
    access.assert_can_access(role)
    
    if not access.principal.has_any_scope(Scope.SCOPE, Scope.SCOPE_ADMIN):
        raise InvalidScopeError()
    scope = db.get(ApplicationScope, str(scope_id))
    access.assert_can_access(scope, Scope.SCOPE_ADMIN)
    
    if role.application_id != scope.application_id:
        raise BadRequestError("The role and the scope belong to different applications.")
    access.assert_not_admin_application(role.application)
    return role, scope


@router.post("/{role_id:uuid}/scopes/{scope_id:uuid}", response_model=RoleResponse,
             status_code=status.HTTP_201_CREATED)
def link_role_scope(
    role_id: UUID,
    scope_id: UUID,
    request: Request,
    response: Response,
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Grant a scope to a role."""
    role, scope = _load_link(access, db, role_id, scope_id)
    if scope in role.scopes:
        raise ConflictError("The scope is already linked to this role.")
    
    role.scopes.append(scope)
    commit_or_conflict(db)
    
    record_audit(access, "link", "Role", role.id, {"scope": scope.id})
    response.headers["Location"] = str(request.url)
    return _to_response(role)


@router.delete("/{role_id:uuid}/scopes/{scope_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def unlink_role_scope(
    role_id: UUID,
    scope_id: UUID,
    access: AccessControl = Depends(role_access),
    db: Session = Depends(get_db)
):
    """Revoke a scope from a role."""
    role, scope = _load_link(access, db, role_id, scope_id)
    if scope not in role.scopes:
        raise NotFoundError()
    
    role.scopes.remove(scope)
    commit_or_conflict(db)
    
    record_audit(access, "unlink", "Role", str(role_id), {"scope": str(scope_id)})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
