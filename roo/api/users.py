# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
User API endpoints.

Assumptions:
- GET /api/v1/users - Browse, filtered by owner, application and role
- GET /api/v1/users/search?q= - Fuzzy search on identity claims and remote ids
- POST/GET/PUT/DELETE /api/v1/users[/{id}]
- A user's role must come from the user's own application
- New users without a role get the application's default role
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from roo.api.common import (
    assert_body_id, assert_new_entity, assert_unchanged, record_audit, set_location
)
from roo.api.dependencies import access_control
from roo.api.listing import PageParams, browse, build_list_response, page_params, page_response, search_window
from roo.auth.access import AccessControl
from roo.auth.scopes import USER_POLICY
from roo.config import settings
from roo.database.schema import Application, Role, User
from roo.database.session import commit_or_conflict, get_db
from roo.errors import BadRequestError
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/users", tags=["users"])

user_access = access_control(USER_POLICY)

SORTABLE = {
    "created_date": User.created_date,
    "modified_date": User.modified_date,
}
SEARCH_FIELDS = ["identities.claims", "identities.remote_id"]


class UserBody(BaseModel):
    """Schema for creating or updating a user."""
    id: Optional[UUID] = None
    application: Optional[UUID] = None
    role: Optional[UUID] = None


class UserResponse(BaseModel):
    """Schema for user response."""
    id: str
    application: str
    role: Optional[str]
    identities: list[str]
    created_date: datetime
    modified_date: datetime


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        application=user.application_id,
        role=user.role_id,
        identities=[identity.id for identity in user.identities],
        created_date=user.created_date,
        modified_date=user.modified_date,
    )


def _resolve_role(access: AccessControl, application: Application, role_id: Optional[UUID]) -> Optional[Role]:
    role = access.resolve_entity_input(Role, role_id)
    if role is None:
        return application.default_role
    if role.application_id != application.id:
        raise BadRequestError("The role belongs to a different application.")
    return role


def _release_default_roles(user: User) -> None:
    """Clear default roles of the applications a user owns, recursively."""
    for application in user.owned_applications:
        application.default_role = None
        for member in application.users:
            _release_default_roles(member)


@router.get("")
def browse_users(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    role: Optional[UUID] = Query(None),
    access: AccessControl = Depends(user_access),
    db: Session = Depends(get_db)
):
    """Browse users visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    role_filter = access.resolve_filter_entity(Role, role)
    
    query = db.query(User)
    if owner_filter is not None:
        query = query.filter(User.owned_by(owner_filter))
    if application_filter is not None:
        query = query.filter(User.application_id == application_filter.id)
    if role_filter is not None:
        query = query.filter(User.role_id == role_filter.id)
    
    return page_response(browse(query, User, page, SORTABLE), _to_response)


@router.get("/search")
def search_users(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    application: Optional[UUID] = Query(None),
    role: Optional[UUID] = Query(None),
    access: AccessControl = Depends(user_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search users by their identities' claims and remote ids."""
    owner_filter = access.resolve_ownership_filter(owner)
    application_filter = access.resolve_filter_entity(Application, application)
    role_filter = access.resolve_filter_entity(Role, role)
    
    query = SearchIndex(db).fuzzy_query(User, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    if application_filter is not None:
        query.add_equality_filter("application", application_filter)
    if role_filter is not None:
        query.add_equality_filter("role", role_filter)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(user) for user in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{user_id:uuid}", response_model=UserResponse)
def read_user(
    user_id: UUID,
    access: AccessControl = Depends(user_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single user."""
    user = db.get(User, str(user_id))
    access.assert_can_access(user)
    return _to_response(user)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserBody,
    request: Request,
    response: Response,
    access: AccessControl = Depends(user_access),
    db: Session = Depends(get_db)
):
    """Create a user in an application the caller may manage."""
    assert_new_entity(body.id)
    application = access.require_entity_input(Application, body.application)
    access.assert_can_create_in(application)
    access.assert_not_admin_application(application)
    role = _resolve_role(access, application, body.role)
    
    user = User(application=application, role=role)
    db.add(user)
    commit_or_conflict(db)
    
    record_audit(access, "create", "User", user.id, body.model_dump(mode="json"))
    set_location(request, response, "read_user", user_id=user.id)
    return _to_response(user)


@router.put("/{user_id:uuid}", response_model=UserResponse)
def update_user(
    user_id: UUID,
    body: UserBody,
    access: AccessControl = Depends(user_access),
    db: Session = Depends(get_db)
):
    """Change a user's role."""
    user = db.get(User, str(user_id))
    access.assert_can_access(user)
    access.assert_not_admin_application(user.application)
    assert_body_id(body.id, user.id)
    assert_unchanged(body.application, user.application_id, "application")
    
    user.role = _resolve_role(access, user.application, body.role)
    commit_or_conflict(db)
    
    record_audit(access, "update", "User", user.id, body.model_dump(mode="json"))
    return _to_response(user)


@router.delete("/{user_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: UUID,
    access: AccessControl = Depends(user_access),
    db: Session = Depends(get_db)
):
    """Delete a user with its identities, tokens and owned applications."""
    user = db.get(User, str(user_id))
    access.assert_can_access(user)
    access.assert_not_admin_application(user.application)
    
    deleted_id = user.id
    _release_default_roles(user)
    db.flush()
    db.delete(user)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "User", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
