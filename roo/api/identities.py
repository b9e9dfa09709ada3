# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
User identity API endpoints.

Assumptions:
- GET /api/v1/identities - Browse, filtered by owner, user and type
- GET /api/v1/identities/search?q= - Fuzzy search on claims and remote id
- POST/GET/PUT/DELETE /api/v1/identities[/{id}]
- Password identities need a password; it is hashed with bcrypt and never returned
- user, type and remote_id are fixed once the identity exists
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
from roo.auth.password import hash_password
from roo.auth.scopes import IDENTITY_POLICY
from roo.config import settings
from roo.database.schema import AuthenticatorType, User, UserIdentity
from roo.database.session import commit_or_conflict, get_db
from roo.errors import BadRequestError, ConflictError
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/identities", tags=["identities"])

identity_access = access_control(IDENTITY_POLICY)

SORTABLE = {
    "created_date": UserIdentity.created_date,
    "modified_date": UserIdentity.modified_date,
    "remote_id": UserIdentity.remote_id,
    "type": UserIdentity.type,
}
SEARCH_FIELDS = ["claims", "remote_id"]


class IdentityBody(BaseModel):
    """Schema for creating or updating an identity."""
    id: Optional[UUID] = None
    user: Optional[UUID] = None
    type: AuthenticatorType
    remote_id: str = Field(min_length=1, max_length=255)
    claims: dict[str, str] = Field(default_factory=dict)
    password: Optional[str] = Field(default=None, min_length=1)


class IdentityResponse(BaseModel):
    """Schema for identity response."""
    id: str
    user: str
    type: AuthenticatorType
    remote_id: str
    claims: dict
    created_date: datetime
    modified_date: datetime


def _to_response(identity: UserIdentity) -> IdentityResponse:
    return IdentityResponse(
        id=identity.id,
        user=identity.user_id,
        type=identity.type,
        remote_id=identity.remote_id,
        claims=identity.claims or {},
        created_date=identity.created_date,
        modified_date=identity.modified_date,
    )


def _password_hash(body: IdentityBody, current: Optional[str] = None) -> Optional[str]:
    if body.type != AuthenticatorType.PASSWORD:
        if body.password is not None:
            raise BadRequestError("Only password identities carry a password.")
        return None
    if body.password is None:
        if current is None:
            raise BadRequestError("Password identities require a password.")
        return current
    return hash_password(body.password)


@router.get("")
def browse_identities(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    user: Optional[UUID] = Query(None),
    type: Optional[AuthenticatorType] = Query(None),
    access: AccessControl = Depends(identity_access),
    db: Session = Depends(get_db)
):
    """Browse identities visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    user_filter = access.resolve_filter_entity(User, user)
    
    query = db.query(UserIdentity)
    if owner_filter is not None:
        query = query.filter(UserIdentity.owned_by(owner_filter))
    if user_filter is not None:
        query = query.filter(UserIdentity.user_id == user_filter.id)
    if type is not None:
        query = query.filter(UserIdentity.type == type)
    
    return page_response(browse(query, UserIdentity, page, SORTABLE), _to_response)


@router.get("/search")
def search_identities(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    user: Optional[UUID] = Query(None),
    type: Optional[AuthenticatorType] = Query(None),
    access: AccessControl = Depends(identity_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search identities by claims and remote id."""
    owner_filter = access.resolve_ownership_filter(owner)
    user_filter = access.resolve_filter_entity(User, user)
    
    query = SearchIndex(db).fuzzy_query(UserIdentity, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    if user_filter is not None:
        query.add_equality_filter("user", user_filter)
    if type is not None:
        query.add_equality_filter("type", type)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(identity) for identity in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{identity_id:uuid}", response_model=IdentityResponse)
def read_identity(
    identity_id: UUID,
    access: AccessControl = Depends(identity_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single identity."""
    identity = db.get(UserIdentity, str(identity_id))
    access.assert_can_access(identity)
    return _to_response(identity)


@router.post("", response_model=IdentityResponse, status_code=status.HTTP_201_CREATED)
def create_identity(
    body: IdentityBody,
    request: Request,
    response: Response,
    access: AccessControl = Depends(identity_access),
    db: Session = Depends(get_db)
):
    """Attach a new identity to a user."""
    assert_new_entity(body.id)
    user = access.require_entity_input(User, body.user)
    access.assert_can_create_in(user.application)
    access.assert_not_admin_application(user.application)
    
    duplicate = db.query(UserIdentity).filter(
        UserIdentity.type == body.type,
        UserIdentity.remote_id == body.remote_id
    ).count()
    if duplicate:
        raise ConflictError("An identity with this remote id already exists.")
    
    identity = UserIdentity(
        user=user,
        type=body.type,
        remote_id=body.remote_id,
        claims=body.claims,
        password_hash=_password_hash(body),
    )
    db.add(identity)
    commit_or_conflict(db)
    
    record_audit(access, "create", "UserIdentity", identity.id, body.model_dump(mode="json"))
    set_location(request, response, "read_identity", identity_id=identity.id)
    return _to_response(identity)


@router.put("/{identity_id:uuid}", response_model=IdentityResponse)
def update_identity(
    identity_id: UUID,
    body: IdentityBody,
    access: AccessControl = Depends(identity_access),
    db: Session = Depends(get_db)
):
    """Replace an identity's claims and, for password identities, its password."""
    identity = db.get(UserIdentity, str(identity_id))
    access.assert_can_access(identity)
    access.assert_not_admin_application(identity.application)
    assert_body_id(body.id, identity.id)
    assert_unchanged(body.user, identity.user_id, "user")
    if body.type != identity.type or body.remote_id != identity.remote_id:
        raise BadRequestError("The type and remote id of an identity cannot be changed.")
    
    identity.claims = body.claims
    identity.password_hash = _password_hash(body, current=identity.password_hash)
    commit_or_conflict(db)
    
    record_audit(access, "update", "UserIdentity", identity.id, body.model_dump(mode="json"))
    return _to_response(identity)


@router.delete("/{identity_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_identity(
    identity_id: UUID,
    access: AccessControl = Depends(identity_access),
    db: Session = Depends(get_db)
):
    """Delete an identity and the tokens issued to it."""
    identity = db.get(UserIdentity, str(identity_id))
    access.assert_can_access(identity)
    access.assert_not_admin_application(identity.application)
    
    deleted_id = identity.id
    db.delete(identity)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "UserIdentity", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
