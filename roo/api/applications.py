# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Application API endpoints.

Assumptions:
- GET /api/v1/applications - Browse, optionally filtered by owner
- GET /api/v1/applications/search?q= - Fuzzy search on name
- POST/GET/PUT/DELETE /api/v1/applications[/{id}]
- The owner of a new application defaults to the caller
- Only the name can be changed after creation
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
from roo.auth.scopes import APPLICATION_POLICY
from roo.config import settings
from roo.database.schema import Application
from roo.database.session import commit_or_conflict, get_db
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/applications", tags=["applications"])

application_access = access_control(APPLICATION_POLICY)

SORTABLE = {
    "created_date": Application.created_date,
    "modified_date": Application.modified_date,
    "name": Application.name,
}
SEARCH_FIELDS = ["name"]


class ApplicationCreate(BaseModel):
    """Schema for creating an application."""
    id: Optional[UUID] = None
    name: str = Field(min_length=1, max_length=255)
    owner: Optional[UUID] = None


class ApplicationUpdate(BaseModel):
    """Schema for updating an application."""
    id: Optional[UUID] = None
    name: str = Field(min_length=1, max_length=255)
    owner: Optional[UUID] = None


class ApplicationResponse(BaseModel):
    """Schema for application response."""
    id: str
    name: str
    owner: Optional[str]
    default_role: Optional[str]
    created_date: datetime
    modified_date: datetime


def _to_response(application: Application) -> ApplicationResponse:
    return ApplicationResponse(
        id=application.id,
        name=application.name,
        owner=application.owner_id,
        default_role=application.default_role_id,
        created_date=application.created_date,
        modified_date=application.modified_date,
    )


@router.get("")
def browse_applications(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    access: AccessControl = Depends(application_access),
    db: Session = Depends(get_db)
):
    """Browse applications visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    
    query = db.query(Application)
    if owner_filter is not None:
        query = query.filter(Application.owned_by(owner_filter))
    
    return page_response(browse(query, Application, page, SORTABLE), _to_response)


@router.get("/search")
def search_applications(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    access: AccessControl = Depends(application_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search applications by name."""
    owner_filter = access.resolve_ownership_filter(owner)
    
    query = SearchIndex(db).fuzzy_query(Application, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(application) for application in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{application_id:uuid}", response_model=ApplicationResponse)
def read_application(
    application_id: UUID,
    access: AccessControl = Depends(application_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single application."""
    application = db.get(Application, str(application_id))
    access.assert_can_access(application)
    return _to_response(application)


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
def create_application(
    body: ApplicationCreate,
    request: Request,
    response: Response,
    access: AccessControl = Depends(application_access),
    db: Session = Depends(get_db)
):
    """Create an application owned by the caller (or, for admins, by anyone)."""
    assert_new_entity(body.id)
    owner = access.resolve_new_owner(body.owner)
    
    application = Application(name=body.name, owner=owner)
    db.add(application)
    commit_or_conflict(db)
    
    record_audit(access, "create", "Application", application.id, body.model_dump(mode="json"))
    set_location(request, response, "read_application", application_id=application.id)
    return _to_response(application)


@router.put("/{application_id:uuid}", response_model=ApplicationResponse)
def update_application(
    application_id: UUID,
    body: ApplicationUpdate,
    access: AccessControl = Depends(application_access),
    db: Session = Depends(get_db)
):
    """Rename an application."""
    application = db.get(Application, str(application_id))
    access.assert_can_access(application)
    access.assert_not_admin_application(application)
    assert_body_id(body.id, application.id)
    assert_unchanged(body.owner, application.owner_id, "owner")
    
    application.name = body.name
    commit_or_conflict(db)
    
    record_audit(access, "update", "Application", application.id, body.model_dump(mode="json"))
    return _to_response(application)


@router.delete("/{application_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_application(
    application_id: UUID,
    access: AccessControl = Depends(application_access),
    db: Session = Depends(get_db)
):
    """Delete an application and everything inside it."""
    application = db.get(Application, str(application_id))
    access.assert_can_access(application)
    access.assert_not_admin_application(application)
    
    deleted_id = application.id
    application.default_role = None
    db.flush()
    db.delete(application)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "Application", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
