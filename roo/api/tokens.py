# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
OAuth token API endpoints.

Assumptions:
- GET /api/v1/tokens - Browse, filtered by owner, identity, client and type
- GET /api/v1/tokens/search?q= - Fuzzy search on the identity's remote id and claims
- POST/GET/PUT/DELETE /api/v1/tokens[/{id}]
- Only expires_in, redirect and scopes may change after issue
- Every stored token satisfies the grant rules in validate_token_graph
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
from roo.auth.scopes import TOKEN_POLICY
from roo.config import settings
from roo.database.schema import (
    ApplicationScope, Client, ClientType, OAuthToken, OAuthTokenType, User, UserIdentity
)
from roo.database.session import commit_or_conflict, get_db
from roo.errors import BadRequestError
from roo.search import SearchIndex

router = APIRouter(prefix=f"/api/{settings.api_version}/tokens", tags=["tokens"])

token_access = access_control(TOKEN_POLICY)

SORTABLE = {
    "created_date": OAuthToken.created_date,
    "modified_date": OAuthToken.modified_date,
    "expires_in": OAuthToken.expires_in,
    "token_type": OAuthToken.token_type,
}
SEARCH_FIELDS = ["identity.remote_id", "identity.claims"]

BEARER_ONLY_CLIENTS = {ClientType.CLIENT_CREDENTIALS, ClientType.IMPLICIT}


class TokenBody(BaseModel):
    """Schema for issuing or updating a token."""
    id: Optional[UUID] = None
    client: Optional[UUID] = None
    identity: Optional[UUID] = None
    auth_token: Optional[UUID] = None
    token_type: OAuthTokenType
    expires_in: int = Field(ge=1)
    redirect: Optional[str] = None
    scopes: list[UUID] = Field(default_factory=list)


class TokenResponse(BaseModel):
    """Schema for token response."""
    id: str
    client: str
    identity: Optional[str]
    auth_token: Optional[str]
    token_type: OAuthTokenType
    expires_in: int
    redirect: Optional[str]
    scopes: list[str]
    created_date: datetime
    modified_date: datetime


def _to_response(token: OAuthToken) -> TokenResponse:
    return TokenResponse(
        id=token.id,
        client=token.client_id,
        identity=token.identity_id,
        auth_token=token.auth_token_id,
        token_type=token.token_type,
        expires_in=token.expires_in,
        redirect=token.redirect,
        scopes=sorted(scope.name for scope in token.scopes),
        created_date=token.created_date,
        modified_date=token.modified_date,
    )


def validate_token_graph(
    token_type: OAuthTokenType,
    client: Client,
    identity: Optional[UserIdentity],
    auth_token: Optional[OAuthToken],
    redirect: Optional[str],
) -> Optional[str]:
    """Check that a token's type fits its client, identity, parent and redirect.
    
    Args:
        token_type: Type of the token
        client: Client the token is issued to
        identity: Identity the token acts for, if any
        auth_token: Parent bearer token, for refresh tokens
        redirect: Redirect URI, for authorization codes
        
    Returns:
        Optional[str]: The redirect to store with the token
        
    Raises:
        BadRequestError: On the first rule the token breaks
        
    Assumptions:
    - Owner-credentials clients never receive authorization codes
    - Client-credentials and implicit clients only receive bearer tokens
    - Client-credentials tokens act for no identity; all others act for a
      user of the client's application
    - Refresh tokens renew a bearer token of the same identity
    - Only authorization codes carry a redirect, registered on the client
    - An authorization code without a redirect takes the client's only
      redirect; a client with none or several must be given one
    """
    if client.type == ClientType.OWNER_CREDENTIALS and token_type == OAuthTokenType.AUTHORIZATION:
        raise BadRequestError("Owner credentials clients cannot issue authorization codes.")
    if client.type in BEARER_ONLY_CLIENTS and token_type != OAuthTokenType.BEARER:
        raise BadRequestError(f"{client.type.value} clients only issue bearer tokens.")
    
    if client.type == ClientType.CLIENT_CREDENTIALS:
        if identity is not None:
            raise BadRequestError("Client credentials tokens cannot carry an identity.")
    else:
        if identity is None:
            raise BadRequestError("This token requires an identity.")
        if identity.user.application_id != client.application_id:
            raise BadRequestError("The identity belongs to a different application.")
    
    if token_type == OAuthTokenType.REFRESH:
        if auth_token is None:
            raise BadRequestError("Refresh tokens require a bearer token.")
        if auth_token.token_type != OAuthTokenType.BEARER:
            raise BadRequestError("Refresh tokens may only renew bearer tokens.")
        if auth_token.identity_id != (identity.id if identity is not None else None):
            raise BadRequestError("The bearer token belongs to a different identity.")
    elif auth_token is not None:
        raise BadRequestError("Only refresh tokens reference a bearer token.")
    
    if token_type != OAuthTokenType.AUTHORIZATION:
        if redirect is not None:
            raise BadRequestError("Only authorization codes carry a redirect.")
        return None
    
    registered = [item.uri for item in client.redirects]
    if not redirect:
        if len(registered) != 1:
            raise BadRequestError("A redirect is required for this client.")
        return registered[0]
    if redirect not in registered:
        raise BadRequestError("The redirect is not registered for this client.")
    return redirect


def _resolve_scopes(access: AccessControl, client: Client, scope_ids: list[UUID]) -> list[ApplicationScope]:
    scopes = []
    for scope_id in dict.fromkeys(scope_ids):
        scope = access.require_entity_input(ApplicationScope, scope_id)
        if scope.application_id != client.application_id:
            raise BadRequestError("The scope belongs to a different application.")
        scopes.append(scope)
    return scopes


@router.get("")
def browse_tokens(
    page: PageParams = Depends(page_params),
    owner: Optional[UUID] = Query(None),
    identity: Optional[UUID] = Query(None),
    client: Optional[UUID] = Query(None),
    type: Optional[OAuthTokenType] = Query(None),
    access: AccessControl = Depends(token_access),
    db: Session = Depends(get_db)
):
    """Browse tokens visible to the caller."""
    owner_filter = access.resolve_ownership_filter(owner)
    identity_filter = access.resolve_filter_entity(UserIdentity, identity)
    client_filter = access.resolve_filter_entity(Client, client)
    
    query = db.query(OAuthToken)
    if owner_filter is not None:
        query = query.filter(OAuthToken.owned_by(owner_filter))
    if identity_filter is not None:
        query = query.filter(OAuthToken.identity_id == identity_filter.id)
    if client_filter is not None:
        query = query.filter(OAuthToken.client_id == client_filter.id)
    if type is not None:
        query = query.filter(OAuthToken.token_type == type)
    
    return page_response(browse(query, OAuthToken, page, SORTABLE), _to_response)


@router.get("/search")
def search_tokens(
    q: str = Query(""),
    window: PageParams = Depends(search_window),
    owner: Optional[UUID] = Query(None),
    user: Optional[UUID] = Query(None),
    identity: Optional[UUID] = Query(None),
    client: Optional[UUID] = Query(None),
    type: Optional[OAuthTokenType] = Query(None),
    access: AccessControl = Depends(token_access),
    db: Session = Depends(get_db)
):
    """Fuzzy search tokens by the remote id and claims of their identity."""
    owner_filter = access.resolve_ownership_filter(owner)
    user_filter = access.resolve_filter_entity(User, user)
    identity_filter = access.resolve_filter_entity(UserIdentity, identity)
    client_filter = access.resolve_filter_entity(Client, client)
    
    query = SearchIndex(db).fuzzy_query(OAuthToken, SEARCH_FIELDS, q)
    query.set_window(window.offset, window.limit)
    if owner_filter is not None:
        query.add_equality_filter("owner", owner_filter)
    if user_filter is not None:
        query.add_equality_filter("identity.user", user_filter)
    if identity_filter is not None:
        query.add_equality_filter("identity", identity_filter)
    if client_filter is not None:
        query.add_equality_filter("client", client_filter)
    if type is not None:
        query.add_equality_filter("token_type", type)
    items, total = query.execute()
    
    return build_list_response(
        [_to_response(token) for token in items],
        offset=window.offset,
        limit=window.limit,
        total=total,
    )


@router.get("/{token_id:uuid}", response_model=TokenResponse)
def read_token(
    token_id: UUID,
    access: AccessControl = Depends(token_access),
    db: Session = Depends(get_db)
):
    """Retrieve a single token."""
    token = db.get(OAuthToken, str(token_id))
    access.assert_can_access(token)
    return _to_response(token)


@router.post("", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def create_token(
    body: TokenBody,
    request: Request,
    response: Response,
    access: AccessControl = Depends(token_access),
    db: Session = Depends(get_db)
):
    """Issue a token for a client of an application the caller may manage."""
    assert_new_entity(body.id)
    client = access.require_entity_input(Client, body.client)
    access.assert_can_create_in(client.application)
    access.assert_not_admin_application(client.application)
    
    identity = access.resolve_entity_input(UserIdentity, body.identity)
    auth_token = access.resolve_entity_input(OAuthToken, body.auth_token)
    redirect = validate_token_graph(body.token_type, client, identity, auth_token, body.redirect)
    
    token = OAuthToken(
        client=client,
        identity=identity,
        auth_token=auth_token,
        token_type=body.token_type,
        expires_in=body.expires_in,
        redirect=redirect,
        scopes=_resolve_scopes(access, client, body.scopes),
    )
    db.add(token)
    commit_or_conflict(db)
    
    record_audit(access, "create", "OAuthToken", token.id, body.model_dump(mode="json"))
    set_location(request, response, "read_token", token_id=token.id)
    return _to_response(token)


@router.put("/{token_id:uuid}", response_model=TokenResponse)
def update_token(
    token_id: UUID,
    body: TokenBody,
    access: AccessControl = Depends(token_access),
    db: Session = Depends(get_db)
):
    """Change a token's lifetime, redirect or scopes."""
    token = db.get(OAuthToken, str(token_id))
    access.assert_can_access(token)
    access.assert_not_admin_application(token.application)
    assert_body_id(body.id, token.id)
    assert_unchanged(body.client, token.client_id, "client")
    assert_unchanged(body.identity, token.identity_id, "identity")
    assert_unchanged(body.auth_token, token.auth_token_id, "auth_token")
    if body.token_type != token.token_type:
        raise BadRequestError("The type of an existing token cannot be changed.")
    
    redirect = validate_token_graph(token.token_type, token.client, token.identity, token.auth_token, body.redirect)
    token.expires_in = body.expires_in
    token.redirect = redirect
    token.scopes = _resolve_scopes(access, token.client, body.scopes)
    commit_or_conflict(db)
    
    record_audit(access, "update", "OAuthToken", token.id, body.model_dump(mode="json"))
    return _to_response(token)


@router.delete("/{token_id:uuid}", status_code=status.HTTP_204_NO_CONTENT)
def delete_token(
    token_id: UUID,
    access: AccessControl = Depends(token_access),
    db: Session = Depends(get_db)
):
    """Revoke a token together with the refresh tokens issued from it."""
    token = db.get(OAuthToken, str(token_id))
    access.assert_can_access(token)
    access.assert_not_admin_application(token.application)
    
    deleted_id = token.id
    db.delete(token)
    commit_or_conflict(db)
    
    record_audit(access, "delete", "OAuthToken", deleted_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
