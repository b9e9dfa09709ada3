# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Bearer token validation for the admin API.

The Authorization header carries the id of an OAuthToken issued by one of
the admin application's clients.

Assumptions:
- Only Bearer-type tokens authenticate; authorization and refresh tokens do not
- Tokens issued to clients of other applications are rejected
- Expired tokens are rejected
- Invalid tokens yield None; the caller decides how to respond
"""
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from roo.auth.principal import AdminAppId, Principal
from roo.database.schema import OAuthToken, OAuthTokenType
from roo.errors import UnauthorizedError
from roo.logging_utils import log_security_event


def parse_bearer_header(authorization: Optional[str]) -> Optional[str]:
    """Extract the token id from an Authorization header.
    
    Args:
        authorization: Raw header value
        
    Returns:
        Optional[str]: Normalized token id, or None if absent or malformed
    """
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    try:
        return str(UUID(credentials.strip()))
    except ValueError:
        return None


def validate_bearer_token(
    session: Session,
    token_id: str,
    admin_app_id: AdminAppId
) -> Optional[OAuthToken]:
    """Validate a bearer token id.
    
    Args:
        session: Database session
        token_id: Token id from the Authorization header
        admin_app_id: Id of the admin application
        
    Returns:
        Optional[OAuthToken]: The token if valid, None otherwise
    """
    token = session.get(OAuthToken, token_id)
    if token is None:
        return None
    if token.token_type != OAuthTokenType.BEARER:
        return None
    if not admin_app_id.matches(token.client.application):
        return None
    if token.is_expired():
        return None
    return token


def authenticate_bearer(
    session: Session,
    authorization: Optional[str],
    admin_app_id: AdminAppId
) -> Principal:
    """Authenticate a request from its Authorization header.
    
    Args:
        session: Database session
        authorization: Raw Authorization header value
        admin_app_id: Id of the admin application
        
    Returns:
        Principal: The authenticated caller
        
    Raises:
        UnauthorizedError: If the header is missing or the token is invalid
    """
    token_id = parse_bearer_header(authorization)
    if token_id is None:
        log_security_event("authentication_failed", reason="missing or malformed bearer token")
        raise UnauthorizedError()
    
    token = validate_bearer_token(session, token_id, admin_app_id)
    if token is None:
        log_security_event("authentication_failed", reason="invalid bearer token", token_id=token_id)
        raise UnauthorizedError()
    
    return Principal.from_token(token)
