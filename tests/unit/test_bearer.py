# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for bearer token authentication.

Assumptions:
- Only unexpired Bearer tokens of admin application clients authenticate
- Every failure is a 401
"""
from datetime import datetime, timedelta, UTC

import pytest

from roo.auth.scopes import Scope
from roo.database.schema import OAuthTokenType
from tests.fixtures.factories import make_application, make_client, make_token


@pytest.mark.unit
@pytest.mark.parametrize("header", [
    None,
    "",
    "Basic 3fa85f64-5717-4562-b3fc-2c963f66afa6",
    "Bearer",
    "Bearer not-a-uuid",
])
def test_parse_bearer_header_rejects_malformed(header):
    from roo.auth.bearer import parse_bearer_header
    
    assert parse_bearer_header(header) is None


@pytest.mark.unit
def test_parse_bearer_header_normalizes_id():
    from roo.auth.bearer import parse_bearer_header
    
    header = "bearer 3FA85F64-5717-4562-B3FC-2C963F66AFA6"
    
    assert parse_bearer_header(header) == "3fa85f64-5717-4562-b3fc-2c963f66afa6"


@pytest.mark.unit
def test_authenticate_valid_token(db_session, bootstrap, admin_client, admin_user):
    from roo.auth.bearer import authenticate_bearer
    
    token = make_token(db_session, admin_client, admin_user.identities[0], [Scope.ROLE_ADMIN])
    db_session.commit()
    
    principal = authenticate_bearer(db_session, f"Bearer {token.id}", bootstrap.admin_app_id)
    
    assert principal.token_id == token.id
    assert principal.user_id == admin_user.id
    assert principal.scopes == frozenset({Scope.ROLE_ADMIN})


@pytest.mark.unit
def test_missing_header_is_unauthorized(db_session, bootstrap):
    from roo.auth.bearer import authenticate_bearer
    from roo.errors import UnauthorizedError
    
    with pytest.raises(UnauthorizedError):
        authenticate_bearer(db_session, None, bootstrap.admin_app_id)


@pytest.mark.unit
def test_unknown_token_is_unauthorized(db_session, bootstrap):
    from roo.auth.bearer import authenticate_bearer
    from roo.errors import UnauthorizedError
    
    with pytest.raises(UnauthorizedError):
        authenticate_bearer(db_session, "Bearer 3fa85f64-5717-4562-b3fc-2c963f66afa6", bootstrap.admin_app_id)


@pytest.mark.unit
def test_non_bearer_token_is_rejected(db_session, bootstrap, admin_client, admin_user):
    from roo.auth.bearer import validate_bearer_token
    
    token = make_token(
        db_session, admin_client, admin_user.identities[0], token_type=OAuthTokenType.AUTHORIZATION
    )
    db_session.commit()
    
    assert validate_bearer_token(db_session, token.id, bootstrap.admin_app_id) is None


@pytest.mark.unit
def test_token_of_other_application_is_rejected(db_session, bootstrap):
    from roo.auth.bearer import validate_bearer_token
    
    foreign_client = make_client(db_session, make_application(db_session, None, "Elsewhere"))
    token = make_token(db_session, foreign_client)
    db_session.commit()
    
    assert validate_bearer_token(db_session, token.id, bootstrap.admin_app_id) is None


@pytest.mark.unit
def test_expired_token_is_rejected(db_session, bootstrap, admin_client, admin_user):
    from roo.auth.bearer import validate_bearer_token
    
    token = make_token(db_session, admin_client, admin_user.identities[0], expires_in=60)
    token.created_date = datetime.now(UTC).replace(tzinfo=None) - timedelta(minutes=5)
    db_session.commit()
    
    assert validate_bearer_token(db_session, token.id, bootstrap.admin_app_id) is None


@pytest.mark.unit
def test_is_expired_accepts_naive_and_aware_times():
    from roo.database.schema import OAuthToken
    
    created = datetime(2025, 1, 1, 12, 0, 0)
    token = OAuthToken(expires_in=60, created_date=created)
    
    assert token.is_expired(datetime(2025, 1, 1, 12, 0, 30)) is False
    assert token.is_expired(datetime(2025, 1, 1, 12, 5, tzinfo=UTC)) is True
