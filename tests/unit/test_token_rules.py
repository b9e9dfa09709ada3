# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for the token grant rules.

Assumptions:
- The rules depend only on the token type, the client type, the identity,
  the parent token and the redirect
"""
import pytest

from roo.database.schema import (
    Client, ClientRedirect, ClientType, OAuthToken, OAuthTokenType, User, UserIdentity
)
from roo.errors import BadRequestError

AUTHORIZATION = OAuthTokenType.AUTHORIZATION
BEARER = OAuthTokenType.BEARER
REFRESH = OAuthTokenType.REFRESH


def _client(type, application_id="app-1", redirects=()):
    return Client(
        type=type,
        application_id=application_id,
        redirects=[ClientRedirect(uri=uri) for uri in redirects],
    )


def _identity(identity_id="identity-1", application_id="app-1"):
    return UserIdentity(id=identity_id, user=User(application_id=application_id))


def _validate(*args):
    from roo.api.tokens import validate_token_graph
    return validate_token_graph(*args)


@pytest.mark.unit
@pytest.mark.parametrize("client_type,token_type", [
    (ClientType.AUTHORIZATION_GRANT, BEARER),
    (ClientType.OWNER_CREDENTIALS, BEARER),
    (ClientType.IMPLICIT, BEARER),
])
def test_bearer_token_with_identity_is_valid(client_type, token_type):
    _validate(token_type, _client(client_type), _identity(), None, None)


@pytest.mark.unit
def test_client_credentials_token_has_no_identity():
    client = _client(ClientType.CLIENT_CREDENTIALS)
    
    _validate(BEARER, client, None, None, None)
    with pytest.raises(BadRequestError):
        _validate(BEARER, client, _identity(), None, None)


@pytest.mark.unit
@pytest.mark.parametrize("client_type,token_type", [
    (ClientType.OWNER_CREDENTIALS, AUTHORIZATION),
    (ClientType.CLIENT_CREDENTIALS, REFRESH),
    (ClientType.IMPLICIT, AUTHORIZATION),
    (ClientType.IMPLICIT, REFRESH),
])
def test_token_type_not_allowed_for_client(client_type, token_type):
    with pytest.raises(BadRequestError):
        _validate(token_type, _client(client_type), _identity(), None, None)


@pytest.mark.unit
def test_identity_required_and_from_same_application():
    client = _client(ClientType.AUTHORIZATION_GRANT)
    
    with pytest.raises(BadRequestError):
        _validate(BEARER, client, None, None, None)
    with pytest.raises(BadRequestError):
        _validate(BEARER, client, _identity(application_id="app-2"), None, None)


@pytest.mark.unit
def test_refresh_token_renews_bearer_of_same_identity():
    client = _client(ClientType.AUTHORIZATION_GRANT)
    identity = _identity()
    parent = OAuthToken(token_type=BEARER, identity_id=identity.id)
    
    _validate(REFRESH, client, identity, parent, None)
    with pytest.raises(BadRequestError):
        _validate(REFRESH, client, identity, None, None)
    with pytest.raises(BadRequestError):
        _validate(REFRESH, client, identity, OAuthToken(token_type=REFRESH, identity_id=identity.id), None)
    with pytest.raises(BadRequestError):
        _validate(REFRESH, client, identity, OAuthToken(token_type=BEARER, identity_id="other"), None)
    with pytest.raises(BadRequestError):
        _validate(BEARER, client, identity, parent, None)


@pytest.mark.unit
def test_redirect_only_on_registered_authorization_codes():
    client = _client(ClientType.AUTHORIZATION_GRANT, redirects=["https://app.example.com/cb"])
    identity = _identity()
    
    assert _validate(AUTHORIZATION, client, identity, None, "https://app.example.com/cb") == "https://app.example.com/cb"
    with pytest.raises(BadRequestError):
        _validate(AUTHORIZATION, client, identity, None, "https://evil.example.com/cb")
    with pytest.raises(BadRequestError):
        _validate(BEARER, client, identity, None, "https://app.example.com/cb")


@pytest.mark.unit
def test_authorization_code_defaults_to_only_redirect():
    client = _client(ClientType.AUTHORIZATION_GRANT, redirects=["https://app.example.com/cb"])
    
    assert _validate(AUTHORIZATION, client, _identity(), None, None) == "https://app.example.com/cb"
    assert _validate(AUTHORIZATION, client, _identity(), None, "") == "https://app.example.com/cb"


@pytest.mark.unit
@pytest.mark.parametrize("redirects", [
    (),
    ("https://one.example.com/cb", "https://two.example.com/cb"),
])
def test_authorization_code_without_redirect_needs_a_single_registered_one(redirects):
    client = _client(ClientType.AUTHORIZATION_GRANT, redirects=redirects)
    
    with pytest.raises(BadRequestError):
        _validate(AUTHORIZATION, client, _identity(), None, None)


@pytest.mark.unit
def test_bearer_token_stores_no_redirect():
    client = _client(ClientType.AUTHORIZATION_GRANT, redirects=["https://app.example.com/cb"])
    
    assert _validate(BEARER, client, _identity(), None, None) is None
