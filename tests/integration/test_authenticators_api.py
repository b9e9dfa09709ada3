# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Integration tests for the authenticator endpoints.

Assumptions:
- An authenticator belongs to one client and cannot move
- Authenticators of the admin application are read-only
"""
import pytest

from roo.database.schema import AuthenticatorType
from tests.fixtures.factories import make_authenticator, make_client

BASE = "/api/v1/authenticators"


@pytest.fixture
def member_client(db_session, member_app):
    client = make_client(db_session, member_app, "Web")
    db_session.commit()
    return client


@pytest.mark.integration
def test_authenticator_lifecycle(client, member, member_client):
    _, headers = member
    
    created = client.post(BASE, json={
        "client": member_client.id,
        "type": "Github",
        "configuration": {"client_id": "gh-123"},
    }, headers=headers)
    assert created.status_code == 201
    authenticator_id = created.json()["id"]
    assert created.headers["Location"].endswith(f"{BASE}/{authenticator_id}")
    
    updated = client.put(f"{BASE}/{authenticator_id}", json={
        "type": "Google", "configuration": {}
    }, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["type"] == "Google"
    
    assert client.delete(f"{BASE}/{authenticator_id}", headers=headers).status_code == 204
    assert client.get(f"{BASE}/{authenticator_id}", headers=headers).status_code == 404


@pytest.mark.integration
def test_create_for_other_users_client_is_bad_request(client, db_session, member, other_app):
    _, headers = member
    foreign = make_client(db_session, other_app)
    db_session.commit()
    
    response = client.post(BASE, json={"client": foreign.id, "type": "Test"}, headers=headers)
    
    assert response.status_code == 400


@pytest.mark.integration
def test_update_cannot_move_client(client, db_session, member, member_app, member_client):
    _, headers = member
    authenticator = make_authenticator(db_session, member_client)
    second = make_client(db_session, member_app, "Second")
    db_session.commit()
    
    response = client.put(f"{BASE}/{authenticator.id}", json={
        "client": second.id, "type": "Test"
    }, headers=headers)
    
    assert response.status_code == 400


@pytest.mark.integration
def test_browse_and_search_by_type(client, db_session, member, member_client):
    _, headers = member
    make_authenticator(db_session, member_client, AuthenticatorType.GITHUB)
    make_authenticator(db_session, member_client, AuthenticatorType.FACEBOOK)
    db_session.commit()
    
    browsed = client.get(f"{BASE}?type=Github&client={member_client.id}", headers=headers)
    assert browsed.headers["Total"] == "1"
    
    searched = client.get(f"{BASE}/search?q=facebok", headers=headers)
    assert searched.headers["Total"] == "1"
    assert searched.json()[0]["type"] == "Facebook"


@pytest.mark.integration
def test_admin_password_authenticator_is_read_only(client, admin_headers, admin_client):
    authenticator = admin_client.authenticators[0]
    url = f"{BASE}/{authenticator.id}"
    
    assert client.get(url, headers=admin_headers).json()["type"] == "Password"
    assert client.delete(url, headers=admin_headers).status_code == 403
