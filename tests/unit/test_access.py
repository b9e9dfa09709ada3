# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for ownership-based access control.

Tests the owner-or-admin rule, listing filters and entity references
without going through HTTP.

Assumptions:
- Denied reads look exactly like missing entities (404)
- Non-admin listings are always narrowed to the caller's own entities
- The admin application can be read but never changed
"""
import pytest
from hypothesis import HealthCheck, given, settings as hypothesis_settings, strategies as st

from roo.auth.access import AccessControl
from roo.auth.principal import AdminAppId, Principal
from roo.auth.scopes import APPLICATION_POLICY, CLIENT_POLICY, Scope
from roo.database.schema import Application, Client
from roo.errors import BadRequestError, ForbiddenError, InvalidScopeError, NotFoundError
from tests.fixtures.factories import make_application, make_client, make_user


@pytest.fixture
def world(db_session):
    """Two owners in a host application, each owning one application with a client."""
    host = make_application(db_session, None, "Host")
    alice = make_user(db_session, host)
    bob = make_user(db_session, host)
    alice_app = make_application(db_session, alice, "Alice App")
    bob_app = make_application(db_session, bob, "Bob App")
    alice_client = make_client(db_session, alice_app)
    db_session.commit()
    return {
        "host": host,
        "alice": alice,
        "bob": bob,
        "alice_app": alice_app,
        "bob_app": bob_app,
        "alice_client": alice_client,
    }


def _access(session, user=None, scopes=(), policy=APPLICATION_POLICY, admin_app=None):
    principal = Principal(token_id="t", scopes=frozenset(scopes), user=user, client_id="c")
    admin_app_id = AdminAppId(admin_app.id) if admin_app is not None else None
    return AccessControl(session, principal, policy, admin_app_id)


@pytest.mark.unit
def test_owner_can_access_own_entity(db_session, world):
    access = _access(db_session, world["alice"], [Scope.APPLICATION])
    
    access.assert_can_access(world["alice_app"])


@pytest.mark.unit
def test_non_owner_gets_not_found(db_session, world):
    access = _access(db_session, world["bob"], [Scope.APPLICATION])
    
    with pytest.raises(NotFoundError):
        access.assert_can_access(world["alice_app"])


@pytest.mark.unit
def test_missing_entity_gets_not_found(db_session, world):
    access = _access(db_session, world["alice"], [Scope.APPLICATION_ADMIN])
    
    with pytest.raises(NotFoundError):
        access.assert_can_access(None)


@pytest.mark.unit
def test_admin_scope_grants_access_to_everything(db_session, world):
    access = _access(db_session, world["bob"], [Scope.APPLICATION_ADMIN])
    
    access.assert_can_access(world["alice_app"])


@pytest.mark.unit
def test_ownership_follows_parent_chain(db_session, world):
    """Test a client is owned by its application's owner."""
    alice = _access(db_session, world["alice"], [Scope.CLIENT], CLIENT_POLICY)
    bob = _access(db_session, world["bob"], [Scope.CLIENT], CLIENT_POLICY)
    
    alice.assert_can_access(world["alice_client"])
    with pytest.raises(NotFoundError):
        bob.assert_can_access(world["alice_client"])


@pytest.mark.unit
def test_denied_subresource_parent_is_bad_request(db_session, world):
    access = _access(db_session, world["bob"], [Scope.CLIENT], CLIENT_POLICY)
    
    with pytest.raises(BadRequestError):
        access.assert_can_access_subresource(world["alice_client"])
    with pytest.raises(NotFoundError):
        access.assert_can_access_subresource(None)


@pytest.mark.unit
@hypothesis_settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(is_owner=st.booleans(), has_admin=st.booleans(), has_regular=st.booleans())
def test_access_is_owner_or_admin(db_session, world, is_owner, has_admin, has_regular):
    """Test the decision depends only on ownership and the admin scope."""
    scopes = []
    if has_admin:
        scopes.append(Scope.APPLICATION_ADMIN)
    if has_regular:
        scopes.append(Scope.APPLICATION)
    user = world["alice"] if is_owner else world["bob"]
    access = _access(db_session, user, scopes)
    
    if is_owner or has_admin:
        access.assert_can_access(world["alice_app"])
    else:
        with pytest.raises(NotFoundError):
            access.assert_can_access(world["alice_app"])


@pytest.mark.unit
def test_ownership_filter_for_regular_user_is_self(db_session, world):
    access = _access(db_session, world["alice"], [Scope.APPLICATION])
    
    assert access.resolve_ownership_filter(None).id == world["alice"].id
    assert access.resolve_ownership_filter(world["alice"].id).id == world["alice"].id
    with pytest.raises(InvalidScopeError):
        access.resolve_ownership_filter(world["bob"].id)


@pytest.mark.unit
def test_ownership_filter_for_admin(db_session, world):
    access = _access(db_session, world["alice"], [Scope.APPLICATION_ADMIN])
    
    assert access.resolve_ownership_filter(None) is None
    assert access.resolve_ownership_filter(world["bob"].id).id == world["bob"].id
    with pytest.raises(BadRequestError):
        access.resolve_ownership_filter("00000000-0000-0000-0000-000000000000")


@pytest.mark.unit
def test_ownership_filter_without_user_is_invalid_scope(db_session, world):
    access = _access(db_session, None, [Scope.APPLICATION])
    
    with pytest.raises(InvalidScopeError):
        access.resolve_ownership_filter(None)


@pytest.mark.unit
def test_filter_entity_must_be_owned(db_session, world):
    access = _access(db_session, world["alice"], [Scope.CLIENT], CLIENT_POLICY)
    
    assert access.resolve_filter_entity(Application, None) is None
    assert access.resolve_filter_entity(Application, world["alice_app"].id).id == world["alice_app"].id
    with pytest.raises(BadRequestError):
        access.resolve_filter_entity(Application, world["bob_app"].id)
    with pytest.raises(BadRequestError):
        access.resolve_filter_entity(Application, "00000000-0000-0000-0000-000000000000")


@pytest.mark.unit
def test_filter_entity_needs_regular_scope(db_session, world):
    """Test a caller holding neither scope cannot filter."""
    access = _access(db_session, world["alice"], [], CLIENT_POLICY)
    
    with pytest.raises(InvalidScopeError):
        access.resolve_filter_entity(Application, None)


@pytest.mark.unit
def test_entity_input_resolution(db_session, world):
    access = _access(db_session, world["alice"], [Scope.CLIENT], CLIENT_POLICY)
    
    assert access.resolve_entity_input(Client, None) is None
    assert access.resolve_entity_input(Client, world["alice_client"].id).id == world["alice_client"].id
    with pytest.raises(BadRequestError):
        access.resolve_entity_input(Client, "00000000-0000-0000-0000-000000000000")
    with pytest.raises(BadRequestError):
        access.require_entity_input(Client, None)


@pytest.mark.unit
def test_admin_application_is_protected(db_session, world):
    access = _access(db_session, world["alice"], [Scope.APPLICATION_ADMIN], admin_app=world["host"])
    
    assert access.get_admin_application().id == world["host"].id
    access.assert_not_admin_application(world["alice_app"])
    with pytest.raises(ForbiddenError):
        access.assert_not_admin_application(world["host"])


@pytest.mark.unit
def test_create_requires_owning_parent_application(db_session, world):
    regular = _access(db_session, world["alice"], [Scope.CLIENT], CLIENT_POLICY)
    admin = _access(db_session, world["alice"], [Scope.CLIENT_ADMIN], CLIENT_POLICY)
    
    regular.assert_can_create_in(world["alice_app"])
    admin.assert_can_create_in(world["bob_app"])
    with pytest.raises(BadRequestError):
        regular.assert_can_create_in(world["bob_app"])


@pytest.mark.unit
def test_new_owner_defaults_to_caller(db_session, world):
    regular = _access(db_session, world["alice"], [Scope.APPLICATION])
    admin = _access(db_session, world["alice"], [Scope.APPLICATION_ADMIN])
    anonymous = _access(db_session, None, [Scope.APPLICATION_ADMIN])
    
    assert regular.resolve_new_owner(None).id == world["alice"].id
    assert admin.resolve_new_owner(world["bob"].id).id == world["bob"].id
    with pytest.raises(BadRequestError):
        regular.resolve_new_owner(world["bob"].id)
    with pytest.raises(BadRequestError):
        anonymous.resolve_new_owner(None)


@pytest.mark.unit
def test_principal_without_user_owns_nothing(db_session, world):
    principal = Principal(client_id="svc")
    
    assert principal.is_owner(world["alice_app"]) is False
    assert principal.actor_id == "client:svc"
