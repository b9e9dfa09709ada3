# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for first-run creation of the admin application.

Assumptions:
- The admin application is created once and found again afterwards
- Its ids are stored in the "admin" configuration section
"""
import pytest


@pytest.mark.unit
def test_bootstrap_creates_admin_application(db_session):
    from roo.auth.password import verify_password
    from roo.auth.scopes import admin_scopes, all_scopes, user_scopes
    from roo.bootstrap import ADMIN_APPLICATION_NAME, create_admin_application
    from roo.database.schema import Application, ClientType
    
    bootstrap = create_admin_application(db_session, admin_password="s3cret")
    application = db_session.get(Application, bootstrap.admin_app_id.value)
    
    assert application.name == ADMIN_APPLICATION_NAME
    assert [client.id for client in application.clients] == [bootstrap.client_id]
    assert application.clients[0].type == ClientType.OWNER_CREDENTIALS
    assert sorted(scope.name for scope in application.scopes) == sorted(all_scopes())
    
    roles = {role.name: role for role in application.roles}
    assert sorted(scope.name for scope in roles["admin"].scopes) == sorted(admin_scopes())
    assert sorted(scope.name for scope in roles["member"].scopes) == sorted(user_scopes())
    assert application.default_role.id == roles["member"].id
    
    owner = application.owner
    assert owner.application_id == application.id
    assert owner.role.id == roles["admin"].id
    assert owner.identities[0].remote_id == "admin"
    assert verify_password("s3cret", owner.identities[0].password_hash)


@pytest.mark.unit
def test_bootstrap_is_idempotent(db_session):
    from roo.bootstrap import ensure_admin_application
    from roo.database.schema import Application
    
    first = ensure_admin_application(db_session)
    second = ensure_admin_application(db_session)
    
    assert first == second
    assert db_session.query(Application).count() == 1


@pytest.mark.unit
def test_bootstrap_ids_are_stored_in_configuration(db_session):
    from roo.bootstrap import (
        ADMIN_SECTION, APPLICATION_KEY, CLIENT_KEY, ensure_admin_application, read_configuration
    )
    
    bootstrap = ensure_admin_application(db_session)
    
    assert read_configuration(db_session, ADMIN_SECTION) == {
        APPLICATION_KEY: bootstrap.admin_app_id.value,
        CLIENT_KEY: bootstrap.client_id,
    }


@pytest.mark.unit
def test_write_configuration_replaces_values(db_session):
    from roo.bootstrap import read_configuration, write_configuration
    
    write_configuration(db_session, "ui", {"theme": "dark"})
    write_configuration(db_session, "ui", {"theme": "light", "lang": "en"})
    db_session.commit()
    
    assert read_configuration(db_session, "ui") == {"theme": "light", "lang": "en"}


@pytest.mark.unit
def test_password_hashing():
    from roo.auth.password import hash_password, verify_password
    
    hashed = hash_password("correct horse")
    
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed) is True
    assert verify_password("wrong", hashed) is False
    assert verify_password("anything", "not-a-bcrypt-hash") is False
