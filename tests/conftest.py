# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Pytest configuration and shared fixtures.

This module provides test fixtures that are shared across the test suite.

Assumptions:
- Database fixtures use in-memory SQLite, shared between the test and the app
- Each test gets a fresh TestClient and a freshly bootstrapped admin application
- Callers authenticate with bearer tokens issued by an admin application client
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("BOOTSTRAP_ADMIN_PASSWORD", "admin")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roo.auth.scopes import all_scopes, user_scopes
from roo.database.schema import ClientType
from tests.fixtures.factories import (
    bearer, make_application, make_client, make_identity, make_token, make_user
)


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing.
    
    Returns:
        Session: SQLAlchemy session
        
    Assumptions:
    - StaticPool keeps one connection alive across threads
    - check_same_thread=False allows TestClient to use the same connection
    - Schema is created fresh for each test
    """
    from roo.database.schema import init_db
    
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    init_db(engine)
    
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SessionLocal()
    
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def app(db_session):
    """Create a FastAPI application bound to the test database.
    
    Assumptions:
    - get_db is overridden to hand out the shared session
    """
    from roo.database.session import get_db
    from roo.main import create_app
    
    app = create_app()
    
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close, let the fixture handle it
    
    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Create a test client for the application."""
    return TestClient(app)


@pytest.fixture
def bootstrap(db_session):
    """Create the admin application in the test database.
    
    Returns:
        AdminBootstrap: Ids of the admin application and web UI client
    """
    from roo.bootstrap import ensure_admin_application
    return ensure_admin_application(db_session)


@pytest.fixture
def admin_app(db_session, bootstrap):
    """The bootstrapped admin application."""
    from roo.database.schema import Application
    return db_session.get(Application, bootstrap.admin_app_id.value)


@pytest.fixture
def admin_client(db_session, bootstrap):
    """The admin web UI client."""
    from roo.database.schema import Client
    return db_session.get(Client, bootstrap.client_id)


@pytest.fixture
def admin_user(admin_app):
    """The initial admin user, owner of the admin application."""
    return admin_app.owner


@pytest.fixture
def admin_headers(db_session, admin_client, admin_user):
    """Authorization headers for the admin user holding every scope."""
    token = make_token(db_session, admin_client, admin_user.identities[0], all_scopes())
    db_session.commit()
    return bearer(token)


def _member(db_session, admin_app, admin_client, remote_id):
    user = make_user(db_session, admin_app, admin_app.default_role)
    identity = make_identity(db_session, user, remote_id, {"name": remote_id.title()})
    token = make_token(db_session, admin_client, identity, user_scopes())
    db_session.commit()
    return user, bearer(token)


@pytest.fixture
def member(db_session, admin_app, admin_client):
    """A regular admin-app user holding only the owner-restricted scopes.
    
    Returns:
        tuple: (User, authorization headers)
    """
    return _member(db_session, admin_app, admin_client, "alice")


@pytest.fixture
def other_member(db_session, admin_app, admin_client):
    """A second regular user, for isolation checks."""
    return _member(db_session, admin_app, admin_client, "bob")


@pytest.fixture
def service_headers(db_session, admin_app):
    """Headers for a client-credentials token: regular scopes, no user."""
    service = make_client(db_session, admin_app, "Service", ClientType.CLIENT_CREDENTIALS)
    token = make_token(db_session, service, None, user_scopes())
    db_session.commit()
    return bearer(token)


@pytest.fixture
def member_app(db_session, member):
    """An application owned by the member."""
    user, _ = member
    application = make_application(db_session, user, "Member App")
    db_session.commit()
    return application


@pytest.fixture
def other_app(db_session, other_member):
    """An application owned by the other member."""
    user, _ = other_member
    application = make_application(db_session, user, "Other App")
    db_session.commit()
    return application
