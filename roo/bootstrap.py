# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
First-run creation of the admin application.

The admin application is the application whose clients may call this API.
On first run it is created together with its web UI client, a password
authenticator, one scope per admin API scope, an "admin" and a "member"
role, and an initial admin user who owns the application. The resulting
ids are stored in the configuration table.

Assumptions:
- Ids pinned in settings win over the configuration table when they resolve
- Creation happens at most once per database
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from roo.auth.password import hash_password
from roo.auth.principal import AdminAppId
from roo.auth.scopes import admin_scopes, all_scopes, user_scopes
from roo.config import settings
from roo.database.schema import (
    Application, ApplicationScope, Authenticator, AuthenticatorType, Client,
    ClientType, ConfigurationEntry, Role, User, UserIdentity
)
from roo.logging_utils import log_application_event

ADMIN_SECTION = "admin"
APPLICATION_KEY = "application_id"
CLIENT_KEY = "client_id"

ADMIN_APPLICATION_NAME = "Kangaroo"
ADMIN_CLIENT_NAME = "Kangaroo Web UI"
ADMIN_REMOTE_ID = "admin"


@dataclass(frozen=True)
class AdminBootstrap:
    """Ids of the admin application and its web UI client."""
    admin_app_id: AdminAppId
    client_id: str


def read_configuration(session: Session, section: str) -> dict[str, str]:
    """Read all entries of a configuration section."""
    entries = session.query(ConfigurationEntry).filter(ConfigurationEntry.section == section).all()
    return {entry.config_key: entry.value for entry in entries}


def write_configuration(session: Session, section: str, values: dict[str, str]) -> None:
    """Insert or replace entries of a configuration section (not committed)."""
    session.flush()
    existing = {
        entry.config_key: entry
        for entry in session.query(ConfigurationEntry).filter(ConfigurationEntry.section == section)
    }
    for key, value in values.items():
        entry = existing.get(key)
        if entry is None:
            session.add(ConfigurationEntry(section=section, config_key=key, value=value))
        else:
            entry.value = value


def find_admin_application(session: Session) -> Optional[AdminBootstrap]:
    """Locate an existing admin application.
    
    Returns:
        Optional[AdminBootstrap]: Ids, or None if no admin application exists yet
    """
    stored = read_configuration(session, ADMIN_SECTION)
    for app_id in (settings.admin_application_id, stored.get(APPLICATION_KEY)):
        if not app_id:
            continue
        application = session.get(Application, app_id)
        if application is None:
            continue
        client_id = settings.admin_client_id or stored.get(CLIENT_KEY)
        if client_id is None and application.clients:
            client_id = application.clients[0].id
        if client_id is None:
            continue
        return AdminBootstrap(admin_app_id=AdminAppId(application.id), client_id=client_id)
    return None


def create_admin_application(session: Session, admin_password: Optional[str] = None) -> AdminBootstrap:
    """Create and commit the admin application and its first admin user.
    
    Args:
        session: Database session
        admin_password: Password of the "admin" identity
            (defaults to settings.bootstrap_admin_password)
        
    Returns:
        AdminBootstrap: Ids of the new application and web UI client
    """
    application = Application(name=ADMIN_APPLICATION_NAME)
    session.add(application)
    
    client = Client(application=application, name=ADMIN_CLIENT_NAME, type=ClientType.OWNER_CREDENTIALS)
    session.add(client)
    session.add(Authenticator(client=client, type=AuthenticatorType.PASSWORD, configuration={}))
    
    scopes = {name: ApplicationScope(application=application, name=name) for name in all_scopes()}
    session.add_all(scopes.values())
    
    admin_role = Role(application=application, name="admin", scopes=[scopes[name] for name in admin_scopes()])
    member_role = Role(application=application, name="member", scopes=[scopes[name] for name in user_scopes()])
    session.add_all([admin_role, member_role])
    session.flush()
    application.default_role = member_role
    
    admin_user = User(application=application, role=admin_role)
    session.add(admin_user)
    session.add(UserIdentity(
        user=admin_user,
        type=AuthenticatorType.PASSWORD,
        remote_id=ADMIN_REMOTE_ID,
        claims={},
        password_hash=hash_password(admin_password or settings.bootstrap_admin_password),
    ))
    session.flush()
    application.owner = admin_user
    
    write_configuration(session, ADMIN_SECTION, {
        APPLICATION_KEY: application.id,
        CLIENT_KEY: client.id,
    })
    session.commit()
    
    log_application_event(
        "admin_application_created",
        application_id=application.id,
        client_id=client.id,
        admin_user_id=admin_user.id,
    )
    return AdminBootstrap(admin_app_id=AdminAppId(application.id), client_id=client.id)


def ensure_admin_application(session: Session) -> AdminBootstrap:
    """Return the admin application ids, creating the application on first run."""
    existing = find_admin_application(session)
    if existing is not None:
        return existing
    return create_admin_application(session)
