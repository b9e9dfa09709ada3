# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Scope names and per-resource scope policies.

Each resource kind has two scopes: a regular scope that grants access to
entities the caller owns, and an admin scope that grants access to all of
them. Scope names follow the pattern "kangaroo:<kind>" and
"kangaroo:<kind>_admin".

Assumptions:
- Scope names are case-sensitive
- Policies are immutable configuration, not state
"""
from dataclasses import dataclass

SCOPE_PREFIX = "kangaroo"

KINDS = (
    "application",
    "authenticator",
    "client",
    "identity",
    "role",
    "scope",
    "token",
    "user",
)


def _scope(kind: str, admin: bool = False) -> str:
    suffix = "_admin" if admin else ""
    return f"{SCOPE_PREFIX}:{kind}{suffix}"


class Scope:
    """Scope name constants."""
    APPLICATION = _scope("application")
    APPLICATION_ADMIN = _scope("application", admin=True)
    AUTHENTICATOR = _scope("authenticator")
    AUTHENTICATOR_ADMIN = _scope("authenticator", admin=True)
    CLIENT = _scope("client")
    CLIENT_ADMIN = _scope("client", admin=True)
    IDENTITY = _scope("identity")
    IDENTITY_ADMIN = _scope("identity", admin=True)
    ROLE = _scope("role")
    ROLE_ADMIN = _scope("role", admin=True)
    SCOPE = _scope("scope")
    SCOPE_ADMIN = _scope("scope", admin=True)
    TOKEN = _scope("token")
    TOKEN_ADMIN = _scope("token", admin=True)
    USER = _scope("user")
    USER_ADMIN = _scope("user", admin=True)


@dataclass(frozen=True)
class ScopePolicy:
    """The admin/regular scope pair guarding one resource kind."""
    kind: str
    admin: str
    regular: str

    @property
    def allowed(self) -> tuple[str, str]:
        """Scopes that let a token reach the resource at all."""
        return (self.admin, self.regular)


def _policy(kind: str) -> ScopePolicy:
    return ScopePolicy(kind=kind, admin=_scope(kind, admin=True), regular=_scope(kind))


APPLICATION_POLICY = _policy("application")
AUTHENTICATOR_POLICY = _policy("authenticator")
CLIENT_POLICY = _policy("client")
IDENTITY_POLICY = _policy("identity")
ROLE_POLICY = _policy("role")
SCOPE_POLICY = _policy("scope")
TOKEN_POLICY = _policy("token")
USER_POLICY = _policy("user")

_POLICIES_BY_ENTITY = {
    "Application": APPLICATION_POLICY,
    "Authenticator": AUTHENTICATOR_POLICY,
    "Client": CLIENT_POLICY,
    "ClientRedirect": CLIENT_POLICY,
    "ClientReferrer": CLIENT_POLICY,
    "UserIdentity": IDENTITY_POLICY,
    "Role": ROLE_POLICY,
    "ApplicationScope": SCOPE_POLICY,
    "OAuthToken": TOKEN_POLICY,
    "User": USER_POLICY,
}


def all_scopes() -> list[str]:
    """Every scope the admin application defines."""
    return [name for kind in KINDS for name in (_scope(kind), _scope(kind, admin=True))]


def admin_scopes() -> list[str]:
    """Scopes granting unrestricted access to every kind."""
    return [_scope(kind, admin=True) for kind in KINDS]


def user_scopes() -> list[str]:
    """Scopes granted to regular members (owner-restricted access only)."""
    return [_scope(kind) for kind in KINDS]


def policy_for_entity(entity) -> ScopePolicy:
    """Look up the scope policy guarding an entity instance or class.
    
    Args:
        entity: Model instance or model class
        
    Returns:
        ScopePolicy: Policy for the entity's kind
        
    Raises:
        KeyError: If the entity type has no policy
    """
    entity_type = entity if isinstance(entity, type) else type(entity)
    return _POLICIES_BY_ENTITY[entity_type.__name__]
