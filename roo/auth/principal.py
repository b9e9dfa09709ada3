# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Caller principal and admin application id.

Both are plain values handed to the access layer, so authorization can be
evaluated (and tested) without a request or a container.

Assumptions:
- A principal without a user comes from a client-credentials grant and
  cannot own anything
- Ownership is compared by user id, never by object identity
"""
from dataclasses import dataclass, field
from typing import Optional

from roo.database.schema import Application, OAuthToken, User


@dataclass(frozen=True)
class AdminAppId:
    """Id of the bootstrap admin application."""
    value: str

    def matches(self, application: Optional[Application]) -> bool:
        return application is not None and application.id == self.value


@dataclass(frozen=True)
class Principal:
    """The authenticated caller.
    
    Attributes:
        token_id: Id of the bearer token presented
        scopes: Scope names granted to the token
        user: User behind the token's identity, if any
        client_id: Client the token was issued to
    """
    token_id: Optional[str] = None
    scopes: frozenset[str] = field(default_factory=frozenset)
    user: Optional[User] = None
    client_id: Optional[str] = None

    @classmethod
    def from_token(cls, token: OAuthToken) -> "Principal":
        """Build a principal from a stored bearer token."""
        user = token.identity.user if token.identity is not None else None
        return cls(
            token_id=token.id,
            scopes=frozenset(scope.name for scope in token.scopes),
            user=user,
            client_id=token.client_id,
        )

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user is not None else None

    @property
    def actor_id(self) -> str:
        """Identifier recorded in audit logs."""
        if self.user is not None:
            return self.user.id
        return f"client:{self.client_id}"

    def has_scope(self, name: str) -> bool:
        return name in self.scopes

    def has_any_scope(self, *names: str) -> bool:
        return any(name in self.scopes for name in names)

    def is_owner(self, entity) -> bool:
        """Check whether the caller's user owns an entity.
        
        Args:
            entity: Any model exposing `owner`
            
        Returns:
            bool: False for callers without a user and for unowned entities
        """
        if self.user is None or entity is None:
            return False
        owner = entity.owner
        return owner is not None and owner.id == self.user.id
