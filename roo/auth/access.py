# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Ownership-based access control.

One AccessControl instance is built per request from the caller's
principal, the scope policy of the resource being served and the admin
application id. Every resource router uses it to check single entities,
to resolve listing filters and to resolve entity references in request
bodies.

Assumptions:
- Owner-or-admin is the universal rule: the caller may touch an entity
  if their user owns it or their token holds the kind's admin scope
- Denied reads are reported as "not found" so existence never leaks
- The engine only reads from the session; it never commits
- Results depend only on (principal, policy, stored state)
"""
from typing import Any, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from roo.auth.principal import AdminAppId, Principal
from roo.auth.scopes import ScopePolicy
from roo.database.schema import Application, User
from roo.errors import (
    BadRequestError, ForbiddenError, InvalidScopeError, NotFoundError
)
from roo.logging_utils import log_security_event

EntityT = TypeVar("EntityT")


class AccessControl:
    """Authorization decisions for one resource kind and one caller."""

    def __init__(
        self,
        session: Session,
        principal: Principal,
        policy: ScopePolicy,
        admin_app_id: Optional[AdminAppId] = None,
    ):
        self.session = session
        self.principal = principal
        self.policy = policy
        self.admin_app_id = admin_app_id

    @property
    def current_user(self) -> Optional[User]:
        return self.principal.user

    @property
    def is_admin(self) -> bool:
        return self.principal.has_scope(self.policy.admin)

    def _deny(self, event: str, reason: str, **kwargs: Any) -> None:
        log_security_event(event, self.principal, reason=reason, resource=self.policy.kind, **kwargs)

    def assert_can_access(self, entity, required_scope: Optional[str] = None) -> None:
        """Require the caller to own the entity or hold the admin scope.
        
        Args:
            entity: Target entity, or None when the lookup found nothing
            required_scope: Scope granting unconditional access
                (defaults to the policy's admin scope)
            
        Raises:
            NotFoundError: If the entity is missing or the caller may not see it
        """
        if entity is None:
            raise NotFoundError()
        if self.principal.is_owner(entity):
            return
        scope = required_scope or self.policy.admin
        if self.principal.has_scope(scope):
            return
        self._deny(
            "access_denied",
            "caller is neither owner nor holder of the admin scope",
            entity_type=type(entity).__name__,
            entity_id=entity.id,
        )
        raise NotFoundError()

    def assert_can_access_subresource(self, entity, required_scope: Optional[str] = None) -> None:
        """Check access to the parent of a subresource being created.
        
        Same rule as assert_can_access, but a denial on an existing parent
        is reported as 400 rather than 404, since the parent was already
        matched by the route.
        
        Raises:
            NotFoundError: If the parent entity does not exist
            BadRequestError: If the caller may not access the parent
        """
        if entity is None:
            raise NotFoundError()
        try:
            self.assert_can_access(entity, required_scope)
        except NotFoundError as e:
            raise BadRequestError() from e

    def resolve_ownership_filter(self, owner_id: Optional[UUID | str]) -> Optional[User]:
        """Decide which owner a listing must be narrowed to.
        
        Args:
            owner_id: Optional owner id requested by the caller
            
        Returns:
            Optional[User]: User to filter by, or None for no owner filter
            
        Raises:
            BadRequestError: If an admin requests an unknown owner
            InvalidScopeError: If a non-admin has no user or asks for someone else
        """
        if self.is_admin:
            if owner_id is None:
                return None
            owner = self.session.get(User, str(owner_id))
            if owner is None:
                raise BadRequestError("Unknown owner.")
            return owner
        
        user = self.current_user
        if user is None:
            self._deny("invalid_scope", "owner filter requested without a user identity")
            raise InvalidScopeError()
        if owner_id is not None and str(owner_id) != user.id:
            self._deny("invalid_scope", "non-admin filtered by another owner", owner_id=str(owner_id))
            raise InvalidScopeError()
        return user

    def resolve_filter_entity(self, model: Type[EntityT], entity_id: Optional[UUID | str]) -> Optional[EntityT]:
        """Resolve a parent-entity filter (e.g. roles of one application).
        
        Args:
            model: Model class of the filter entity
            entity_id: Requested id, or None for no filter
            
        Returns:
            Optional entity to filter by
            
        Raises:
            BadRequestError: If the id is unknown or the caller does not own it
            InvalidScopeError: If the caller lacks the scopes or a user identity
        """
        entity = self.resolve_entity_input(model, entity_id)
        
        if self.is_admin:
            return entity
        if not self.principal.has_scope(self.policy.regular):
            self._deny("invalid_scope", "filter requested without the regular scope")
            raise InvalidScopeError()
        if self.current_user is None:
            self._deny("invalid_scope", "filter requested without a user identity")
            raise InvalidScopeError()
        if entity is None:
            return None
        if not self.principal.is_owner(entity):
            self._deny(
                "filter_denied",
                "filter entity is owned by another user",
                entity_type=model.__name__,
                entity_id=entity.id,
            )
            raise BadRequestError()
        return entity

    def resolve_entity_input(self, model: Type[EntityT], reference: Optional[UUID | str]) -> Optional[EntityT]:
        """Look up an optional entity reference from a request body or query.
        
        Raises:
            BadRequestError: If a reference is given but resolves to nothing
        """
        if reference is None:
            return None
        entity = self.session.get(model, str(reference))
        if entity is None:
            raise BadRequestError(f"Unknown {model.__name__} reference.")
        return entity

    def require_entity_input(self, model: Type[EntityT], reference: Optional[UUID | str]) -> EntityT:
        """Look up a mandatory entity reference.
        
        Raises:
            BadRequestError: If the reference is missing or resolves to nothing
        """
        entity = self.resolve_entity_input(model, reference)
        if entity is None:
            raise BadRequestError(f"A {model.__name__} reference is required.")
        return entity

    def get_admin_application(self) -> Optional[Application]:
        if self.admin_app_id is None:
            return None
        return self.session.get(Application, self.admin_app_id.value)

    def assert_not_admin_application(self, application: Optional[Application]) -> None:
        """Refuse changes to anything inside the admin application.
        
        Raises:
            ForbiddenError: If the application is the admin application
        """
        if self.admin_app_id is not None and self.admin_app_id.matches(application):
            self._deny("admin_application_protected", "mutation of the admin application")
            raise ForbiddenError()

    def assert_can_create_in(self, application: Application) -> None:
        """Require non-admins to own the application a new entity joins.
        
        Raises:
            BadRequestError: If a non-admin does not own the application
        """
        if self.is_admin or self.principal.is_owner(application):
            return
        self._deny(
            "create_denied",
            "parent application is owned by another user",
            entity_id=application.id,
        )
        raise BadRequestError()

    def resolve_new_owner(self, owner_id: Optional[UUID | str]) -> User:
        """Pick the owner of a new top-level entity.
        
        An explicit owner must be the caller unless the caller holds the
        admin scope. Without one, the caller's own user is used.
        
        Raises:
            BadRequestError: If the owner is unknown, belongs to someone else,
                or cannot be defaulted because the caller has no user
        """
        if owner_id is not None:
            owner = self.require_entity_input(User, owner_id)
            if not self.is_admin and (self.current_user is None or owner.id != self.current_user.id):
                self._deny("create_denied", "non-admin assigned another owner", owner_id=owner.id)
                raise BadRequestError()
            return owner
        if self.current_user is None:
            raise BadRequestError("An owner is required.")
        return self.current_user
