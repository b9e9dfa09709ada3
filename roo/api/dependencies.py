# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Dependency injection utilities for FastAPI endpoints.

This module provides the admin application ids, the authenticated
principal and per-resource AccessControl instances.
"""
import threading
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from roo.auth.access import AccessControl
from roo.auth.bearer import authenticate_bearer
from roo.auth.principal import Principal
from roo.auth.scopes import ScopePolicy
from roo.bootstrap import AdminBootstrap, ensure_admin_application
from roo.database.session import get_db
from roo.errors import UnauthorizedError
from roo.logging_config import add_context
from roo.logging_utils import log_security_event

__all__ = [
    "get_admin_bootstrap",
    "get_principal",
    "access_control",
]

bearer_scheme = HTTPBearer(auto_error=False)

_bootstrap_lock = threading.Lock()


def get_admin_bootstrap(request: Request, db: Session = Depends(get_db)) -> AdminBootstrap:
    """Return the admin application ids, bootstrapping them on first use.
    
    Assumptions:
    - The result is cached on app.state for the application's lifetime
    """
    bootstrap = getattr(request.app.state, "admin_bootstrap", None)
    if bootstrap is None:
        with _bootstrap_lock:
            bootstrap = getattr(request.app.state, "admin_bootstrap", None)
            if bootstrap is None:
                bootstrap = ensure_admin_application(db)
                request.app.state.admin_bootstrap = bootstrap
    return bootstrap


def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    bootstrap: AdminBootstrap = Depends(get_admin_bootstrap),
) -> Principal:
    """Dependency resolving the caller from the bearer token."""
    authorization = f"{credentials.scheme} {credentials.credentials}" if credentials else None
    principal = authenticate_bearer(db, authorization, bootstrap.admin_app_id)
    add_context(actor=principal.actor_id)
    return principal


def access_control(policy: ScopePolicy) -> Callable[..., AccessControl]:
    """Dependency factory guarding a resource kind.
    
    Args:
        policy: Scope policy of the resource kind
        
    Returns:
        A dependency yielding an AccessControl for the current caller
        
    Raises:
        UnauthorizedError: (from the dependency) if the token holds neither
            the regular nor the admin scope of the kind
    """
    def _dependency(
        principal: Principal = Depends(get_principal),
        db: Session = Depends(get_db),
        bootstrap: AdminBootstrap = Depends(get_admin_bootstrap),
    ) -> AccessControl:
        if not principal.has_any_scope(*policy.allowed):
            log_security_event("insufficient_scope", principal, reason=f"token lacks {policy.kind} scopes")
            raise UnauthorizedError(scopes=list(policy.allowed))
        return AccessControl(db, principal, policy, bootstrap.admin_app_id)
    
    return _dependency
