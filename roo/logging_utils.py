# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Named event loggers for Roo.

- roo.application: operational events (startup, requests, conflicts)
- roo.audit: every committed create, update, delete, link and unlink
- roo.security: rejected credentials and denied access

Assumptions:
- Audit and security events name the caller by actor id and client id,
  taken from the principal when one is known
- Secret values are masked by the processor chain in roo.logging_config
"""
from typing import Any, Dict, Optional

from roo.logging_config import get_logger

app_logger = get_logger("roo.application")
audit_logger = get_logger("roo.audit")
security_logger = get_logger("roo.security")


def _caller(principal: Any) -> Dict[str, Optional[str]]:
    if principal is None:
        return {"actor_id": None, "client_id": None}
    return {"actor_id": principal.actor_id, "client_id": principal.client_id}


def log_application_event(event: str, **kwargs: Any) -> None:
    app_logger.info(event, **kwargs)


def log_audit_event(
    principal: Any,
    operation: str,
    entity_type: str,
    entity_id: str,
    changes: Optional[Dict[str, Any]] = None,
    **kwargs: Any
) -> None:
    """Log a committed change.

    Args:
        principal: Caller that made the change
        operation: create, update, delete, link or unlink
        entity_type: Model name (Application, Client, ...)
        entity_id: Id of the changed entity
        changes: Submitted body, if any
        **kwargs: Additional context (e.g. the linked scope)
    """
    audit_logger.info(
        "audit_event",
        **_caller(principal),
        operation=operation,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=changes,
        **kwargs
    )


def log_security_event(
    event: str,
    principal: Any = None,
    reason: Optional[str] = None,
    **kwargs: Any
) -> None:
    """Log a rejected credential or a denied access as a warning.

    Args:
        event: authentication_failed, insufficient_scope, access_denied, ...
        principal: Authenticated caller, None before authentication
        reason: Short human-readable cause
        **kwargs: Additional context (resource kind, entity id, token id)
    """
    security_logger.warning(event, **_caller(principal), reason=reason, **kwargs)
