# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Helpers shared by the resource routers.
"""
from typing import Any, Optional
from uuid import UUID

from fastapi import Request, Response

from roo.auth.access import AccessControl
from roo.errors import BadRequestError
from roo.logging_utils import log_audit_event


def assert_new_entity(body_id: Optional[UUID]) -> None:
    """Reject create requests that try to choose the id."""
    if body_id is not None:
        raise BadRequestError("A new entity may not carry an id.")


def assert_body_id(body_id: Optional[UUID], entity_id: str) -> None:
    """Reject update bodies whose id differs from the path id."""
    if body_id is not None and str(body_id) != entity_id:
        raise BadRequestError("The body id does not match the path.")


def assert_unchanged(requested: Optional[Any], current: Optional[str], field: str) -> None:
    """Reject update bodies that try to move an entity to another parent.
    
    Args:
        requested: Reference sent in the body (None means "not sent")
        current: Id currently stored
        field: Field name for the error message
    """
    if requested is not None and str(requested) != current:
        raise BadRequestError(f"The {field} of an existing entity cannot be changed.")


def set_location(request: Request, response: Response, route_name: str, **path_params: Any) -> None:
    """Point the Location header at a newly created entity."""
    response.headers["Location"] = str(request.url_for(route_name, **path_params))


def record_audit(
    access: AccessControl,
    operation: str,
    entity_type: str,
    entity_id: str,
    changes: Optional[dict] = None,
    **kwargs: Any
) -> None:
    """Write the audit log entry for a committed change."""
    log_audit_event(
        access.principal,
        operation=operation,
        entity_type=entity_type,
        entity_id=entity_id,
        changes=changes,
        **kwargs
    )
