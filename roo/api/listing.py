# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Paged listing of collection resources.

Browse and search responses carry the page as a bare JSON array, with the
window and total in the Offset, Limit and Total headers (plus Sort and
Order for browse).

Assumptions:
- Count and page are taken from the same filtered query, so Total always
  describes the rows the page is cut from
- Unknown sort fields fall back to created_date rather than failing
- Unknown order values fall back to ASC
- Ties are broken by id so pages are stable
"""
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from fastapi import Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Query as OrmQuery

from roo.config import settings

DEFAULT_SORT = "created_date"
SORT_ORDERS = ("ASC", "DESC")


@dataclass(frozen=True)
class PageParams:
    """Requested page window and ordering."""
    offset: int = 0
    limit: int = 10
    sort: str = DEFAULT_SORT
    order: str = "ASC"


@dataclass
class Page:
    """One page of results with the metadata describing it."""
    items: list
    total: int
    offset: int
    limit: int
    sort: Optional[str] = None
    order: Optional[str] = None


def normalize_order(order: Optional[str]) -> str:
    """Map an order parameter to ASC or DESC, defaulting to ASC."""
    if order and order.upper() in SORT_ORDERS:
        return order.upper()
    return "ASC"


def page_params(
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_limit, ge=1, le=settings.max_page_limit),
    sort: str = Query(DEFAULT_SORT),
    order: str = Query("ASC"),
) -> PageParams:
    """FastAPI dependency reading browse parameters from the query string."""
    return PageParams(offset=offset, limit=limit, sort=sort, order=normalize_order(order))


def search_window(
    offset: int = Query(0, ge=0),
    limit: int = Query(settings.default_page_limit, ge=1, le=settings.max_page_limit),
) -> PageParams:
    """FastAPI dependency reading the search window from the query string."""
    return PageParams(offset=offset, limit=limit)


def browse(query: OrmQuery, model, page: PageParams, sortable: dict[str, Any]) -> Page:
    """Run a filtered query as a count plus one ordered page.
    
    Args:
        query: Query with every filter already applied
        model: Model class being listed (for the default sort and tie-break)
        page: Requested window and ordering
        sortable: Allowed sort names mapped to columns
        
    Returns:
        Page: Items of the window, total count and the effective sort/order
    """
    sort = page.sort if page.sort in sortable else DEFAULT_SORT
    column = sortable.get(sort, model.created_date)
    order = normalize_order(page.order)
    
    total = query.count()
    if order == "DESC":
        ordering = (column.desc(), model.id.desc())
    else:
        ordering = (column.asc(), model.id.asc())
    items = query.order_by(*ordering).limit(page.limit).offset(page.offset).all()
    
    return Page(items=items, total=total, offset=page.offset, limit=page.limit, sort=sort, order=order)


def build_list_response(
    items: Sequence[Any],
    offset: int,
    limit: int,
    total: int,
    sort: Optional[str] = None,
    order: Optional[str] = None,
) -> JSONResponse:
    """Build the list envelope: array body plus pagination headers.
    
    Args:
        items: Serializable items (pydantic models or plain data)
        offset: Window offset
        limit: Window size
        total: Number of matching entities
        sort: Effective sort field (browse only)
        order: Effective sort order (browse only)
        
    Returns:
        JSONResponse: 200 response with Offset/Limit/Total (and Sort/Order) headers
    """
    headers = {
        "Offset": str(offset),
        "Limit": str(limit),
        "Total": str(total),
    }
    if sort is not None:
        headers["Sort"] = sort
    if order is not None:
        headers["Order"] = order
    return JSONResponse(content=jsonable_encoder(list(items)), headers=headers)


def page_response(page: Page, serializer) -> JSONResponse:
    """Serialize a Page with build_list_response."""
    return build_list_response(
        [serializer(item) for item in page.items],
        offset=page.offset,
        limit=page.limit,
        total=page.total,
        sort=page.sort,
        order=page.order,
    )
