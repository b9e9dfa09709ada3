# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Unit tests for paged listing.

Assumptions:
- Total counts every match, the page holds at most limit items
- Unknown sort fields and orders fall back to created_date and ASC
"""
import json

import pytest

from tests.fixtures.factories import make_application


@pytest.mark.unit
@pytest.mark.parametrize("raw,normalized", [
    ("asc", "ASC"), ("DESC", "DESC"), ("desc", "DESC"), ("sideways", "ASC"), (None, "ASC")
])
def test_normalize_order(raw, normalized):
    from roo.api.listing import normalize_order
    
    assert normalize_order(raw) == normalized


@pytest.mark.unit
def test_browse_counts_and_pages_same_query(db_session):
    from roo.api.listing import PageParams, browse
    from roo.database.schema import Application
    
    for index in range(12):
        make_application(db_session, None, f"App {index:02d}")
    db_session.commit()
    
    sortable = {"created_date": Application.created_date, "name": Application.name}
    query = db_session.query(Application).filter(Application.name != "App 00")
    page = browse(query, Application, PageParams(offset=5, limit=4, sort="name", order="DESC"), sortable)
    
    assert page.total == 11
    assert [item.name for item in page.items] == ["App 06", "App 05", "App 04", "App 03"]
    assert (page.sort, page.order) == ("name", "DESC")


@pytest.mark.unit
def test_browse_unknown_sort_falls_back(db_session):
    from roo.api.listing import PageParams, browse
    from roo.database.schema import Application
    
    make_application(db_session, None, "Only")
    db_session.commit()
    
    page = browse(
        db_session.query(Application), Application,
        PageParams(sort="owner_password", order="up"), {"created_date": Application.created_date}
    )
    
    assert page.total == 1
    assert (page.sort, page.order) == ("created_date", "ASC")


@pytest.mark.unit
def test_build_list_response_headers():
    from roo.api.listing import build_list_response
    
    response = build_list_response([{"id": "a"}], offset=0, limit=10, total=31, sort="name", order="ASC")
    
    assert json.loads(response.body) == [{"id": "a"}]
    assert response.headers["Offset"] == "0"
    assert response.headers["Limit"] == "10"
    assert response.headers["Total"] == "31"
    assert response.headers["Sort"] == "name"
    assert response.headers["Order"] == "ASC"


@pytest.mark.unit
def test_search_response_has_no_sort_headers():
    from roo.api.listing import build_list_response
    
    response = build_list_response([], offset=10, limit=5, total=0)
    
    assert json.loads(response.body) == []
    assert "Sort" not in response.headers
    assert response.headers["Total"] == "0"
