from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.core.config import FetchSettings
from app.core.exceptions import NotAuthenticatedError, UpstreamError
from app.core.observability import AccessEvent
from app.services.fetchers import (
    ROOT,
    ResourceRoute,
    UpstreamFetcher,
    extract_collection,
    fields_extractor,
)
from conftest import FakeGateway


def _paged(items, page_size=2):
    def handler(endpoint, params):
        start = (params["page"] - 1) * page_size
        return {"tasks": items[start : start + page_size]}

    return handler


def test_extract_collection_prefers_first_non_empty_path() -> None:
    payload = {"tasks": [], "data": {"items": [{"id": 1}]}, "items": [{"id": 2}]}

    assert extract_collection(payload, ("tasks", "data.items", "items")) == [{"id": 1}]


def test_extract_collection_supports_bare_arrays() -> None:
    assert extract_collection([{"id": 1}, "junk"], (ROOT,)) == [{"id": 1}]
    assert extract_collection({"tasks": "nope"}, ("tasks", ROOT)) == []
    assert extract_collection(None, ("tasks",)) == []


def test_route_endpoint_fills_context() -> None:
    route = ResourceRoute("portal/{portal_id}/projects/{project_id}/bugs", fields_extractor("bugs"))

    assert route.endpoint(portal_id="9", project_id="42") == "portal/9/projects/42/bugs"
    assert route.name == "portal/{portal_id}/projects/{project_id}/bugs"


def test_unknown_resource_kind_is_rejected() -> None:
    with pytest.raises(ValueError):
        UpstreamFetcher.route_for("milestones")


@pytest.mark.asyncio
async def test_pagination_stops_on_first_empty_page(fetcher_factory, events) -> None:
    items = [{"id": i} for i in range(5)]
    fetcher, gateway = fetcher_factory(_paged(items))

    result = await fetcher.fetch_all_paginated("tasks", conversation_id="c", portal_id="9")

    assert result == items
    assert [params["page"] for _, params in gateway.calls] == [1, 2, 3, 4]
    assert all(params["per_page"] == 2 for _, params in gateway.calls)
    assert gateway.endpoints()[0] == "portal/9/tasks"
    assert [e["items"] for e in events.of(AccessEvent.PAGE_FETCHED)] == [2, 2, 1, 0]


@pytest.mark.asyncio
async def test_pagination_returns_partial_results_on_failure(fetcher_factory) -> None:
    def handler(endpoint, params):
        if params["page"] == 3:
            raise UpstreamError("boom", status_code=500)
        return {"tasks": [{"id": params["page"]}, {"id": params["page"] * 10}]}

    fetcher, gateway = fetcher_factory(handler)

    result = await fetcher.fetch_all_paginated("tasks", conversation_id="c", portal_id="9")

    assert result == [{"id": 1}, {"id": 10}, {"id": 2}, {"id": 20}]
    assert len(gateway.calls) == 3


@pytest.mark.asyncio
async def test_pagination_propagates_authentication_errors(fetcher_factory) -> None:
    def handler(endpoint, params):
        raise NotAuthenticatedError("c")

    fetcher, _ = fetcher_factory(handler)

    with pytest.raises(NotAuthenticatedError):
        await fetcher.fetch_all_paginated("tasks", conversation_id="c", portal_id="9")


@pytest.mark.asyncio
async def test_pagination_is_bounded_by_max_pages(events) -> None:
    gateway = FakeGateway(lambda endpoint, params: {"tasks": [{"id": params["page"]}]})
    fetcher = UpstreamFetcher(
        gateway, FetchSettings(ZOHO_PAGE_SIZE=1, ZOHO_MAX_PAGES=3), events=events
    )

    result = await fetcher.fetch_all_paginated("tasks", conversation_id="c", portal_id="9")

    assert result == [{"id": 1}, {"id": 2}, {"id": 3}]
    assert len(gateway.calls) == 3


@pytest.mark.asyncio
async def test_extra_params_are_forwarded(fetcher_factory) -> None:
    fetcher, gateway = fetcher_factory(lambda endpoint, params: {"tasks": []})

    await fetcher.fetch_all_paginated(
        "tasks", conversation_id="c", portal_id="9", params={"status": "open"}
    )

    assert gateway.calls[0][1] == {"status": "open", "page": 1, "per_page": 2}


@pytest.mark.asyncio
async def test_projects_listing_reads_bare_array(fetcher_factory) -> None:
    def handler(endpoint, params):
        return [{"id": "p1"}] if params["page"] == 1 else []

    fetcher, _ = fetcher_factory(handler)

    result = await fetcher.fetch_all_paginated("projects", conversation_id="c", portal_id="9")

    assert result == [{"id": "p1"}]


@pytest.mark.asyncio
async def test_first_available_skips_failing_and_empty_routes(fetcher_factory, events) -> None:
    routes = [
        ResourceRoute("portal/{portal_id}/projects/{project_id}/issues", fields_extractor("issues"), label="issues"),
        ResourceRoute("portal/{portal_id}/projects/{project_id}/bugs", fields_extractor("bugs"), label="bugs"),
        ResourceRoute("portal/{portal_id}/projects/{project_id}/defects", fields_extractor("defects"), label="defects"),
    ]

    def handler(endpoint, params):
        if endpoint.endswith("/issues"):
            raise UpstreamError("gone", status_code=404)
        if endpoint.endswith("/bugs"):
            return {"bugs": []}
        return {"defects": [{"id": "d1"}]}

    fetcher, gateway = fetcher_factory(handler)

    result = await fetcher.fetch_first_available(
        routes, conversation_id="c", portal_id="9", context={"project_id": "42"}
    )

    assert result == [{"id": "d1"}]
    assert gateway.endpoints() == [
        "portal/9/projects/42/issues",
        "portal/9/projects/42/bugs",
        "portal/9/projects/42/defects",
    ]
    assert events.of(AccessEvent.ROUTE_FAILED) == [{"route": "issues", "status": 404}]


@pytest.mark.asyncio
async def test_first_available_returns_empty_when_nothing_answers(fetcher_factory) -> None:
    def handler(endpoint, params):
        raise UpstreamError("down", status_code=503)

    fetcher, _ = fetcher_factory(handler)
    routes = [ResourceRoute("portal/{portal_id}/a", fields_extractor("a"))]

    assert await fetcher.fetch_first_available(routes, conversation_id="c", portal_id="9") == []


@pytest.mark.asyncio
async def test_fetch_collection_propagates_errors(fetcher_factory) -> None:
    def handler(endpoint, params):
        raise UpstreamError("down", status_code=503)

    fetcher, _ = fetcher_factory(handler)

    with pytest.raises(UpstreamError):
        await fetcher.fetch_collection(
            UpstreamFetcher.route_for("users"), conversation_id="c", portal_id="9"
        )
