"""
Schema-tolerant fetching on top of the Zoho gateway.

Zoho Projects answers with different envelopes depending on the endpoint and
API version (``{"tasks": [...]}``, ``{"data": {"items": [...]}}``, a bare
array, ...). Routes therefore declare a ranked list of places where the
collection may live, and the first non-empty one wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from app.core.config import FetchSettings
from app.core.exceptions import UpstreamError
from app.core.observability import AccessEvent, EventSink, LoggingEventSink
from app.services.gateway import ZohoProjectsGateway

logger = logging.getLogger(__name__)

ROOT = "$"

Extractor = Callable[[Any], List[Dict[str, Any]]]


def _resolve_path(payload: Any, path: str) -> Any:
    if path == ROOT:
        return payload
    current = payload
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def extract_collection(payload: Any, paths: Sequence[str]) -> List[Dict[str, Any]]:
    """Return the first non-empty list found at ``paths``, else an empty list."""
    for path in paths:
        candidate = _resolve_path(payload, path)
        if isinstance(candidate, list) and candidate:
            return [item for item in candidate if isinstance(item, Mapping)]
    return []


def fields_extractor(*paths: str) -> Extractor:
    return lambda payload: extract_collection(payload, paths)


def _standard_paths(kind: str) -> tuple[str, ...]:
    return (kind, f"data.{kind}", "data.items", "data.list", "items", "list", ROOT)


@dataclass(frozen=True)
class ResourceRoute:
    """One way of asking Zoho for a collection."""

    path_template: str
    extractor: Extractor
    params: Mapping[str, Any] = field(default_factory=dict)
    label: str = ""

    def endpoint(self, **context: Any) -> str:
        return self.path_template.format(**context)

    @property
    def name(self) -> str:
        return self.label or self.path_template


RESOURCE_ROUTES: Dict[str, ResourceRoute] = {
    "tasks": ResourceRoute(
        "portal/{portal_id}/tasks", fields_extractor(*_standard_paths("tasks"))
    ),
    # The v3 projects listing is a bare array.
    "projects": ResourceRoute(
        "portal/{portal_id}/projects",
        fields_extractor(ROOT, "projects", "data.projects", "data.items", "data.list"),
    ),
    "issues": ResourceRoute(
        "portal/{portal_id}/issues",
        fields_extractor("issues", "bugs", *_standard_paths("issues")[1:]),
    ),
    "users": ResourceRoute(
        "portal/{portal_id}/users", fields_extractor(*_standard_paths("users"))
    ),
}


class UpstreamFetcher:
    """Collection reads: full pagination, single pages and ranked fallbacks."""

    def __init__(
        self,
        gateway: ZohoProjectsGateway,
        settings: FetchSettings,
        *,
        events: EventSink | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings
        self._events = events or LoggingEventSink()

    @staticmethod
    def route_for(resource_kind: str) -> ResourceRoute:
        try:
            return RESOURCE_ROUTES[resource_kind]
        except KeyError:
            known = ", ".join(sorted(RESOURCE_ROUTES))
            raise ValueError(
                f"Unknown resource kind {resource_kind!r}; expected one of {known}"
            ) from None

    async def fetch_all_paginated(
        self,
        resource_kind: str,
        *,
        conversation_id: str,
        portal_id: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Read every page of ``resource_kind`` until an empty page.

        A page that fails with ``UpstreamError`` ends the walk and whatever was
        gathered so far is returned. Authentication errors propagate.
        """
        route = self.route_for(resource_kind)
        endpoint = route.endpoint(portal_id=portal_id)
        per_page = self._settings.page_size
        collected: List[Dict[str, Any]] = []

        for page in range(1, self._settings.max_pages + 1):
            query = {**route.params, **(params or {}), "page": page, "per_page": per_page}
            try:
                response = await self._gateway.call_upstream(
                    endpoint,
                    params=query,
                    conversation_id=conversation_id,
                    portal_id=portal_id,
                )
            except UpstreamError as exc:
                logger.warning(
                    "Stopping %s pagination at page %s: %s", resource_kind, page, exc
                )
                break

            items = route.extractor(_json_or_none(response))
            self._events.emit(
                AccessEvent.PAGE_FETCHED,
                resource=resource_kind,
                page=page,
                items=len(items),
            )
            if not items:
                break
            collected.extend(items)
        else:
            logger.warning(
                "Stopped %s pagination after max_pages=%s",
                resource_kind,
                self._settings.max_pages,
            )

        return collected

    async def fetch_collection(
        self,
        route: ResourceRoute,
        *,
        conversation_id: str,
        portal_id: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Read a single, unpaginated response. Errors propagate."""
        response = await self._gateway.call_upstream(
            route.endpoint(portal_id=portal_id),
            params={**route.params, **(params or {})},
            conversation_id=conversation_id,
            portal_id=portal_id,
        )
        return route.extractor(_json_or_none(response))

    async def fetch_first_available(
        self,
        routes: Sequence[ResourceRoute],
        *,
        conversation_id: str,
        portal_id: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Try ``routes`` in order and return the first non-empty collection."""
        for route in routes:
            endpoint = route.endpoint(portal_id=portal_id, **(context or {}))
            try:
                response = await self._gateway.call_upstream(
                    endpoint,
                    params=dict(route.params),
                    conversation_id=conversation_id,
                    portal_id=portal_id,
                )
            except UpstreamError as exc:
                self._events.emit(
                    AccessEvent.ROUTE_FAILED,
                    route=route.name,
                    status=exc.status_code,
                )
                continue

            items = route.extractor(_json_or_none(response))
            if items:
                logger.debug("Route %s returned %s items", route.name, len(items))
                return items

        return []


def _json_or_none(response: Any) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


__all__ = [
    "RESOURCE_ROUTES",
    "ROOT",
    "ResourceRoute",
    "UpstreamFetcher",
    "extract_collection",
    "fields_extractor",
]
