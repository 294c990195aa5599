"""
Public surface of the access layer consumed by the chat/action layer.

``ProjectsBridge`` wires credentials, the gateway and the resolvers together
and fills in the configured default portal (and, for single-tenant setups,
the default conversation) when callers omit them.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Mapping, Optional

import httpx

from app.clients.credential_store import CredentialStore
from app.models.oauth import CredentialRecord
from app.schemas.projects import (
    IssueSummary,
    OwnerMatch,
    PendingTasks,
    PortalUser,
    ProjectLookup,
    TimeLogEntry,
)
from app.services.fetchers import UpstreamFetcher
from app.services.gateway import ZohoProjectsGateway
from app.services.owners import OwnerResolver
from app.services.projects import ProjectQueryService
from app.services.tasks import TaskQueryService
from app.services.time_logs import TimeLogService
from app.services.token_manager import TokenManager


class ProjectsBridge:
    def __init__(
        self,
        *,
        store: CredentialStore,
        tokens: TokenManager,
        gateway: ZohoProjectsGateway,
        fetcher: UpstreamFetcher,
        owners: OwnerResolver,
        tasks: TaskQueryService,
        projects: ProjectQueryService,
        time_logs: TimeLogService,
        default_portal_id: Optional[str] = None,
        default_conversation_id: Optional[str] = None,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._gateway = gateway
        self._fetcher = fetcher
        self._owners = owners
        self._tasks = tasks
        self._projects = projects
        self._time_logs = time_logs
        self._default_portal_id = default_portal_id
        self._default_conversation_id = default_conversation_id

    def _conversation(self, conversation_id: Optional[str]) -> str:
        resolved = conversation_id or self._default_conversation_id
        if not resolved:
            raise ValueError("conversation_id is required")
        return resolved

    def _portal(self, portal_id: Optional[str]) -> str:
        resolved = portal_id or self._default_portal_id
        if not resolved:
            raise ValueError("portal_id is required (set ZOHO_PORTAL_ID for a default)")
        return resolved

    # Credentials

    def store_token(
        self,
        conversation_id: str,
        external_user_id: str,
        access_token: str,
        refresh_token: str,
        expires_in: float,
    ) -> CredentialRecord:
        return self._store.upsert(
            conversation_id, external_user_id, access_token, refresh_token, expires_in
        )

    def revoke(self, conversation_id: str) -> bool:
        return self._store.delete(conversation_id)

    async def get_valid_token(self, conversation_id: Optional[str] = None) -> CredentialRecord:
        return await self._tokens.get_valid_token(self._conversation(conversation_id))

    # Raw access

    async def call_upstream(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> httpx.Response:
        return await self._gateway.call_upstream(
            endpoint,
            method,
            body,
            params,
            conversation_id=self._conversation(conversation_id),
            portal_id=portal_id or self._default_portal_id,
        )

    async def fetch_all_paginated(
        self,
        resource_kind: str,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return await self._fetcher.fetch_all_paginated(
            resource_kind,
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
        )

    # Resolvers

    async def resolve_owner(
        self,
        name_query: str,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> Optional[OwnerMatch]:
        return await self._owners.resolve_owner(
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
            name_query=name_query,
        )

    async def list_users(
        self, conversation_id: Optional[str] = None, portal_id: Optional[str] = None
    ) -> List[PortalUser]:
        return await self._owners.list_users(
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
        )

    async def pending_tasks_for_owner(
        self,
        owner_query: str,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> PendingTasks:
        return await self._tasks.pending_tasks_for_owner(
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
            owner_query=owner_query,
        )

    async def find_project(
        self,
        project_name: str,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> ProjectLookup:
        return await self._projects.find_project(
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
            project_name=project_name,
        )

    async def project_issues(
        self,
        project_name: str,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> List[IssueSummary]:
        return await self._projects.project_issues(
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
            project_name=project_name,
        )

    async def time_logs_for_user(
        self,
        user_id: str,
        from_date: date,
        to_date: date,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> List[TimeLogEntry]:
        return await self._time_logs.time_logs_for_user(
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
            user_id=user_id,
            from_date=from_date,
            to_date=to_date,
        )

    async def monthly_time_logs(
        self,
        month: date,
        conversation_id: Optional[str] = None,
        portal_id: Optional[str] = None,
    ) -> List[TimeLogEntry]:
        return await self._time_logs.monthly_time_logs(
            conversation_id=self._conversation(conversation_id),
            portal_id=self._portal(portal_id),
            month=month,
        )


__all__ = ["ProjectsBridge"]
