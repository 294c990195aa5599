"""Project lookups and project issue listings."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from app.core.config import FetchSettings
from app.core.exceptions import UpstreamError
from app.schemas.projects import (
    IssueSummary,
    LookupStatus,
    ProjectDetails,
    ProjectIssue,
    ProjectLookup,
)
from app.services.fetchers import ROOT, ResourceRoute, UpstreamFetcher, fields_extractor
from app.services.gateway import ZohoProjectsGateway

logger = logging.getLogger(__name__)

_ISSUE_FIELDS = fields_extractor("issues", "bugs", ROOT)

# Issue endpoints differ between portals; tried in order.
PROJECT_ISSUE_ROUTES = (
    ResourceRoute(
        "portal/{portal_id}/projects/{project_id}/issues",
        _ISSUE_FIELDS,
        {"per_page": 10},
        "project issues",
    ),
    ResourceRoute(
        "portal/{portal_id}/projects/{project_id}/bugs",
        _ISSUE_FIELDS,
        {"per_page": 10},
        "project bugs",
    ),
    ResourceRoute("portal/{portal_id}/issues", _ISSUE_FIELDS, {"per_page": 10}, "portal issues"),
    ResourceRoute("portal/{portal_id}/bugs", _ISSUE_FIELDS, {"per_page": 10}, "portal bugs"),
)


def normalize_name(value: str) -> str:
    return " ".join(value.lower().split())


def _text(value: Any, *keys: str, default: str) -> str:
    """First non-empty of ``value`` itself or ``value[key]`` for mappings."""
    if isinstance(value, Mapping):
        for key in keys:
            candidate = value.get(key)
            if candidate not in (None, ""):
                return str(candidate)
        return default
    if value in (None, ""):
        return default
    return str(value)


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _issue_project_name(issue: Mapping[str, Any]) -> str:
    return _text(issue.get("project"), "name", default="") or str(
        issue.get("project_name") or ""
    )


def to_issue_summary(issue: Mapping[str, Any]) -> IssueSummary:
    return IssueSummary(
        name=str(issue.get("title") or issue.get("name") or issue.get("subject") or "Untitled Issue"),
        project=_issue_project_name(issue) or "Unknown Project",
        reporter=_text(
            issue.get("created_by") or issue.get("reporter"),
            "first_name",
            "full_name",
            "name",
            default="Unknown",
        ),
        assignee=_text(issue.get("assignee"), "first_name", "full_name", "name", default="Unassigned"),
        status=_text(issue.get("status"), "name", default="Unknown"),
        severity=_text(issue.get("severity"), "value", "name", "type", default="None"),
        created_time=issue.get("created_time"),
        last_modified=issue.get("last_updated_time"),
        last_closed=issue.get("last_closed"),
        due_date=issue.get("due_date"),
        description=str(issue.get("description") or "No description available"),
    )


def to_project_issue(issue: Mapping[str, Any]) -> ProjectIssue:
    return ProjectIssue(
        title=str(issue.get("title") or issue.get("name") or issue.get("subject") or "Untitled Issue"),
        status=_text(issue.get("status"), "name", default="Unknown"),
        priority=_text(issue.get("priority") or issue.get("severity"), "name", "value", default="Unknown"),
    )


class ProjectQueryService:
    def __init__(
        self,
        fetcher: UpstreamFetcher,
        gateway: ZohoProjectsGateway,
        settings: FetchSettings,
    ) -> None:
        self._fetcher = fetcher
        self._gateway = gateway
        self._settings = settings

    async def list_projects(
        self, *, conversation_id: str, portal_id: str
    ) -> List[Dict[str, Any]]:
        return await self._fetcher.fetch_all_paginated(
            "projects", conversation_id=conversation_id, portal_id=portal_id
        )

    async def find_project(
        self, *, conversation_id: str, portal_id: str, project_name: str
    ) -> ProjectLookup:
        """Find exactly one project whose name contains ``project_name``."""
        projects = await self.list_projects(
            conversation_id=conversation_id, portal_id=portal_id
        )
        needle = normalize_name(project_name)
        matched = [
            project
            for project in projects
            if needle and needle in normalize_name(str(project.get("name") or ""))
        ]

        if not matched:
            return ProjectLookup(status=LookupStatus.NOT_FOUND, query=project_name)
        if len(matched) > 1:
            return ProjectLookup(
                status=LookupStatus.AMBIGUOUS,
                query=project_name,
                candidates=[str(project.get("name")) for project in matched],
            )

        details = await self._project_details(
            matched[0], conversation_id=conversation_id, portal_id=portal_id
        )
        return ProjectLookup(status=LookupStatus.FOUND, query=project_name, project=details)

    async def project_issues(
        self, *, conversation_id: str, portal_id: str, project_name: str
    ) -> List[IssueSummary]:
        """All portal issues belonging to the project named ``project_name``.

        Names match when either normalized name contains the other; issues
        without a project name never match.
        """
        issues = await self._fetcher.fetch_all_paginated(
            "issues", conversation_id=conversation_id, portal_id=portal_id
        )
        wanted = normalize_name(project_name)
        matched = []
        for issue in issues:
            issue_project = normalize_name(_issue_project_name(issue))
            if not issue_project or not wanted:
                continue
            if wanted in issue_project or issue_project in wanted:
                matched.append(to_issue_summary(issue))
        logger.info("Found %s issues for project %r", len(matched), project_name)
        return matched

    async def _project_details(
        self,
        project: Mapping[str, Any],
        *,
        conversation_id: str,
        portal_id: str,
    ) -> ProjectDetails:
        project_id = str(project.get("id") or project.get("id_string") or "")
        tasks = project.get("tasks") if isinstance(project.get("tasks"), Mapping) else {}
        details = ProjectDetails(
            id=project_id,
            key=str(project.get("key") or project_id),
            name=str(project.get("name") or ""),
            description=str(project.get("description") or "-"),
            owner=_text(project.get("owner"), "full_name", "name", default="-"),
            status=_text(project.get("status"), "name", default="-"),
            percent_complete=_optional_str(project.get("percent_complete")),
            open_tasks=_optional_int(tasks.get("open_count")),
            closed_tasks=_optional_int(tasks.get("closed_count")),
            start_date=project.get("start_date"),
            end_date=project.get("end_date"),
        )

        try:
            response = await self._gateway.call_upstream(
                f"portal/{portal_id}/projects/{project_id}",
                conversation_id=conversation_id,
                portal_id=portal_id,
            )
            detail = response.json()
        except (UpstreamError, ValueError) as exc:
            logger.info("Project detail unavailable for %s: %s", project_id, exc)
            detail = None

        if isinstance(detail, Mapping):
            detail_tasks = detail.get("tasks") if isinstance(detail.get("tasks"), Mapping) else {}
            details = details.model_copy(
                update={
                    "percent_complete": _optional_str(detail.get("percent_complete"))
                    or details.percent_complete,
                    "open_tasks": _optional_int(detail_tasks.get("open_count"))
                    if detail_tasks.get("open_count") is not None
                    else details.open_tasks,
                    "closed_tasks": _optional_int(detail_tasks.get("closed_count"))
                    if detail_tasks.get("closed_count") is not None
                    else details.closed_tasks,
                    "tag": _optional_str(detail.get("tag")) or details.tag,
                }
            )

        issues = await self._fetcher.fetch_first_available(
            PROJECT_ISSUE_ROUTES,
            conversation_id=conversation_id,
            portal_id=portal_id,
            context={"project_id": project_id},
        )
        preview = [to_project_issue(issue) for issue in issues[: self._settings.issue_preview_limit]]
        return details.model_copy(update={"issues": preview})


def _optional_str(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


__all__ = [
    "PROJECT_ISSUE_ROUTES",
    "ProjectQueryService",
    "normalize_name",
    "to_issue_summary",
    "to_project_issue",
]
