"""Task queries such as "pending tasks for Raj"."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping

from app.core.config import FetchSettings
from app.core.exceptions import ResourceNotFoundError
from app.schemas.projects import OwnerMatch, PendingTasks, TaskOwner, TaskSummary
from app.services.fetchers import UpstreamFetcher, extract_collection
from app.services.owners import OwnerResolver, owner_names

logger = logging.getLogger(__name__)

_OWNER_PATHS = ("owners_and_work.owners", "details.owners", "owners")


def task_owners(task: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return extract_collection(task, _OWNER_PATHS)


def is_pending_for(task: Mapping[str, Any], needles: Iterable[str]) -> bool:
    """True when the task is open and any owner's name contains a needle."""
    if task.get("is_completed") is True:
        return False
    terms = [needle for needle in needles if needle]
    if not terms:
        return False
    for owner in task_owners(task):
        names = [value for value in owner_names(owner).values() if value]
        if any(term in name for term in terms for name in names):
            return True
    return False


def _named(value: Any, default: str) -> str:
    if isinstance(value, Mapping):
        value = value.get("name")
    return str(value) if value not in (None, "") else default


def _percentage(value: Any) -> float:
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def to_task_summary(task: Mapping[str, Any]) -> TaskSummary:
    return TaskSummary(
        id=str(task.get("id") or task.get("id_string") or ""),
        name=str(task.get("name") or "Untitled Task"),
        description=task.get("description"),
        status=_named(task.get("status"), "Unknown"),
        priority=str(task.get("priority") or "none"),
        project=_named(task.get("project"), "Unknown Project"),
        start_date=task.get("start_date"),
        end_date=task.get("end_date"),
        owners=[
            TaskOwner(
                name=owner.get("name"),
                email=owner.get("email"),
                first_name=owner.get("first_name"),
                last_name=owner.get("last_name"),
            )
            for owner in task_owners(task)
        ],
        completion_percentage=_percentage(task.get("completion_percentage")),
        is_completed=bool(task.get("is_completed") or False),
    )


class TaskQueryService:
    def __init__(
        self,
        fetcher: UpstreamFetcher,
        owners: OwnerResolver,
        settings: FetchSettings,
    ) -> None:
        self._fetcher = fetcher
        self._owners = owners
        self._settings = settings

    async def pending_tasks_for_owner(
        self, *, conversation_id: str, portal_id: str, owner_query: str
    ) -> PendingTasks:
        """Open tasks assigned to the owner named by ``owner_query``.

        Raises ``ResourceNotFoundError`` when no portal user matches the name.
        Results keep upstream order and are capped at ``pending_task_limit``.
        """
        owner: OwnerMatch | None = await self._owners.resolve_owner(
            conversation_id=conversation_id,
            portal_id=portal_id,
            name_query=owner_query,
        )
        if owner is None:
            raise ResourceNotFoundError("owner", owner_query)

        tasks = await self._fetcher.fetch_all_paginated(
            "tasks", conversation_id=conversation_id, portal_id=portal_id
        )
        needles = (owner_query.strip().lower(), owner.name.strip().lower())
        pending = [task for task in tasks if is_pending_for(task, needles)]
        limited = pending[: self._settings.pending_task_limit]
        logger.info(
            "Found %s pending tasks for %s (returning %s)",
            len(pending),
            owner.name,
            len(limited),
        )
        return PendingTasks(
            owner=owner,
            total_matches=len(pending),
            tasks=[to_task_summary(task) for task in limited],
        )


__all__ = ["TaskQueryService", "is_pending_for", "task_owners", "to_task_summary"]
