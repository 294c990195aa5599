"""Normalized Zoho Projects records handed to the conversation layer."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class PortalUser(BaseModel):
    """A member of a Zoho portal."""

    id: str
    name: str
    email: Optional[str] = None


class OwnerMatch(BaseModel):
    """Result of resolving a free-text name to a portal user."""

    id: str
    name: str


class TaskOwner(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TaskSummary(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: str = "Unknown"
    priority: str = "none"
    project: str = "Unknown Project"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    owners: List[TaskOwner] = Field(default_factory=list)
    completion_percentage: float = 0
    is_completed: bool = False


class PendingTasks(BaseModel):
    owner: OwnerMatch
    total_matches: int = Field(..., description="Pending tasks found before the cap.")
    tasks: List[TaskSummary] = Field(default_factory=list)


class ProjectIssue(BaseModel):
    title: str
    status: str = "Unknown"
    priority: str = "Unknown"


class ProjectDetails(BaseModel):
    id: str
    key: str
    name: str
    description: str = "-"
    owner: str = "-"
    status: str = "-"
    percent_complete: Optional[str] = None
    open_tasks: Optional[int] = None
    closed_tasks: Optional[int] = None
    tag: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    issues: List[ProjectIssue] = Field(default_factory=list)


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


class ProjectLookup(BaseModel):
    """Outcome of a project name search; ``candidates`` lists ambiguous names."""

    status: LookupStatus
    query: str
    project: Optional[ProjectDetails] = None
    candidates: List[str] = Field(default_factory=list)


class IssueSummary(BaseModel):
    name: str
    project: str = "Unknown Project"
    reporter: str = "Unknown"
    assignee: str = "Unassigned"
    status: str = "Unknown"
    severity: str = "None"
    created_time: Optional[str] = None
    last_modified: Optional[str] = None
    last_closed: Optional[str] = None
    due_date: Optional[str] = None
    description: str = "No description available"


class TimeLogEntry(BaseModel):
    date: Optional[str] = None
    hours: float = 0.0
    user_name: str = "Unknown User"
    project_name: str = "Unknown Project"
    task_name: Optional[str] = None
    description: Optional[str] = None
    billable: Optional[bool] = None


__all__ = [
    "IssueSummary",
    "LookupStatus",
    "OwnerMatch",
    "PendingTasks",
    "PortalUser",
    "ProjectDetails",
    "ProjectIssue",
    "ProjectLookup",
    "TaskOwner",
    "TaskSummary",
    "TimeLogEntry",
]
