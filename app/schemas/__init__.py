"""Public schema exports."""

from .projects import (
    IssueSummary,
    LookupStatus,
    OwnerMatch,
    PendingTasks,
    PortalUser,
    ProjectDetails,
    ProjectIssue,
    ProjectLookup,
    TaskOwner,
    TaskSummary,
    TimeLogEntry,
)

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
