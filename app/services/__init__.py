"""Service layer exports."""

from .bridge import ProjectsBridge
from .fetchers import ResourceRoute, UpstreamFetcher
from .gateway import ZohoProjectsGateway
from .owners import OwnerResolver
from .projects import ProjectQueryService
from .rate_limiter import RateLimiter
from .tasks import TaskQueryService
from .time_logs import TimeLogService
from .token_manager import TokenManager, TokenState

__all__ = [
    "OwnerResolver",
    "ProjectQueryService",
    "ProjectsBridge",
    "RateLimiter",
    "ResourceRoute",
    "TaskQueryService",
    "TimeLogService",
    "TokenManager",
    "TokenState",
    "UpstreamFetcher",
    "ZohoProjectsGateway",
]
