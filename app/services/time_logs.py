"""Time log retrieval across the several Zoho time-log endpoints."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Sequence

from app.core.exceptions import UpstreamError
from app.schemas.projects import TimeLogEntry
from app.services.fetchers import ROOT, ResourceRoute, UpstreamFetcher, extract_collection

logger = logging.getLogger(__name__)

_FLAT_PATHS = ("timelogs", "logs", "timesheet", ROOT)


def _format_day(value: date) -> str:
    return value.strftime("%m-%d-%Y")


def parse_hours(value: Any) -> float:
    """Accept numbers, numeric strings and ``"HH:MM"`` durations."""
    if value in (None, ""):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if ":" in text:
        hours, _, minutes = text.partition(":")
        try:
            return int(hours or 0) + int(minutes or 0) / 60
        except ValueError:
            return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def flatten_dated_logs(payload: Any) -> List[Dict[str, Any]]:
    """Unfold ``date[].tasklogs[]`` (optionally under ``timelogs``) into rows."""
    if not isinstance(payload, Mapping):
        return []
    container = payload.get("timelogs") if isinstance(payload.get("timelogs"), Mapping) else payload
    rows: List[Dict[str, Any]] = []
    for day in container.get("date") or []:
        if not isinstance(day, Mapping):
            continue
        for log in day.get("tasklogs") or []:
            if isinstance(log, Mapping):
                rows.append({**log, "work_date": log.get("work_date") or day.get("date")})
    return rows


def time_log_extractor(payload: Any) -> List[Dict[str, Any]]:
    return extract_collection(payload, _FLAT_PATHS) or flatten_dated_logs(payload)


def _name(value: Any, default: str) -> str:
    if isinstance(value, Mapping):
        value = value.get("name")
    return str(value) if value not in (None, "") else default


def to_time_log_entry(raw: Mapping[str, Any]) -> TimeLogEntry:
    hours = parse_hours(raw.get("hours") or raw.get("time_spent"))
    if raw.get("minutes") and isinstance(raw.get("hours"), (int, float)):
        hours += parse_hours(raw.get("minutes")) / 60
    bill_status = raw.get("bill_status")
    return TimeLogEntry(
        date=raw.get("work_date") or raw.get("date"),
        hours=round(hours, 2),
        user_name=str(raw.get("owner_name") or _name(raw.get("owner"), "Unknown User")),
        project_name=_name(raw.get("project"), "Unknown Project"),
        task_name=_name(raw.get("task"), "") or None,
        description=raw.get("notes") or None,
        billable=None if bill_status is None else bill_status == "Billable",
    )


def user_log_routes(user_id: str, from_date: date, to_date: date) -> Sequence[ResourceRoute]:
    date_range = f"{_format_day(from_date)} to {_format_day(to_date)}"
    common = {"users_list": user_id, "view_type": "custom_date", "date": date_range}
    return (
        ResourceRoute(
            "portal/{portal_id}/timelogs",
            time_log_extractor,
            {**common, "per_page": 200},
            "timelogs",
        ),
        ResourceRoute(
            "portal/{portal_id}/timesheet",
            time_log_extractor,
            {**common, "per_page": 200},
            "timesheet",
        ),
        ResourceRoute(
            "logs",
            time_log_extractor,
            {**common, "bill_status": "All", "component_type": "task"},
            "logs",
        ),
    )


class TimeLogService:
    def __init__(self, fetcher: UpstreamFetcher) -> None:
        self._fetcher = fetcher

    async def time_logs_for_user(
        self,
        *,
        conversation_id: str,
        portal_id: str,
        user_id: str,
        from_date: date,
        to_date: date,
    ) -> List[TimeLogEntry]:
        """Logs of one user between two dates, from whichever endpoint answers."""
        if from_date > to_date:
            raise ValueError("from_date must not be after to_date")
        raw_logs = await self._fetcher.fetch_first_available(
            user_log_routes(user_id, from_date, to_date),
            conversation_id=conversation_id,
            portal_id=portal_id,
        )
        return [to_time_log_entry(raw) for raw in raw_logs]

    async def monthly_time_logs(
        self, *, conversation_id: str, portal_id: str, month: date
    ) -> List[TimeLogEntry]:
        """All users' task logs for the month containing ``month``."""
        route = ResourceRoute(
            "logs",
            flatten_dated_logs,
            {
                "users_list": "all",
                "view_type": "month",
                "date": _format_day(month.replace(day=1)),
                "bill_status": "All",
                "component_type": "task",
            },
            "monthly logs",
        )
        try:
            raw_logs = await self._fetcher.fetch_collection(
                route, conversation_id=conversation_id, portal_id=portal_id
            )
        except UpstreamError as exc:
            logger.warning("Monthly time logs unavailable: %s", exc)
            return []
        return [to_time_log_entry(raw) for raw in raw_logs]


__all__ = [
    "TimeLogService",
    "flatten_dated_logs",
    "parse_hours",
    "time_log_extractor",
    "to_time_log_entry",
    "user_log_routes",
]
