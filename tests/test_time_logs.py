from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import date

import pytest

from app.core.exceptions import UpstreamError
from app.services.time_logs import (
    TimeLogService,
    flatten_dated_logs,
    parse_hours,
    to_time_log_entry,
    user_log_routes,
)

DATED_PAYLOAD = {
    "timelogs": {
        "date": [
            {
                "date": "05-02-2025",
                "tasklogs": [
                    {
                        "hours": "02:30",
                        "owner_name": "Raj Kumar",
                        "project": {"name": "Apollo"},
                        "task": {"name": "Deploy"},
                        "bill_status": "Billable",
                        "notes": "release",
                    }
                ],
            },
            {"date": "05-03-2025", "tasklogs": [{"hours": 1, "minutes": 30}]},
        ]
    }
}


def test_parse_hours_accepts_several_formats() -> None:
    assert parse_hours(2) == 2.0
    assert parse_hours("1.5") == 1.5
    assert parse_hours("02:45") == 2.75
    assert parse_hours("soon") == 0.0
    assert parse_hours(None) == 0.0


def test_flatten_dated_logs_carries_the_day() -> None:
    rows = flatten_dated_logs(DATED_PAYLOAD)

    assert [row["work_date"] for row in rows] == ["05-02-2025", "05-03-2025"]
    assert flatten_dated_logs([1, 2]) == []


def test_to_time_log_entry_normalizes() -> None:
    first, second = [to_time_log_entry(row) for row in flatten_dated_logs(DATED_PAYLOAD)]

    assert first.hours == 2.5
    assert first.user_name == "Raj Kumar"
    assert first.project_name == "Apollo"
    assert first.task_name == "Deploy"
    assert first.billable is True
    assert first.description == "release"
    assert second.hours == 1.5
    assert second.user_name == "Unknown User"
    assert second.billable is None


def test_user_log_routes_use_custom_date_range() -> None:
    routes = user_log_routes("12", date(2025, 5, 1), date(2025, 5, 31))

    assert [route.name for route in routes] == ["timelogs", "timesheet", "logs"]
    assert routes[0].params["date"] == "05-01-2025 to 05-31-2025"
    assert routes[0].params["users_list"] == "12"
    assert routes[0].endpoint(portal_id="9") == "portal/9/timelogs"


@pytest.mark.asyncio
async def test_time_logs_fall_back_to_next_endpoint(fetcher_factory) -> None:
    def handler(endpoint, params):
        if endpoint == "portal/9/timelogs":
            raise UpstreamError("gone", status_code=404)
        if endpoint == "portal/9/timesheet":
            return {"timesheet": []}
        return DATED_PAYLOAD

    fetcher, gateway = fetcher_factory(handler)

    entries = await TimeLogService(fetcher).time_logs_for_user(
        conversation_id="c",
        portal_id="9",
        user_id="12",
        from_date=date(2025, 5, 1),
        to_date=date(2025, 5, 31),
    )

    assert [entry.hours for entry in entries] == [2.5, 1.5]
    assert gateway.endpoints() == ["portal/9/timelogs", "portal/9/timesheet", "logs"]


@pytest.mark.asyncio
async def test_time_logs_reject_inverted_range(fetcher_factory) -> None:
    fetcher, gateway = fetcher_factory(lambda endpoint, params: {})

    with pytest.raises(ValueError):
        await TimeLogService(fetcher).time_logs_for_user(
            conversation_id="c",
            portal_id="9",
            user_id="12",
            from_date=date(2025, 6, 1),
            to_date=date(2025, 5, 1),
        )
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_monthly_logs_request_first_of_month(fetcher_factory) -> None:
    fetcher, gateway = fetcher_factory(lambda endpoint, params: DATED_PAYLOAD)

    entries = await TimeLogService(fetcher).monthly_time_logs(
        conversation_id="c", portal_id="9", month=date(2025, 5, 17)
    )

    assert len(entries) == 2
    endpoint, params = gateway.calls[0]
    assert endpoint == "logs"
    assert params["date"] == "05-01-2025"
    assert params["view_type"] == "month"
    assert params["users_list"] == "all"


@pytest.mark.asyncio
async def test_monthly_logs_return_empty_on_upstream_error(fetcher_factory) -> None:
    def handler(endpoint, params):
        raise UpstreamError("down", status_code=500)

    fetcher, _ = fetcher_factory(handler)

    entries = await TimeLogService(fetcher).monthly_time_logs(
        conversation_id="c", portal_id="9", month=date(2025, 5, 1)
    )

    assert entries == []
