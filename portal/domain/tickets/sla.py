"""
SLA status evaluation

Each SLA clock (first response, resolution) is classified as:
    breach    - past the deadline
    critical  - under 1h (first response) or 2h (resolution) left
    warning   - at least 75% of the window elapsed
    upcoming  - at least 50% elapsed
    on-track  - otherwise, or no deadline configured
    completed - responded / resolved
"""

import math
from datetime import datetime
from typing import Optional

STATUS_RANK = {
    "breach": 0,
    "critical": 1,
    "warning": 2,
    "upcoming": 3,
    "on-track": 4,
    "completed": 5,
}


def format_duration(hours: float) -> str:
    if hours < 1:
        minutes = round(hours * 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    if hours < 24:
        rounded = round(hours)
        return f"{rounded} hour{'s' if rounded != 1 else ''}"

    days = math.floor(hours / 24)
    remaining_hours = round(hours % 24)
    if remaining_hours == 0:
        return f"{days} day{'s' if days != 1 else ''}"
    return f"{days}d {remaining_hours}h"


def _whole_hours(delta_seconds: float) -> int:
    """Truncate toward zero, like a calendar hour difference"""
    return int(delta_seconds / 3600)


def _result(
    status: str,
    label: str,
    description: str,
    time_remaining: Optional[str] = None,
    hours_overdue: Optional[int] = None,
    percent_elapsed: Optional[float] = None,
) -> dict:
    return {
        "status": status,
        "label": label,
        "description": description,
        "time_remaining": time_remaining,
        "hours_overdue": hours_overdue,
        "percent_elapsed": percent_elapsed,
    }


def _evaluate(
    label: str,
    created_at: Optional[datetime],
    due_at: Optional[datetime],
    critical_hours: int,
    now: datetime,
) -> dict:
    if not due_at or not created_at:
        return _result("on-track", "No SLA", f"No {label.lower()} deadline configured")

    remaining_seconds = (due_at - now).total_seconds()
    hours_remaining = _whole_hours(remaining_seconds)
    minutes_remaining = int(remaining_seconds / 60)

    if remaining_seconds < 0:
        hours_overdue = abs(hours_remaining)
        return _result(
            "breach",
            "OVERDUE",
            f"{label} overdue by {format_duration(hours_overdue)}",
            hours_overdue=hours_overdue,
        )

    if hours_remaining < critical_hours:
        due_in = (
            f"{minutes_remaining} minutes" if hours_remaining < 1 else f"{hours_remaining} hours"
        )
        return _result("critical", "URGENT", f"{label} due in {due_in}", time_remaining=due_in)

    total_hours = _whole_hours((due_at - created_at).total_seconds())
    elapsed_hours = _whole_hours((now - created_at).total_seconds())
    percent_elapsed = (elapsed_hours / total_hours) * 100 if total_hours > 0 else 0

    if percent_elapsed >= 75:
        status, status_label = "warning", "At Risk"
    elif percent_elapsed >= 50:
        status, status_label = "upcoming", "Approaching"
    else:
        status, status_label = "on-track", "On Track"

    time_remaining = format_duration(hours_remaining)
    return _result(
        status,
        status_label,
        f"{label} due in {time_remaining}",
        time_remaining=time_remaining,
        percent_elapsed=round(percent_elapsed, 1),
    )


def get_first_response_sla_status(
    created_at: Optional[datetime],
    first_response_due_at: Optional[datetime],
    first_response_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> dict:
    if first_response_at:
        return _result("completed", "Responded", "First response completed")
    return _evaluate(
        "First response", created_at, first_response_due_at, 1, now or datetime.utcnow()
    )


def get_resolution_sla_status(
    created_at: Optional[datetime],
    sla_due_at: Optional[datetime],
    resolved_at: Optional[datetime],
    status: str,
    now: Optional[datetime] = None,
) -> dict:
    if resolved_at or status in ("resolved", "closed"):
        return _result("completed", "Resolved", "Ticket resolved")
    return _evaluate("Resolution", created_at, sla_due_at, 2, now or datetime.utcnow())


def get_combined_sla_status(
    created_at: Optional[datetime],
    first_response_due_at: Optional[datetime],
    first_response_at: Optional[datetime],
    sla_due_at: Optional[datetime],
    resolved_at: Optional[datetime],
    status: str,
    now: Optional[datetime] = None,
) -> dict:
    """Worst of the two clocks"""
    first = get_first_response_sla_status(created_at, first_response_due_at, first_response_at, now)
    resolution = get_resolution_sla_status(created_at, sla_due_at, resolved_at, status, now)
    return first if STATUS_RANK[first["status"]] < STATUS_RANK[resolution["status"]] else resolution


def get_ticket_sla(ticket, now: Optional[datetime] = None) -> dict:
    """All three SLA views for a Ticket row"""
    return {
        "first_response": get_first_response_sla_status(
            ticket.created_at, ticket.first_response_due_at, ticket.first_response_at, now
        ),
        "resolution": get_resolution_sla_status(
            ticket.created_at, ticket.sla_due_at, ticket.resolved_at, ticket.status, now
        ),
        "combined": get_combined_sla_status(
            ticket.created_at,
            ticket.first_response_due_at,
            ticket.first_response_at,
            ticket.sla_due_at,
            ticket.resolved_at,
            ticket.status,
            now,
        ),
    }
