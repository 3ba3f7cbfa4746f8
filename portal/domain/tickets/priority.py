"""Ticket priority levels and their SLA windows"""

from datetime import datetime, timedelta
from typing import Optional

PRIORITIES = ["low", "medium", "high", "critical"]
DEFAULT_PRIORITY = "medium"

# Hours until first response / resolution is due
SLA_CONFIG: dict[str, dict[str, int]] = {
    "critical": {"first_response_hours": 1, "resolution_hours": 4},
    "high": {"first_response_hours": 4, "resolution_hours": 24},
    "medium": {"first_response_hours": 8, "resolution_hours": 48},
    "low": {"first_response_hours": 24, "resolution_hours": 72},
}

PRIORITY_LABELS = {
    "critical": "Critical",
    "high": "High",
    "medium": "Medium",
    "low": "Low",
}

# Priority clients get windows halved, never below these floors
PRIORITY_CLIENT_MIN_FIRST_RESPONSE = 1
PRIORITY_CLIENT_MIN_RESOLUTION = 2


def get_sla_hours(priority: Optional[str], is_priority_client: bool = False) -> dict[str, int]:
    config = SLA_CONFIG.get(priority or DEFAULT_PRIORITY, SLA_CONFIG[DEFAULT_PRIORITY])
    first_response = config["first_response_hours"]
    resolution = config["resolution_hours"]

    if is_priority_client:
        first_response = max(PRIORITY_CLIENT_MIN_FIRST_RESPONSE, first_response // 2)
        resolution = max(PRIORITY_CLIENT_MIN_RESOLUTION, resolution // 2)

    return {"first_response_hours": first_response, "resolution_hours": resolution}


def calculate_sla_dates(
    priority: Optional[str], created_at: datetime, is_priority_client: bool = False
) -> tuple[datetime, datetime]:
    """Return (first_response_due_at, sla_due_at) measured from created_at"""
    hours = get_sla_hours(priority, is_priority_client)
    return (
        created_at + timedelta(hours=hours["first_response_hours"]),
        created_at + timedelta(hours=hours["resolution_hours"]),
    )


def is_urgent_priority(priority: Optional[str]) -> bool:
    return priority in ("critical", "high")


def format_response_time(hours: float) -> str:
    if hours < 1:
        return f"{hours * 60:g} minutes"
    if hours == 1:
        return "1 hour"
    if hours < 24:
        return f"{hours:g} hours"
    days = hours / 24
    return "1 day" if days == 1 else f"{days:g} days"
