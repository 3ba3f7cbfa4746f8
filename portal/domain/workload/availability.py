"""
Staff availability

Turns weekly schedules and calendar blocks into per-day availability windows
and a workload snapshot. Pure functions over model rows so they can be used
from the API, the estimator and tests alike.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

# Standard week used for staff who have not configured a schedule
DEFAULT_AVAILABLE_HOURS = 8.0
DEFAULT_WORKING_DAYS = {0, 1, 2, 3, 4}  # Monday - Friday

TICKET_QUEUE_HOURS = 2
TASK_QUEUE_HOURS = 1
PRIORITY_QUEUE_HOURS = {"critical": 1, "high": 2, "medium": 2, "low": 1}

UTILIZATION_CAPACITY_THRESHOLD = 80
NEXT_SLOT_SEARCH_DAYS = 30


def schedule_by_weekday(schedules: Iterable) -> dict[int, dict]:
    """Map day_of_week (Monday=0) to {is_working_day, available_hours}"""
    rows = {s.day_of_week: s for s in schedules}
    if not rows:
        return {
            day: {
                "is_working_day": day in DEFAULT_WORKING_DAYS,
                "available_hours": DEFAULT_AVAILABLE_HOURS if day in DEFAULT_WORKING_DAYS else 0.0,
            }
            for day in range(7)
        }

    result = {}
    for day in range(7):
        row = rows.get(day)
        working = bool(row and row.is_working_day)
        result[day] = {
            "is_working_day": working,
            "available_hours": float(row.available_hours or 0) if working else 0.0,
        }
    return result


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def _overlap_hours(block, day_start: datetime, day_end: datetime) -> float:
    start = max(block.start_time, day_start)
    end = min(block.end_time, day_end)
    return max(0.0, (end - start).total_seconds() / 3600)


def _all_day_block_on(blocks: Iterable, day: date) -> bool:
    # Provider all-day events end at midnight of the following day (exclusive)
    day_start, day_end = _day_bounds(day)
    return any(
        block.is_all_day and block.start_time < day_end and block.end_time > day_start for block in blocks
    )


def day_availability(schedule: dict[int, dict], blocks: list, day: date) -> dict:
    entry = schedule[day.weekday()]
    available = entry["available_hours"] if entry["is_working_day"] else 0.0

    if _all_day_block_on(blocks, day):
        blocked = available
    else:
        day_start, day_end = _day_bounds(day)
        blocked = min(available, sum(_overlap_hours(b, day_start, day_end) for b in blocks if not b.is_all_day))

    return {
        "date": day.isoformat(),
        "is_working_day": entry["is_working_day"],
        "available_hours": round(available, 2),
        "blocked_hours": round(blocked, 2),
        "net_hours": round(max(0.0, available - blocked), 2),
    }


def get_staff_availability(schedules: Iterable, blocks: Iterable, start: date, days: int = 14) -> list[dict]:
    """One availability window per day from start"""
    schedule = schedule_by_weekday(schedules)
    blocks = list(blocks)
    return [day_availability(schedule, blocks, start + timedelta(days=offset)) for offset in range(days)]


def find_next_available_slot(schedules: Iterable, blocks: Iterable, start: date) -> date:
    """First working day without an all-day block, searching up to 30 days out"""
    schedule = schedule_by_weekday(schedules)
    blocks = list(blocks)
    for offset in range(NEXT_SLOT_SEARCH_DAYS):
        day = start + timedelta(days=offset)
        if schedule[day.weekday()]["is_working_day"] and not _all_day_block_on(blocks, day):
            return day
    return start + timedelta(days=NEXT_SLOT_SEARCH_DAYS)


def analyze_workload(
    staff_id: int,
    schedules: Iterable,
    blocks: Iterable,
    open_tickets: Iterable,
    open_task_count: int,
    today: Optional[date] = None,
) -> dict:
    today = today or datetime.utcnow().date()
    schedules = list(schedules)
    blocks = list(blocks)
    open_tickets = list(open_tickets)
    schedule = schedule_by_weekday(schedules)

    today_window = day_availability(schedule, blocks, today)
    available_week = sum(entry["available_hours"] for entry in schedule.values() if entry["is_working_day"])

    queued_hours = len(open_tickets) * TICKET_QUEUE_HOURS + open_task_count * TASK_QUEUE_HOURS
    hours_by_priority = {priority: 0 for priority in PRIORITY_QUEUE_HOURS}
    for ticket in open_tickets:
        priority = ticket.priority if ticket.priority in PRIORITY_QUEUE_HOURS else "medium"
        hours_by_priority[priority] += PRIORITY_QUEUE_HOURS[priority]

    utilization = min(100.0, queued_hours / available_week * 100) if available_week > 0 else 100.0

    return {
        "staff_id": staff_id,
        "analysis_date": today.isoformat(),
        "current_tickets": len(open_tickets),
        "current_tasks": open_task_count,
        "estimated_hours_queued": queued_hours,
        "available_hours_today": today_window["available_hours"],
        "blocked_hours_today": today_window["blocked_hours"],
        "net_hours_today": today_window["net_hours"],
        "available_hours_week": available_week,
        "utilization_percent": round(utilization),
        "hours_by_priority": hours_by_priority,
        "can_take_new_work": utilization < UTILIZATION_CAPACITY_THRESHOLD and today_window["net_hours"] > 0,
        "next_available_slot": find_next_available_slot(schedules, blocks, today).isoformat(),
        "recommended_capacity": round(max(0.0, 100 - utilization)),
    }
