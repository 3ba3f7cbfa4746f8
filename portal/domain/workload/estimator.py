"""
Completion estimates for tickets

Combines historical resolution times, ticket complexity, the assignee's queue
and calendar availability into an estimated completion date with a
confidence level.
"""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models_ticket import Ticket
from ..ai import client as ai_client
from ..ai.config import TICKET_CATEGORIES
from ..ai.ticket_analyzer import score_complexity
from .availability import analyze_workload, get_staff_availability
from .repository import WorkloadRepository

logger = logging.getLogger(__name__)

HISTORY_MIN_SAMPLES = 5
DEFAULT_ESTIMATED_HOURS = 2.0
PRIORITY_MULTIPLIER = {"critical": 0.8, "high": 0.9, "medium": 1.0, "low": 1.2}
QUEUE_PRIORITY_FACTOR = {"critical": 0.1, "high": 0.3, "medium": 0.7, "low": 1.0}
AVERAGE_QUEUE_TICKET_HOURS = 2
BUFFER_PERCENT = 0.2
PROJECTED_DAILY_HOURS = 6
AVAILABILITY_DAYS = 14


async def estimate_hours(
    title: str,
    description: Optional[str],
    category: Optional[str],
    priority: str,
    historical_hours: list[float],
) -> float:
    if len(historical_hours) >= HISTORY_MIN_SAMPLES:
        average = sum(historical_hours) / len(historical_hours)
        return round(average * PRIORITY_MULTIPLIER.get(priority, 1.0), 1)

    if category in TICKET_CATEGORIES:
        return float(TICKET_CATEGORIES[category]["typical_hours"])

    if ai_client.is_available():
        try:
            result = await ai_client.complete_json(
                "Estimate hours for a support ticket. Return JSON with estimated_hours.",
                f"Subject: {title}\nDescription: {description or ''}\nCategory: {category or 'unknown'}",
                max_tokens=256,
            )
            hours = float(result.get("estimated_hours") or 0)
            if hours > 0:
                return hours
        except (ai_client.AIUnavailableError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ AI hour estimate unavailable: {e}")

    return DEFAULT_ESTIMATED_HOURS


def calculate_factors(priority: str, queue_position: int, utilization: float, complexity: float) -> list[dict]:
    factors = []

    if priority == "critical":
        factors.append({
            "factor": "Critical priority",
            "impact": "decreases",
            "description": "Will be prioritized and worked on immediately",
            "weight": 0.3,
        })
    elif priority == "low":
        factors.append({
            "factor": "Low priority",
            "impact": "increases",
            "description": "May be queued behind higher priority work",
            "weight": 0.2,
        })

    if queue_position > 5:
        factors.append({
            "factor": "Queue position",
            "impact": "increases",
            "description": f"{queue_position - 1} tickets ahead in queue",
            "weight": round(0.15 * (queue_position - 1), 2),
        })

    if utilization > 80:
        factors.append({
            "factor": "High staff utilization",
            "impact": "increases",
            "description": f"Staff currently at {round(utilization)}% capacity",
            "weight": 0.2,
        })
    elif utilization < 50:
        factors.append({
            "factor": "Available capacity",
            "impact": "decreases",
            "description": "Staff has bandwidth to work on this soon",
            "weight": 0.15,
        })

    if complexity > 0.7:
        factors.append({
            "factor": "High complexity",
            "impact": "increases",
            "description": "Issue appears to involve multiple systems or requires investigation",
            "weight": round(complexity * 0.3, 3),
        })
    elif complexity < 0.3:
        factors.append({
            "factor": "Low complexity",
            "impact": "decreases",
            "description": "Straightforward issue with likely quick resolution",
            "weight": round((1 - complexity) * 0.2, 3),
        })

    return factors


def hours_ahead_in_queue(queue_position: int, priority: str) -> float:
    positions_ahead = max(0, queue_position - 1)
    return positions_ahead * AVERAGE_QUEUE_TICKET_HOURS * QUEUE_PRIORITY_FACTOR.get(priority, 0.7)


def calculate_confidence(estimated_hours: float, factors: list[dict], availability_days: int) -> dict:
    confidence = 70
    if estimated_hours > 8:
        confidence -= 10
    if estimated_hours > 16:
        confidence -= 10

    confidence -= 5 * sum(1 for f in factors if f["impact"] == "increases")

    if availability_days >= 14:
        confidence += 10
    if availability_days < 7:
        confidence -= 10

    percent = max(30, min(95, confidence))
    if percent >= 70:
        level = "high"
    elif percent >= 50:
        level = "medium"
    else:
        level = "low"
    return {"level": level, "percent": percent}


def calculate_completion_date(
    estimated_hours: float,
    queue_hours: float,
    availability: list[dict],
    factors: list[dict],
    today: date,
) -> dict:
    adjusted = estimated_hours
    for factor in factors:
        if factor["impact"] == "increases":
            adjusted *= 1 + factor["weight"]
        else:
            adjusted *= 1 - factor["weight"] * 0.5

    own_work = adjusted * (1 + BUFFER_PERCENT)
    remaining = (queue_hours + adjusted) * (1 + BUFFER_PERCENT)
    current = today
    start: Optional[date] = None

    for window in availability:
        if remaining <= 0:
            break
        if window["net_hours"] > 0:
            day = date.fromisoformat(window["date"])
            if start is None and remaining <= own_work:
                start = day
            remaining -= window["net_hours"]
            current = day

    if remaining > 0:
        current = current + timedelta(days=math.ceil(remaining / PROJECTED_DAILY_HOURS))

    return {
        "start_date": start or today,
        "completion_date": current,
        "adjusted_hours": round(adjusted, 2),
        "confidence": calculate_confidence(estimated_hours, factors, len(availability)),
    }


def build_client_message(completion_date: date, confidence_level: str, priority: str) -> str:
    date_display = f"{completion_date.strftime('%A, %B')} {completion_date.day}"
    priority_messages = {
        "critical": "We understand this is urgent and have prioritized it accordingly.",
        "high": "This has been marked as high priority.",
    }
    confidence_messages = {
        "high": f"We expect to complete this by {date_display}.",
        "medium": (
            f"Our target completion date is {date_display}, "
            "though this may vary depending on complexity."
        ),
        "low": (
            f"We're tentatively targeting {date_display}, "
            "but will provide updates as we learn more about the scope."
        ),
    }
    parts = [priority_messages.get(priority, ""), confidence_messages[confidence_level]]
    return " ".join(part for part in parts if part)


def build_detailed_breakdown(estimated_hours: float, factors: list[dict], availability: list[dict]) -> str:
    week_capacity = round(sum(window["net_hours"] for window in availability[:7]), 2)
    lines = [f"Base estimate: {estimated_hours:g} hours", "", "Factors:"]
    lines.extend(
        f"  {'+' if f['impact'] == 'increases' else '-'} {f['factor']}: {f['description']}" for f in factors
    )
    lines.extend(["", f"Available capacity next 7 days: {week_capacity:g} hours"])
    return "\n".join(lines)


def _queue_position(open_tickets: list[Ticket], ticket: Ticket) -> int:
    for index, queued in enumerate(open_tickets):
        if queued.id == ticket.id:
            return index + 1
    return len(open_tickets) + 1 if ticket.status not in ("resolved", "closed") else 1


async def estimate_ticket_completion(db: Session, ticket: Ticket, today: Optional[date] = None) -> dict:
    """Completion estimate for a ticket, based on its assignee's queue and calendar"""
    today = today or datetime.utcnow().date()
    repo = WorkloadRepository()

    staff_id = ticket.assigned_to
    if staff_id:
        schedules = repo.get_schedules(db, staff_id)
        blocks = repo.get_blocks_for_days(
            db, staff_id, datetime.combine(today, datetime.min.time()), AVAILABILITY_DAYS + 1
        )
        open_tickets = repo.get_open_tickets(db, staff_id)
        task_count = repo.count_open_tasks(db, staff_id)
    else:
        schedules, blocks, open_tickets, task_count = [], [], [], 0

    workload = analyze_workload(staff_id or 0, schedules, blocks, open_tickets, task_count, today)
    availability = get_staff_availability(schedules, blocks, today, AVAILABILITY_DAYS)
    queue_position = _queue_position(open_tickets, ticket) if staff_id else 1

    priority = ticket.priority or "medium"
    estimated = await estimate_hours(
        ticket.title,
        ticket.description,
        ticket.category,
        priority,
        repo.get_resolution_hours(db, ticket.category),
    )
    complexity = score_complexity(ticket.title, ticket.description)
    factors = calculate_factors(priority, queue_position, workload["utilization_percent"], complexity)
    queue_hours = hours_ahead_in_queue(queue_position, priority)
    schedule = calculate_completion_date(estimated, queue_hours, availability, factors, today)
    confidence = schedule["confidence"]

    return {
        "ticket_id": ticket.id,
        "estimated_start_date": schedule["start_date"].isoformat(),
        "estimated_completion_date": schedule["completion_date"].isoformat(),
        "confidence_level": confidence["level"],
        "confidence_percent": confidence["percent"],
        "estimated_hours": estimated,
        "complexity_score": complexity,
        "factors": factors,
        "assigned_to": staff_id,
        "queue_position": queue_position,
        "tickets_ahead": queue_position - 1,
        "staff_availability": availability,
        "client_message": build_client_message(schedule["completion_date"], confidence["level"], priority),
        "detailed_breakdown": build_detailed_breakdown(estimated, factors, availability),
    }
