"""
SLA Monitor
Scans open tickets for breached or nearly-breached SLA clocks and notifies the
creator and assignee. Runs from the worker cron and POST /cron/sla-monitor.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.notifications.repository import NotificationRepository
from ..models_ticket import Ticket
from .notification_service import notify_ticket_event

logger = logging.getLogger(__name__)

INACTIVE_STATUSES = ("resolved", "closed", "cancelled")
WARNING_REMAINING_FRACTION = 0.25
DEDUPE_WINDOW_HOURS = 4


def _hours(seconds: float) -> float:
    return round(seconds / 3600, 1)


def check_ticket_sla(ticket: Ticket, now: datetime) -> Optional[dict]:
    """
    Return {"type": "sla_breach", "hours_overdue": h} or
    {"type": "sla_warning", "hours_until_due": h}, or None when the ticket is on track
    """
    overdue: list[float] = []
    if not ticket.first_response_at and ticket.first_response_due_at and now > ticket.first_response_due_at:
        overdue.append((now - ticket.first_response_due_at).total_seconds())
    if not ticket.resolved_at and ticket.sla_due_at and now > ticket.sla_due_at:
        overdue.append((now - ticket.sla_due_at).total_seconds())
    if overdue:
        return {"type": "sla_breach", "hours_overdue": _hours(max(overdue))}

    remaining: list[float] = []
    clocks = (
        (ticket.first_response_at, ticket.first_response_due_at),
        (ticket.resolved_at, ticket.sla_due_at),
    )
    for done_at, due_at in clocks:
        if done_at or not due_at or not ticket.created_at:
            continue
        window = (due_at - ticket.created_at).total_seconds()
        left = (due_at - now).total_seconds()
        if window > 0 and left < window * WARNING_REMAINING_FRACTION:
            remaining.append(left)
    if remaining:
        return {"type": "sla_warning", "hours_until_due": _hours(min(remaining))}

    return None


async def run_sla_monitor(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    tickets = db.query(Ticket).filter(Ticket.status.notin_(INACTIVE_STATUSES)).all()

    result = {"checked": len(tickets), "warnings_sent": 0, "breaches_sent": 0}
    for ticket in tickets:
        finding = check_ticket_sla(ticket, now)
        if not finding:
            continue

        notification_type = finding.pop("type")
        if NotificationRepository.recently_sent(db, ticket.id, notification_type, DEDUPE_WINDOW_HOURS):
            continue

        await notify_ticket_event(db, ticket, notification_type, context=finding)
        if notification_type == "sla_breach":
            result["breaches_sent"] += 1
            logger.warning(f"🚨 SLA breach on ticket {ticket.ticket_number}")
        else:
            result["warnings_sent"] += 1
            logger.info(f"⚠️ SLA warning on ticket {ticket.ticket_number}")

    logger.info(f"✅ SLA monitor checked {result['checked']} tickets")
    return result
