"""
Unified Notification Service
Fans ticket events out to email, Slack and in-app notifications and records
every delivery attempt in notification_logs.
"""

import logging
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..config import FRONTEND_URL
from ..domain.notifications.formatting import (
    format_notification_message,
    get_notification_color,
    get_notification_priority,
    get_recipient,
    merge_preferences,
    should_send_notification,
)
from ..domain.notifications.repository import NotificationRepository
from ..email_service import send_ticket_notification_email
from ..models import User
from ..models_ticket import Ticket
from ..permissions import PRIVILEGED_ROLES

logger = logging.getLogger(__name__)

SLACK_TIMEOUT_SECONDS = 10


async def send_slack_message(
    webhook_url: str, subject: str, message: str, notification_type: str, ticket_id: Optional[int] = None
) -> None:
    """Post an attachment-style message to a Slack incoming webhook"""
    attachment = {
        "color": get_notification_color(notification_type),
        "title": subject,
        "text": message,
        "footer": f"Priority: {get_notification_priority(notification_type)}",
    }
    if ticket_id:
        attachment["title_link"] = f"{FRONTEND_URL}/tickets/{ticket_id}"

    async with httpx.AsyncClient(timeout=SLACK_TIMEOUT_SECONDS) as client:
        response = await client.post(webhook_url, json={"text": subject, "attachments": [attachment]})
        response.raise_for_status()


def create_in_app_notification(
    db: Session,
    user_id: int,
    notification_type: str,
    title: str,
    message: Optional[str] = None,
    link: Optional[str] = None,
    organization_id: Optional[int] = None,
    data: Optional[dict] = None,
    commit: bool = True,
):
    return NotificationRepository.create(
        db,
        commit=commit,
        user_id=user_id,
        organization_id=organization_id,
        type=notification_type,
        title=title,
        message=message,
        link=link,
        data=data,
    )


def get_ticket_recipients(ticket: Ticket, notification_type: str) -> list[User]:
    """Creator always; assignee for assignments and every event except creation"""
    recipients: list[User] = []
    if ticket.creator:
        recipients.append(ticket.creator)

    if ticket.assignee and ticket.assignee.id not in {u.id for u in recipients}:
        if notification_type != "ticket_created":
            recipients.append(ticket.assignee)

    return recipients


def build_ticket_context(ticket: Ticket, extra: Optional[dict] = None) -> dict:
    context = {
        "ticket_number": ticket.ticket_number,
        "ticket_subject": ticket.title,
        "priority": (ticket.priority or "medium").capitalize(),
        "status": ticket.status,
    }
    context.update(extra or {})
    return context


async def _deliver(
    db: Session,
    channel: str,
    recipient: str,
    notification_type: str,
    subject: str,
    message: str,
    ticket: Ticket,
    user_id: Optional[int],
) -> bool:
    try:
        if channel == "email":
            await send_ticket_notification_email(
                to=recipient,
                subject=subject,
                message=message,
                ticket_id=ticket.id,
                color=get_notification_color(notification_type),
            )
        elif channel == "slack":
            await send_slack_message(recipient, subject, message, notification_type, ticket.id)
        else:
            NotificationRepository.log_delivery(
                db,
                notification_type,
                channel,
                "skipped",
                recipient=recipient,
                ticket_id=ticket.id,
                user_id=user_id,
                error_message=f"Channel {channel} is not enabled for this deployment",
            )
            return False
    except Exception as e:
        logger.error(f"❌ {channel} notification {notification_type} failed for ticket {ticket.id}: {e}")
        NotificationRepository.log_delivery(
            db,
            notification_type,
            channel,
            "failed",
            recipient=recipient,
            ticket_id=ticket.id,
            user_id=user_id,
            error_message=str(e),
        )
        return False

    NotificationRepository.log_delivery(
        db, notification_type, channel, "sent", recipient=recipient, ticket_id=ticket.id, user_id=user_id
    )
    logger.info(f"📧 {channel} notification {notification_type} sent for ticket {ticket.id}")
    return True


async def notify_ticket_event(
    db: Session,
    ticket: Ticket,
    notification_type: str,
    actor: Optional[User] = None,
    context: Optional[dict] = None,
    in_app: bool = True,
    exclude_actor: bool = False,
    privileged_only: bool = False,
) -> dict:
    """
    Send a ticket event to everyone who should hear about it.

    External channels follow each recipient's preferences. In-app notifications
    skip the user who caused the event; exclude_actor drops them entirely.
    privileged_only limits delivery to agency users (internal comments).
    """
    message_context = build_ticket_context(ticket, context)
    content = format_notification_message(notification_type, message_context)
    recipients = get_ticket_recipients(ticket, notification_type)
    if exclude_actor and actor is not None:
        recipients = [u for u in recipients if u.id != actor.id]
    if privileged_only:
        recipients = [u for u in recipients if u.role in PRIVILEGED_ROLES]
    summary = {"sent": 0, "failed": 0, "in_app": 0}

    for user in recipients:
        preferences = merge_preferences(user.notification_preferences)

        channels = []
        if preferences.get("email") is not False and preferences.get(f"notify_on_{notification_type}") is not False:
            channels.append("email")
        channels.extend(
            channel
            for channel in ("sms", "whatsapp", "slack")
            if should_send_notification(notification_type, channel, preferences)
        )

        for channel in channels:
            recipient = get_recipient(channel, preferences, user.email)
            if not recipient:
                continue
            delivered = await _deliver(
                db, channel, recipient, notification_type, content["subject"], content["message"], ticket, user.id
            )
            summary["sent" if delivered else "failed"] += 1

        if in_app and preferences.get("in_app", True) and (actor is None or actor.id != user.id):
            create_in_app_notification(
                db,
                user_id=user.id,
                notification_type=notification_type,
                title=content["subject"],
                message=content["message"],
                link=f"/tickets/{ticket.id}",
                organization_id=ticket.organization_id,
                data={"ticket_id": ticket.id},
            )
            NotificationRepository.log_delivery(
                db, notification_type, "in_app", "sent", recipient=user.email, ticket_id=ticket.id, user_id=user.id
            )
            summary["in_app"] += 1

    # Organization-wide Slack channel
    organization = ticket.organization
    if organization and organization.slack_webhook_url and not privileged_only:
        delivered = await _deliver(
            db,
            "slack",
            organization.slack_webhook_url,
            notification_type,
            content["subject"],
            content["message"],
            ticket,
            None,
        )
        summary["sent" if delivered else "failed"] += 1

    return summary
