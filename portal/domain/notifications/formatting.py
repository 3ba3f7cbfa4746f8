"""Notification types, channel preference rules and message templates"""

from typing import Optional

NOTIFICATION_TYPES = [
    "ticket_created",
    "ticket_updated",
    "ticket_comment",
    "ticket_assigned",
    "ticket_resolved",
    "ticket_closed",
    "sla_warning",
    "sla_breach",
]

CHANNELS = ["email", "sms", "slack", "whatsapp"]

# Address key in the preferences dict for channels that need one
CHANNEL_ADDRESS_KEYS = {
    "sms": "sms_number",
    "whatsapp": "whatsapp_number",
    "slack": "slack_webhook_url",
}

DEFAULT_PREFERENCES = {
    "email": True,
    "sms": False,
    "slack": False,
    "whatsapp": False,
    "in_app": True,
    "sms_number": None,
    "whatsapp_number": None,
    "slack_webhook_url": None,
}


def should_send_notification(notification_type: str, channel: str, preferences: dict) -> bool:
    """Channel enabled, event not muted, and an address configured where one is needed"""
    if not preferences.get(channel):
        return False

    if preferences.get(f"notify_on_{notification_type}") is False:
        return False

    address_key = CHANNEL_ADDRESS_KEYS.get(channel)
    if address_key and not preferences.get(address_key):
        return False

    return True


def get_recipient(channel: str, preferences: dict, email: Optional[str] = None) -> Optional[str]:
    if channel == "email":
        return email or None
    address_key = CHANNEL_ADDRESS_KEYS.get(channel)
    if address_key:
        return preferences.get(address_key) or None
    return None


def format_notification_message(notification_type: str, context: dict) -> dict[str, str]:
    """
    Build subject and body for a ticket event.

    Context keys: ticket_number, ticket_subject, commenter_name, comment_preview,
    status, priority, hours_overdue, hours_until_due
    """
    ticket_number = context.get("ticket_number")
    ticket_subject = context.get("ticket_subject")
    priority = context.get("priority") or "Medium"

    ticket_ref = f"#{ticket_number}" if ticket_number else "A ticket"
    ticket_title = f'"{ticket_subject}"' if ticket_subject else ""

    if notification_type == "ticket_created":
        return {
            "subject": f"New Support Ticket Created: {ticket_ref}",
            "message": (
                f"A new support ticket has been created.\n\nTicket: {ticket_ref} {ticket_title}\n"
                f"Priority: {priority}\n\nPlease review and respond as soon as possible."
            ),
        }

    if notification_type == "ticket_updated":
        return {
            "subject": f"Ticket Updated: {ticket_ref}",
            "message": (
                f"Ticket {ticket_ref} {ticket_title} has been updated.\n\n"
                f"New Status: {context.get('status') or 'Unknown'}\n\nView the ticket for more details."
            ),
        }

    if notification_type == "ticket_comment":
        commenter = context.get("commenter_name") or "Someone"
        preview = context.get("comment_preview") or "View the full comment in the ticket."
        return {
            "subject": f"New Comment on Ticket {ticket_ref}",
            "message": (
                f"{commenter} commented on ticket {ticket_ref} {ticket_title}\n\n"
                f'"{preview}"\n\nRespond to keep the conversation going.'
            ),
        }

    if notification_type == "ticket_assigned":
        return {
            "subject": f"Ticket Assigned to You: {ticket_ref}",
            "message": (
                f"You have been assigned to ticket {ticket_ref} {ticket_title}\n\n"
                f"Priority: {priority}\n\nPlease review and respond according to the SLA requirements."
            ),
        }

    if notification_type == "ticket_resolved":
        return {
            "subject": f"Ticket Resolved: {ticket_ref}",
            "message": (
                f"Ticket {ticket_ref} {ticket_title} has been marked as resolved.\n\n"
                "If you have any questions or the issue persists, please reopen the ticket."
            ),
        }

    if notification_type == "ticket_closed":
        return {
            "subject": f"Ticket Closed: {ticket_ref}",
            "message": (
                f"Ticket {ticket_ref} {ticket_title} has been closed.\n\n"
                "Thank you for using our support system."
            ),
        }

    if notification_type == "sla_warning":
        hours = context.get("hours_until_due")
        remaining = f"{round(hours)} hours" if hours else "Less than 1 hour"
        return {
            "subject": f"⚠️ SLA Warning: Ticket {ticket_ref} Approaching Deadline",
            "message": (
                f"Ticket {ticket_ref} {ticket_title} is approaching its SLA deadline.\n\n"
                f"Priority: {priority}\nTime Remaining: {remaining}\n\n"
                "Please respond urgently to meet the SLA commitment."
            ),
        }

    if notification_type == "sla_breach":
        hours = context.get("hours_overdue")
        overdue = f"{round(hours)} hours" if hours else "Less than 1 hour"
        return {
            "subject": f"🚨 SLA BREACH: Ticket {ticket_ref} Overdue",
            "message": (
                f"URGENT: Ticket {ticket_ref} {ticket_title} has breached its SLA deadline.\n\n"
                f"Priority: {priority}\nOverdue By: {overdue}\n\nImmediate action required!"
            ),
        }

    return {
        "subject": f"Ticket Notification: {ticket_ref}",
        "message": f"An update has been made to ticket {ticket_ref} {ticket_title}",
    }


def get_notification_subject(notification_type: str, context: dict) -> str:
    return format_notification_message(notification_type, context)["subject"]


def get_notification_color(notification_type: str) -> str:
    """Accent color for Slack attachments and email headers"""
    if notification_type == "sla_breach":
        return "#dc2626"
    if notification_type == "sla_warning":
        return "#ea580c"
    if notification_type in ("ticket_created", "ticket_assigned"):
        return "#2563eb"
    if notification_type == "ticket_resolved":
        return "#16a34a"
    return "#64748b"


def get_notification_priority(notification_type: str) -> str:
    if notification_type == "sla_breach":
        return "critical"
    if notification_type in ("sla_warning", "ticket_created", "ticket_assigned"):
        return "high"
    if notification_type == "ticket_comment":
        return "medium"
    return "low"


def merge_preferences(stored: Optional[dict]) -> dict:
    preferences = dict(DEFAULT_PREFERENCES)
    preferences.update(stored or {})
    return preferences
