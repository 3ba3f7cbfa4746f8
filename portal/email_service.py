"""
Email Service using Resend
"""

import logging
from typing import Optional, Union

import resend

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import (
    contract_completed_template,
    contract_signature_request_template,
    invoice_sent_template,
    ticket_notification_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the provider"""

    pass


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    from_address: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        html_content: Rendered HTML body
        from_address: Optional custom from address
        attachments: Optional list of {"filename", "content"} attachments

    Returns:
        Send response dict
    """
    recipients = [to] if isinstance(to, str) else to
    sender = from_address or EMAIL_FROM_ADDRESS

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailDeliveryError("Email service not configured")

    email_data = {
        "from": sender,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if attachments:
        email_data["attachments"] = [
            {"filename": attachment["filename"], "content": attachment["content"]}
            for attachment in attachments
        ]

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built emails for portal events
# ============================================


async def send_ticket_notification_email(
    to: str, subject: str, message: str, ticket_id: int, color: str
) -> dict:
    html = ticket_notification_template(
        subject=subject,
        message=message,
        ticket_url=f"{FRONTEND_URL}/tickets/{ticket_id}",
        color=color,
    )
    return await send_email(to=to, subject=subject, html_content=html)


async def send_invoice_email(
    to: list[str],
    organization_name: str,
    invoice_number: str,
    total_display: str,
    due_date_display: str,
    invoice_public_id: str,
    pdf_bytes: Optional[bytes] = None,
) -> dict:
    html = invoice_sent_template(
        organization_name=organization_name,
        invoice_number=invoice_number,
        total_display=total_display,
        due_date_display=due_date_display,
        invoice_url=f"{FRONTEND_URL}/invoices/{invoice_public_id}",
    )
    attachments = None
    if pdf_bytes:
        attachments = [{"filename": f"{invoice_number}.pdf", "content": list(pdf_bytes)}]
    return await send_email(
        to=to,
        subject=f"Invoice {invoice_number} from {organization_name}",
        html_content=html,
        attachments=attachments,
    )


async def send_signature_request_email(
    to: str, signer_name: str, contract_title: str, token: str
) -> dict:
    html = contract_signature_request_template(
        signer_name=signer_name,
        contract_title=contract_title,
        sign_url=f"{FRONTEND_URL}/sign/{token}",
    )
    return await send_email(to=to, subject=f"Please sign: {contract_title}", html_content=html)


async def send_contract_completed_email(
    to: list[str], contract_title: str, contract_public_id: str
) -> dict:
    html = contract_completed_template(
        contract_title=contract_title,
        contract_url=f"{FRONTEND_URL}/contracts/{contract_public_id}",
    )
    return await send_email(to=to, subject=f"Fully executed: {contract_title}", html_content=html)
