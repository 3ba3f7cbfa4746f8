"""
HTML Email Templates
Table-based layouts with inline styles for broad client compatibility
"""

from html import escape
from typing import Optional

THEME = {
    "primary": "#2563eb",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}

FONT_STACK = "-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif"


def get_base_template(
    title: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    accent_color: Optional[str] = None,
) -> str:
    """Base wrapper for all emails"""
    accent = accent_color or THEME["primary"]

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <tr><td style="padding: 8px 40px 40px 40px;">
          <a href="{escape(cta_url)}"
             style="background-color: {accent}; color: #ffffff; font-weight: 600; border-radius: 8px;
                    padding: 14px 32px; font-size: 16px; text-decoration: none; display: inline-block;">
            {escape(cta_label)}
          </a>
        </td></tr>
        """

    return f"""<!DOCTYPE html>
<html>
  <head><meta charset="utf-8"><title>{escape(title)}</title></head>
  <body style="margin: 0; background-color: {THEME['background']}; font-family: {FONT_STACK};">
    <table width="100%" cellpadding="0" cellspacing="0" role="presentation">
      <tr><td align="center" style="padding: 32px 16px;">
        <table width="600" cellpadding="0" cellspacing="0" role="presentation"
               style="background-color: {THEME['card_bg']}; border-radius: 12px;
                      border-top: 4px solid {accent};">
          <tr><td style="padding: 40px 40px 16px 40px; font-size: 22px; font-weight: 600;
                         color: {THEME['text_primary']};">{escape(title)}</td></tr>
          <tr><td style="padding: 0 40px 24px 40px; font-size: 16px; line-height: 1.6;
                         color: {THEME['text_secondary']};">{content_sections}</td></tr>
          {cta_section}
        </table>
        <p style="font-size: 12px; color: {THEME['text_muted']};">
          You're receiving this because you have an account on the client portal.
        </p>
      </td></tr>
    </table>
  </body>
</html>"""


def _paragraphs(text: str) -> str:
    return "".join(
        f'<p style="margin: 0 0 12px 0;">{escape(line)}</p>' for line in text.split("\n") if line.strip()
    )


def ticket_notification_template(
    subject: str, message: str, ticket_url: str, color: str
) -> str:
    return get_base_template(
        title=subject,
        content_sections=_paragraphs(message),
        cta_url=ticket_url,
        cta_label="View Ticket",
        accent_color=color,
    )


def invoice_sent_template(
    organization_name: str,
    invoice_number: str,
    total_display: str,
    due_date_display: str,
    invoice_url: str,
) -> str:
    content = f"""
    <p style="margin: 0 0 12px 0;">Hi {escape(organization_name)},</p>
    <p style="margin: 0 0 12px 0;">Invoice <strong>{escape(invoice_number)}</strong> is ready.</p>
    <table cellpadding="6" style="border: 1px solid {THEME['border']}; border-radius: 8px;">
      <tr><td>Amount due</td><td><strong>{escape(total_display)}</strong></td></tr>
      <tr><td>Due date</td><td>{escape(due_date_display)}</td></tr>
    </table>
    """
    return get_base_template(
        title=f"Invoice {invoice_number}",
        content_sections=content,
        cta_url=invoice_url,
        cta_label="View Invoice",
    )


def contract_signature_request_template(
    signer_name: str, contract_title: str, sign_url: str
) -> str:
    content = f"""
    <p style="margin: 0 0 12px 0;">Hi {escape(signer_name)},</p>
    <p style="margin: 0 0 12px 0;">You have been asked to review and sign
       <strong>{escape(contract_title)}</strong>.</p>
    <p style="margin: 0; color: {THEME['text_muted']}; font-size: 14px;">
       This signing link is personal to you and expires in 30 days.</p>
    """
    return get_base_template(
        title="Signature requested",
        content_sections=content,
        cta_url=sign_url,
        cta_label="Review & Sign",
    )


def contract_completed_template(contract_title: str, contract_url: str) -> str:
    content = f"""
    <p style="margin: 0 0 12px 0;">All parties have signed <strong>{escape(contract_title)}</strong>.</p>
    <p style="margin: 0;">A copy is available in the portal.</p>
    """
    return get_base_template(
        title="Contract fully executed",
        content_sections=content,
        cta_url=contract_url,
        cta_label="View Contract",
        accent_color="#16a34a",
    )
