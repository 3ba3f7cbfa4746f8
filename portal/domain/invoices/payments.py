"""Payment application shared by manual entry and the Stripe webhook"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models_invoice import Invoice, InvoicePayment
from .schemas import PAYMENT_METHODS

logger = logging.getLogger(__name__)

PAYABLE_STATUSES = ("sent", "viewed", "partial", "overdue")


class PaymentError(ValueError):
    """Payment rejected by a balance or status rule"""


def next_status(invoice: Invoice) -> str:
    """Status after a payment: paid when settled, partial when something is paid"""
    if invoice.balance_due <= 0:
        return "paid"
    if invoice.amount_paid > 0:
        return "partial"
    return invoice.status


def apply_payment(
    db: Session,
    invoice: Invoice,
    amount: int,
    payment_method: str,
    payment_source: str = "manual",
    recorded_by: Optional[int] = None,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    payment_date: Optional[datetime] = None,
    external_id: Optional[str] = None,
) -> InvoicePayment:
    """Record a payment in cents and update the invoice balance and status (caller commits)"""
    if payment_method not in PAYMENT_METHODS:
        raise PaymentError(f"Invalid payment method. Must be one of: {', '.join(PAYMENT_METHODS)}")
    if invoice.status not in PAYABLE_STATUSES:
        raise PaymentError(f"Cannot record a payment on a {invoice.status} invoice")
    if amount <= 0:
        raise PaymentError("Payment amount must be greater than 0")
    if amount > invoice.balance_due:
        raise PaymentError(
            f"Payment amount ({amount / 100:.2f}) exceeds balance due ({invoice.balance_due / 100:.2f})"
        )

    payment = InvoicePayment(
        invoice_id=invoice.id,
        amount=amount,
        payment_method=payment_method,
        payment_source=payment_source,
        reference=reference,
        notes=notes,
        payment_date=payment_date or datetime.utcnow(),
        recorded_by=recorded_by,
        external_id=external_id,
    )
    db.add(payment)

    invoice.amount_paid = (invoice.amount_paid or 0) + amount
    invoice.balance_due = invoice.total - invoice.amount_paid
    invoice.status = next_status(invoice)
    if invoice.status == "paid":
        invoice.paid_at = datetime.utcnow()

    logger.info(
        f"💰 Payment of {amount} cents ({payment_method}/{payment_source}) recorded on invoice {invoice.id}, "
        f"balance {invoice.balance_due}"
    )
    return payment
