"""Invoice service - business logic for invoices and payments"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...email_service import send_invoice_email
from ...models import Organization, User
from ...models_invoice import Invoice, InvoiceLineItem, InvoicePayment
from ...permissions import ensure_permission
from ...scoping import accessible_organization_ids, can_access_org, ensure_org_access
from ..integrations.zapier.webhooks import emit_event
from .payments import PaymentError, apply_payment
from .pdf_service import generate_invoice_pdf
from .repository import InvoiceRepository
from .schemas import InvoiceCreate, InvoiceUpdate, ManualPaymentCreate
from .totals import calculate_totals, dollars_to_cents, format_cents, line_amount

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_TERMS_DAYS = 30
ISSUED_EDITABLE_FIELDS = {"notes", "due_date"}


def invoice_event_data(invoice: Invoice) -> dict:
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "organization_id": invoice.organization_id,
        "status": invoice.status,
        "total": invoice.total,
        "amount_paid": invoice.amount_paid,
        "balance_due": invoice.balance_due,
        "currency": invoice.currency,
        "due_date": invoice.due_date,
    }


def apply_totals(invoice: Invoice) -> None:
    totals = calculate_totals(
        [(item.quantity, item.unit_price) for item in invoice.line_items],
        invoice.discount_type,
        invoice.discount_value or 0,
        invoice.tax_rate or 0,
        invoice.amount_paid or 0,
    )
    for field, value in totals.items():
        setattr(invoice, field, value)


def build_line_items(items) -> list[InvoiceLineItem]:
    return [
        InvoiceLineItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            amount=line_amount(item.quantity, item.unit_price),
            sort_order=index,
        )
        for index, item in enumerate(items)
    ]


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()

    # ========================================================================
    # ACCESS
    # ========================================================================

    def can_manage(self, user: User, organization_id: int) -> bool:
        """Super admins, or account-manager staff with access to the organization"""
        if user.role == "super_admin":
            return True
        return (
            user.role == "staff"
            and bool(user.is_account_manager)
            and can_access_org(self.db, user, organization_id)
        )

    def _ensure_can_manage(self, user: User, organization_id: int) -> None:
        if not self.can_manage(user, organization_id):
            raise HTTPException(status_code=403, detail="Only account managers can manage invoices")

    # ========================================================================
    # READS
    # ========================================================================

    def list_invoices(
        self, user: User, status: Optional[str] = None, organization_id: Optional[int] = None
    ) -> list[Invoice]:
        ensure_permission(self.db, user, "invoices.view")
        org_ids = accessible_organization_ids(self.db, user)
        return self.repo.list_invoices(
            self.db, org_ids, status, organization_id, include_drafts=user.role != "client"
        )

    def get_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = self.repo.get_by_id(self.db, invoice_id)
        if not invoice or (user.role == "client" and invoice.status == "draft"):
            raise HTTPException(status_code=404, detail="Invoice not found")
        ensure_org_access(self.db, user, invoice.organization_id)
        return invoice

    def list_payments(self, invoice_id: int, user: User) -> list[InvoicePayment]:
        invoice = self.get_invoice(invoice_id, user)
        return self.repo.list_payments(self.db, invoice.id)

    def get_pdf(self, invoice_id: int, user: User) -> tuple[str, bytes]:
        invoice = self.get_invoice(invoice_id, user)
        return f"invoice-{invoice.invoice_number}.pdf", generate_invoice_pdf(invoice)

    # ========================================================================
    # CREATE / UPDATE
    # ========================================================================

    async def create_invoice(self, user: User, data: InvoiceCreate) -> Invoice:
        self._ensure_can_manage(user, data.organization_id)

        organization = self.db.query(Organization).filter(Organization.id == data.organization_id).first()
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")

        invoice_number = data.invoice_number.strip()
        if self.repo.get_by_number(self.db, organization.id, invoice_number):
            raise HTTPException(status_code=409, detail="Invoice number already exists for this organization")

        issue_date = data.issue_date or datetime.utcnow()
        due_date = data.due_date
        if not due_date:
            assignment = self.repo.get_active_assignment(self.db, organization.id)
            terms = (
                assignment.plan.payment_terms_days
                if assignment and assignment.plan and assignment.plan.payment_terms_days
                else DEFAULT_PAYMENT_TERMS_DAYS
            )
            due_date = issue_date + timedelta(days=terms)

        invoice = Invoice(
            organization_id=organization.id,
            plan_assignment_id=data.plan_assignment_id,
            invoice_number=invoice_number,
            status="draft",
            issue_date=issue_date,
            due_date=due_date,
            discount_type=data.discount_type,
            discount_value=data.discount_value if data.discount_type else 0,
            tax_rate=data.tax_rate,
            currency=data.currency.upper(),
            notes=data.notes,
            amount_paid=0,
            created_by=user.id,
        )
        invoice.line_items = build_line_items(data.line_items)
        apply_totals(invoice)

        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"✅ Invoice {invoice.invoice_number} created for organization {organization.id}")

        log_action(
            self.db,
            user,
            "invoice.create",
            "invoice",
            invoice.id,
            details={"invoice_number": invoice.invoice_number, "total": invoice.total},
            organization_id=organization.id,
        )
        await emit_event(self.db, organization.id, "invoice.created", invoice_event_data(invoice))
        return invoice

    def update_invoice(self, invoice_id: int, user: User, data: InvoiceUpdate) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        self._ensure_can_manage(user, invoice.organization_id)
        updates = data.model_dump(exclude_unset=True)

        if invoice.status != "draft":
            blocked = set(updates) - ISSUED_EDITABLE_FIELDS
            if blocked:
                raise HTTPException(
                    status_code=400,
                    detail="Only notes and due date can be changed after an invoice is sent",
                )

        line_items = updates.pop("line_items", None)
        for field, value in updates.items():
            setattr(invoice, field, value)
        if line_items is not None:
            invoice.line_items = build_line_items(data.line_items)
        if not invoice.discount_type:
            invoice.discount_value = 0
        if invoice.status == "draft":
            apply_totals(invoice)

        self.db.commit()
        self.db.refresh(invoice)

        log_action(
            self.db,
            user,
            "invoice.update",
            "invoice",
            invoice.id,
            details={"fields": sorted(data.model_dump(exclude_unset=True))},
            organization_id=invoice.organization_id,
        )
        return invoice

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def send_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        self._ensure_can_manage(user, invoice.organization_id)
        if invoice.status != "draft":
            raise HTTPException(status_code=400, detail="Only draft invoices can be sent")

        invoice.status = "sent"
        invoice.sent_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(invoice)

        recipients = [
            u.email
            for u in self.db.query(User)
            .filter(User.organization_id == invoice.organization_id, User.is_active.is_(True))
            .all()
        ]
        if recipients:
            try:
                await send_invoice_email(
                    to=recipients,
                    organization_name=invoice.organization.name,
                    invoice_number=invoice.invoice_number,
                    total_display=format_cents(invoice.total, invoice.currency or "USD"),
                    due_date_display=invoice.due_date.strftime("%B %d, %Y") if invoice.due_date else "On receipt",
                    invoice_public_id=invoice.public_id,
                    pdf_bytes=generate_invoice_pdf(invoice),
                )
            except Exception as e:
                logger.error(f"❌ Failed to email invoice {invoice.invoice_number}: {e}")
        else:
            logger.warning(f"⚠️ Invoice {invoice.invoice_number} sent with no recipients in organization")

        log_action(
            self.db,
            user,
            "invoice.send",
            "invoice",
            invoice.id,
            details={"recipients": len(recipients)},
            organization_id=invoice.organization_id,
        )
        return invoice

    async def record_manual_payment(self, invoice_id: int, user: User, data: ManualPaymentCreate) -> dict:
        invoice = self.get_invoice(invoice_id, user)
        self._ensure_can_manage(user, invoice.organization_id)

        try:
            payment = apply_payment(
                self.db,
                invoice,
                dollars_to_cents(data.amount),
                data.payment_method,
                payment_source="manual",
                recorded_by=user.id,
                reference=data.reference,
                notes=data.notes,
                payment_date=data.payment_date,
            )
        except PaymentError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        self.db.commit()
        self.db.refresh(invoice)
        self.db.refresh(payment)

        log_action(
            self.db,
            user,
            "invoice.payment",
            "invoice",
            invoice.id,
            details={"amount": payment.amount, "payment_method": payment.payment_method},
            organization_id=invoice.organization_id,
        )
        if invoice.status == "paid":
            await emit_event(self.db, invoice.organization_id, "invoice.paid", invoice_event_data(invoice))

        return {"payment": payment, "invoice": invoice}

    def void_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = self.get_invoice(invoice_id, user)
        self._ensure_can_manage(user, invoice.organization_id)
        if invoice.status == "paid":
            raise HTTPException(status_code=400, detail="Paid invoices cannot be voided")
        if invoice.status == "void":
            raise HTTPException(status_code=400, detail="Invoice is already void")

        invoice.status = "void"
        invoice.voided_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(invoice)

        log_action(self.db, user, "invoice.void", "invoice", invoice.id, organization_id=invoice.organization_id)
        logger.info(f"🔄 Invoice {invoice.invoice_number} voided")
        return invoice


async def run_overdue_sweep(db: Session, now: Optional[datetime] = None) -> dict:
    """Mark past-due sent/viewed/partial invoices overdue and announce them"""
    now = now or datetime.utcnow()
    invoices = InvoiceRepository.find_overdue(db, now)
    for invoice in invoices:
        invoice.status = "overdue"
    db.commit()

    for invoice in invoices:
        await emit_event(db, invoice.organization_id, "invoice.overdue", invoice_event_data(invoice))

    if invoices:
        logger.info(f"⏰ Marked {len(invoices)} invoices overdue")
    return {"marked_overdue": len(invoices)}
