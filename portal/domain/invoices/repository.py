"""Invoice repository - database access for invoices and payments"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models_invoice import Invoice, InvoicePayment, PlanAssignment

OVERDUE_ELIGIBLE_STATUSES = ("sent", "viewed", "partial")


class InvoiceRepository:
    """Repository for invoice database operations"""

    @staticmethod
    def get_by_id(db: Session, invoice_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.id == invoice_id).first()

    @staticmethod
    def get_by_number(db: Session, organization_id: int, invoice_number: str) -> Optional[Invoice]:
        return (
            db.query(Invoice)
            .filter(Invoice.organization_id == organization_id, Invoice.invoice_number == invoice_number)
            .first()
        )

    @staticmethod
    def list_invoices(
        db: Session,
        org_ids: Optional[set[int]],
        status: Optional[str] = None,
        organization_id: Optional[int] = None,
        include_drafts: bool = True,
    ) -> list[Invoice]:
        query = db.query(Invoice)
        if org_ids is not None:
            query = query.filter(Invoice.organization_id.in_(org_ids))
        if not include_drafts:
            query = query.filter(Invoice.status != "draft")
        if status:
            query = query.filter(Invoice.status == status)
        if organization_id:
            query = query.filter(Invoice.organization_id == organization_id)
        return query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()

    @staticmethod
    def list_payments(db: Session, invoice_id: int) -> list[InvoicePayment]:
        return (
            db.query(InvoicePayment)
            .filter(InvoicePayment.invoice_id == invoice_id)
            .order_by(InvoicePayment.payment_date.desc(), InvoicePayment.id.desc())
            .all()
        )

    @staticmethod
    def get_payment_by_external_id(db: Session, external_id: str) -> Optional[InvoicePayment]:
        return db.query(InvoicePayment).filter(InvoicePayment.external_id == external_id).first()

    @staticmethod
    def find_overdue(db: Session, now: datetime) -> list[Invoice]:
        return (
            db.query(Invoice)
            .filter(
                Invoice.status.in_(OVERDUE_ELIGIBLE_STATUSES),
                Invoice.due_date.isnot(None),
                Invoice.due_date < now,
            )
            .all()
        )

    @staticmethod
    def get_active_assignment(db: Session, organization_id: int) -> Optional[PlanAssignment]:
        return (
            db.query(PlanAssignment)
            .filter(
                PlanAssignment.organization_id == organization_id,
                PlanAssignment.status.in_(("active", "grace_period")),
            )
            .order_by(PlanAssignment.id.desc())
            .first()
        )
