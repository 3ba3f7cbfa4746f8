"""Report service - scoped CSV exports and the dashboard summary"""

import csv
import logging
from datetime import datetime
from io import StringIO
from typing import Iterable, Optional

from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Organization, User
from ...models_invoice import Invoice, PlanAssignment, TimeEntry
from ...models_ticket import Ticket
from ...permissions import ensure_permission
from ...scoping import apply_org_scope, ensure_org_access
from ..tickets.sla import get_ticket_sla

logger = logging.getLogger(__name__)

OPEN_TICKET_STATUSES = ("new", "open", "in_progress", "pending_client")
OUTSTANDING_INVOICE_STATUSES = ("sent", "viewed", "partial", "overdue")


def _timestamp(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


def _cents(value: Optional[int]) -> str:
    return f"{(value or 0) / 100:.2f}"


def csv_response(prefix: str, header: list[str], rows: Iterable[list]) -> StreamingResponse:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(header)
    count = 0
    for row in rows:
        writer.writerow(row)
        count += 1

    filename = f"{prefix}_export_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
    logger.info(f"✅ CSV export successful: {filename} ({count} rows)")
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Cache-Control": "no-cache",
        },
    )


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def _scoped(self, query, column, user: User, organization_id: Optional[int]):
        query = apply_org_scope(query, column, self.db, user)
        if organization_id:
            ensure_org_access(self.db, user, organization_id)
            query = query.filter(column == organization_id)
        return query

    # ========================================================================
    # EXPORTS
    # ========================================================================

    def export_tickets(
        self,
        user: User,
        organization_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> StreamingResponse:
        ensure_permission(self.db, user, "reports.export")
        logger.info(f"📊 Ticket CSV export requested by user {user.id}")

        query = self._scoped(
            self.db.query(Ticket, Organization.name).join(Organization, Organization.id == Ticket.organization_id),
            Ticket.organization_id,
            user,
            organization_id,
        )
        if start_date:
            query = query.filter(Ticket.created_at >= start_date)
        if end_date:
            query = query.filter(Ticket.created_at <= end_date)

        now = datetime.utcnow()
        rows = (
            [
                ticket.ticket_number or ticket.id,
                org_name,
                ticket.title,
                ticket.category or "",
                ticket.priority,
                ticket.status,
                ticket.assigned_to or "",
                get_ticket_sla(ticket, now)["combined"]["status"],
                _timestamp(ticket.created_at),
                _timestamp(ticket.first_response_at),
                _timestamp(ticket.resolved_at),
            ]
            for ticket, org_name in query.order_by(Ticket.created_at.desc()).all()
        )
        header = [
            "Ticket", "Organization", "Title", "Category", "Priority", "Status",
            "Assigned To", "SLA Status", "Created At", "First Response At", "Resolved At",
        ]
        return csv_response("tickets", header, rows)

    def export_invoices(
        self, user: User, organization_id: Optional[int] = None, status: Optional[str] = None
    ) -> StreamingResponse:
        ensure_permission(self.db, user, "reports.export")
        logger.info(f"📊 Invoice CSV export requested by user {user.id}")

        query = self._scoped(
            self.db.query(Invoice, Organization.name).join(Organization, Organization.id == Invoice.organization_id),
            Invoice.organization_id,
            user,
            organization_id,
        )
        if user.role == "client":
            query = query.filter(Invoice.status != "draft")
        if status:
            query = query.filter(Invoice.status == status)

        rows = (
            [
                invoice.invoice_number,
                org_name,
                invoice.status,
                _timestamp(invoice.issue_date),
                _timestamp(invoice.due_date),
                invoice.currency or "USD",
                _cents(invoice.subtotal),
                _cents(invoice.discount_amount),
                _cents(invoice.tax_amount),
                _cents(invoice.total),
                _cents(invoice.amount_paid),
                _cents(invoice.balance_due),
            ]
            for invoice, org_name in query.order_by(Invoice.issue_date.desc()).all()
        )
        header = [
            "Invoice Number", "Organization", "Status", "Issue Date", "Due Date", "Currency",
            "Subtotal", "Discount", "Tax", "Total", "Paid", "Balance Due",
        ]
        return csv_response("invoices", header, rows)

    def export_time_entries(
        self,
        user: User,
        organization_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> StreamingResponse:
        ensure_permission(self.db, user, "reports.export")
        logger.info(f"📊 Time entry CSV export requested by user {user.id}")

        query = self._scoped(
            self.db.query(TimeEntry, PlanAssignment.organization_id).join(
                PlanAssignment, PlanAssignment.id == TimeEntry.plan_assignment_id
            ),
            PlanAssignment.organization_id,
            user,
            organization_id,
        )
        if start_date:
            query = query.filter(TimeEntry.work_date >= start_date)
        if end_date:
            query = query.filter(TimeEntry.work_date <= end_date)

        rows = (
            [
                entry.id,
                org_id,
                entry.staff_id,
                entry.ticket_id or "",
                entry.work_type,
                f"{entry.hours:g}",
                "yes" if entry.is_overage else "no",
                f"{entry.overage_hours or 0:g}",
                _timestamp(entry.work_date),
                entry.description or "",
            ]
            for entry, org_id in query.order_by(TimeEntry.work_date.desc()).all()
        )
        header = [
            "ID", "Organization ID", "Staff ID", "Ticket ID", "Work Type", "Hours",
            "Overage", "Overage Hours", "Work Date", "Description",
        ]
        return csv_response("time_entries", header, rows)

    # ========================================================================
    # SUMMARY
    # ========================================================================

    def get_summary(self, user: User, organization_id: Optional[int] = None, now: Optional[datetime] = None) -> dict:
        ensure_permission(self.db, user, "reports.view")
        now = now or datetime.utcnow()

        open_tickets = self._scoped(
            self.db.query(Ticket).filter(Ticket.status.in_(OPEN_TICKET_STATUSES)),
            Ticket.organization_id,
            user,
            organization_id,
        ).all()
        by_priority = {"critical": 0, "high": 0, "medium": 0, "low": 0}
        breaches = 0
        for ticket in open_tickets:
            by_priority[ticket.priority] = by_priority.get(ticket.priority, 0) + 1
            if get_ticket_sla(ticket, now)["combined"]["status"] == "breach":
                breaches += 1

        outstanding = self._scoped(
            self.db.query(func.coalesce(func.sum(Invoice.balance_due), 0)).filter(
                Invoice.status.in_(OUTSTANDING_INVOICE_STATUSES)
            ),
            Invoice.organization_id,
            user,
            organization_id,
        ).scalar()

        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        hours = self._scoped(
            self.db.query(func.coalesce(func.sum(TimeEntry.hours), 0))
            .join(PlanAssignment, PlanAssignment.id == TimeEntry.plan_assignment_id)
            .filter(TimeEntry.work_date >= month_start),
            PlanAssignment.organization_id,
            user,
            organization_id,
        ).scalar()

        return {
            "open_tickets": len(open_tickets),
            "open_tickets_by_priority": by_priority,
            "sla_breaches": breaches,
            "outstanding_balance": int(outstanding or 0),
            "hours_logged_this_month": round(float(hours or 0), 2),
            "generated_at": now,
        }
