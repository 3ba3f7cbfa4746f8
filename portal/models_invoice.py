"""
Invoice, Payment and Support Plan Models
All money columns are integer cents; tax rates are basis points (825 = 8.25%)
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_public_id


class Plan(Base):
    """Support/retainer plan offered to client organizations"""

    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    support_hours_included = Column(Float, default=0, nullable=False)
    dev_hours_included = Column(Float, default=0, nullable=False)
    support_hourly_rate = Column(Integer, default=0, nullable=False)
    dev_hourly_rate = Column(Integer, default=0, nullable=False)
    monthly_fee = Column(Integer, default=0, nullable=False)
    payment_terms_days = Column(Integer, default=30, nullable=False)
    rush_support_included = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class PlanAssignment(Base):
    __tablename__ = "plan_assignments"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    # pending, active, paused, grace_period, cancelled, expired
    status = Column(String(20), default="pending", nullable=False)
    start_date = Column(DateTime, nullable=True)
    billing_period_start = Column(DateTime, nullable=True)
    billing_period_end = Column(DateTime, nullable=True)
    support_hours_used = Column(Float, default=0, nullable=False)
    dev_hours_used = Column(Float, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    plan = relationship("Plan")
    organization = relationship("Organization")


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(Integer, primary_key=True, index=True)
    plan_assignment_id = Column(Integer, ForeignKey("plan_assignments.id"), nullable=False, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    hours = Column(Float, nullable=False)
    work_type = Column(String(20), nullable=False)  # support, dev
    description = Column(Text, nullable=True)
    is_overage = Column(Boolean, default=False, nullable=False)
    overage_hours = Column(Float, default=0, nullable=False)
    work_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    plan_assignment = relationship("PlanAssignment")
    staff = relationship("User")


class Invoice(Base):
    """Invoice issued to a client organization"""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("organization_id", "invoice_number", name="uq_invoice_number_per_org"),
    )

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    plan_assignment_id = Column(Integer, ForeignKey("plan_assignments.id"), nullable=True)
    invoice_number = Column(String(50), nullable=False)
    # draft, sent, viewed, partial, paid, overdue, void, cancelled
    status = Column(String(20), default="draft", nullable=False, index=True)

    issue_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=True)

    subtotal = Column(Integer, default=0, nullable=False)
    discount_type = Column(String(20), nullable=True)  # percentage, fixed
    discount_value = Column(Integer, default=0, nullable=False)
    discount_amount = Column(Integer, default=0, nullable=False)
    tax_rate = Column(Integer, default=0, nullable=False)
    tax_amount = Column(Integer, default=0, nullable=False)
    total = Column(Integer, default=0, nullable=False)
    amount_paid = Column(Integer, default=0, nullable=False)
    balance_due = Column(Integer, default=0, nullable=False)
    currency = Column(String(10), default="USD")
    notes = Column(Text, nullable=True)

    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # QuickBooks sync
    quickbooks_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineItem.sort_order",
    )
    payments = relationship("InvoicePayment", back_populates="invoice", cascade="all, delete-orphan")


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")


class InvoicePayment(Base):
    __tablename__ = "invoice_payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    # stripe, paypal, bank_transfer, check, cash, credit
    payment_method = Column(String(30), nullable=False)
    payment_source = Column(String(20), nullable=False, default="manual")  # manual, stripe
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    payment_date = Column(DateTime, nullable=False)
    recorded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    external_id = Column(String(255), nullable=True, unique=True)
    quickbooks_id = Column(String(255), nullable=True)
    quickbooks_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    invoice = relationship("Invoice", back_populates="payments")
