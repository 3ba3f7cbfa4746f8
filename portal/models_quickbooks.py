"""QuickBooks connection per organization and the invoice and payment push history"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class QuickBooksIntegration(Base):
    """One connected QuickBooks company per organization; tokens are Fernet-encrypted"""

    __tablename__ = "quickbooks_integrations"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)
    connected_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)

    # QuickBooks company info
    realm_id = Column(String(255), nullable=False)  # QuickBooks company ID
    company_name = Column(String(255), nullable=True)
    environment = Column(String(50), default="sandbox")

    last_invoice_sync = Column(DateTime, nullable=True)
    last_payment_sync = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization")


class QuickBooksSyncLog(Base):
    """One row per invoice or payment push attempt"""

    __tablename__ = "quickbooks_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    integration_id = Column(Integer, ForeignKey("quickbooks_integrations.id"), nullable=False)

    sync_type = Column(String(50), nullable=False)  # invoice, payment
    entity_type = Column(String(50), nullable=False)  # Invoice, InvoicePayment
    entity_id = Column(Integer, nullable=False)
    quickbooks_id = Column(String(255), nullable=True)

    status = Column(String(50), nullable=False)  # success, error
    error_message = Column(Text, nullable=True)
    sync_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    integration = relationship("QuickBooksIntegration")
