"""
Contract and E-Signature Models
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_public_id


class ContractTemplate(Base):
    __tablename__ = "contract_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    contract_type = Column(String(30), nullable=False, default="service_agreement")
    content = Column(Text, nullable=False)  # HTML with {{variable}} placeholders
    # [{"name": "client_name", "label": "Client name", "default": ""}]
    variables = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("contract_templates.id"), nullable=True)
    title = Column(String(255), nullable=False)
    # service_agreement, nda, msa, sow, amendment, other
    contract_type = Column(String(30), nullable=False, default="service_agreement")
    # draft, pending_signature, signed, expired, cancelled
    status = Column(String(30), nullable=False, default="draft", index=True)
    content = Column(Text, nullable=False)
    metadata_values = Column(JSON, nullable=True)
    value = Column(Integer, nullable=True)  # cents
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    signed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization")
    signers = relationship(
        "ContractSigner",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractSigner.signing_order",
    )


class ContractSigner(Base):
    __tablename__ = "contract_signers"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="client")  # client, contractor, witness, approver
    signing_order = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="pending")  # pending, signed
    signature_name = Column(String(255), nullable=True)
    signed_at = Column(DateTime, nullable=True)
    ip_address = Column(String(64), nullable=True)

    contract = relationship("Contract", back_populates="signers")
