"""
Service Catalog Models
Services offered to clients, client requests for them and the response thread
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Service(Base):
    """A catalog entry; organization_id NULL means offered to every client"""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True, index=True)

    # Pricing
    base_rate = Column(Integer, nullable=True)  # cents
    rate_type = Column(String(20), nullable=True)  # hourly, fixed, tiered, custom
    estimated_hours = Column(Float, nullable=True)

    requires_approval = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    display_order = Column(Integer, default=0, nullable=False)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    requests = relationship("ServiceRequest", back_populates="service")


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # pending, responded, approved, rejected, converted, cancelled
    status = Column(String(20), default="pending", nullable=False, index=True)
    details = Column(JSON, nullable=True)
    requested_start_date = Column(DateTime, nullable=True)
    priority = Column(String(20), nullable=True)  # low, medium, high, urgent

    # Decision
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    converted_ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=True)

    # Response thread summary
    latest_response_at = Column(DateTime, nullable=True)
    latest_response_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    response_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    service = relationship("Service", back_populates="requests")
    responses = relationship(
        "ServiceRequestResponse",
        back_populates="service_request",
        cascade="all, delete-orphan",
        order_by="ServiceRequestResponse.id",
    )


class ServiceRequestResponse(Base):
    """Immutable thread entry: an agency response or the client's feedback"""

    __tablename__ = "service_request_responses"

    id = Column(Integer, primary_key=True, index=True)
    service_request_id = Column(Integer, ForeignKey("service_requests.id"), nullable=False, index=True)
    responder_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    response_type = Column(String(20), nullable=False)  # admin_response, client_feedback
    response_text = Column(Text, nullable=False)
    response_metadata = Column(JSON, nullable=True)
    is_approval = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    service_request = relationship("ServiceRequest", back_populates="responses")
