import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Organization(Base):
    """Tenant: the agency itself, a partner agency, or a client company"""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    org_type = Column(String(20), nullable=False, default="client")  # internal, partner, client
    # Client organizations managed by a partner point at the partner
    parent_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    is_priority = Column(Boolean, default=False, nullable=False)  # Halved SLA windows
    slack_webhook_url = Column(String(500), nullable=True)
    settings = Column(JSON, nullable=True)
    status = Column(String(20), default="active", nullable=False)  # active, suspended, archived

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    parent = relationship("Organization", remote_side=[id], back_populates="children")
    children = relationship("Organization", back_populates="parent")
    users = relationship("User", back_populates="organization")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Subject claim from the auth provider's JWT
    auth_uid = Column(String(255), unique=True, index=True, nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(30), nullable=False, default="client")
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    is_account_manager = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    phone = Column(String(50), nullable=True)
    timezone = Column(String(64), default="UTC")
    notification_preferences = Column(JSON, nullable=True)
    last_login_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    organization = relationship("Organization", back_populates="users")
    permission_overrides = relationship(
        "UserPermissionOverride",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="UserPermissionOverride.user_id",
    )


class StaffAssignment(Base):
    """Grants a staff member access to a client organization"""

    __tablename__ = "staff_assignments"
    __table_args__ = (UniqueConstraint("staff_id", "organization_id", name="uq_staff_org"),)

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    staff = relationship("User")
    organization = relationship("Organization")


class UserPermissionOverride(Base):
    """Per-user grant or revoke on top of the role's default permissions"""

    __tablename__ = "user_permission_overrides"
    __table_args__ = (UniqueConstraint("user_id", "permission", name="uq_user_permission"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    permission = Column(String(100), nullable=False)
    granted = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="permission_overrides", foreign_keys=[user_id])


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. invoice.create
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(64), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    user = relationship("User")


class Notification(Base):
    """In-app notification shown in the portal bell menu"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    link = Column(String(500), nullable=True)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class NotificationLog(Base):
    """Delivery record for every outbound notification attempt"""

    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notification_type = Column(String(50), nullable=False)
    channel = Column(String(20), nullable=False)  # email, sms, slack, whatsapp
    recipient = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False)  # sent, failed, skipped
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=False)
