"""
Staff Availability Models
Weekly work schedules, calendar blocks and connected calendar accounts
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


class WorkSchedule(Base):
    __tablename__ = "work_schedules"
    __table_args__ = (UniqueConstraint("staff_id", "day_of_week", name="uq_staff_weekday"),)

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday ... 6 = Sunday
    is_working_day = Column(Boolean, default=True, nullable=False)
    start_time = Column(String(5), nullable=True)  # HH:MM
    end_time = Column(String(5), nullable=True)
    available_hours = Column(Float, default=8, nullable=False)


class CalendarBlock(Base):
    """Time a staff member is unavailable (meeting, leave, synced busy event)"""

    __tablename__ = "calendar_blocks"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    is_all_day = Column(Boolean, default=False, nullable=False)
    source = Column(String(20), default="manual", nullable=False)  # manual, google, microsoft
    external_id = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())


class CalendarIntegration(Base):
    """OAuth tokens for a staff member's Google or Microsoft calendar"""

    __tablename__ = "calendar_integrations"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_user_calendar_provider"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)  # google, microsoft

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)

    account_email = Column(String(255), nullable=True)
    sync_enabled = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")
