"""Workload service - schedules, calendar blocks and capacity views"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_staff import CalendarBlock, WorkSchedule
from ...permissions import STAFF_ROLES, is_privileged
from .availability import analyze_workload, get_staff_availability
from .repository import WorkloadRepository
from .schemas import CalendarBlockCreate, CalendarBlockUpdate, ScheduleUpdate

logger = logging.getLogger(__name__)

MAX_AVAILABILITY_DAYS = 60


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class WorkloadService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = WorkloadRepository()

    # ========================================================================
    # ACCESS
    # ========================================================================

    def get_staff_member(self, staff_id: int) -> User:
        staff = self.db.query(User).filter(User.id == staff_id).first()
        if not staff or staff.role not in STAFF_ROLES:
            raise HTTPException(status_code=404, detail="Staff member not found")
        return staff

    def _ensure_can_view(self, user: User) -> None:
        if not is_privileged(user):
            raise HTTPException(status_code=403, detail="Insufficient permissions")

    def _ensure_can_manage(self, user: User, staff_id: int) -> None:
        if user.role != "super_admin" and user.id != staff_id:
            raise HTTPException(status_code=403, detail="You can only manage your own availability")

    # ========================================================================
    # SCHEDULES
    # ========================================================================

    def get_schedule(self, staff_id: int, user: User) -> list[WorkSchedule]:
        self._ensure_can_view(user)
        self.get_staff_member(staff_id)
        return self.repo.get_schedules(self.db, staff_id)

    def update_schedule(self, staff_id: int, user: User, data: ScheduleUpdate) -> list[WorkSchedule]:
        self._ensure_can_manage(user, staff_id)
        self.get_staff_member(staff_id)

        existing = {s.day_of_week: s for s in self.repo.get_schedules(self.db, staff_id)}
        for day in data.days:
            row = existing.get(day.day_of_week)
            if not row:
                row = WorkSchedule(staff_id=staff_id, day_of_week=day.day_of_week)
                self.db.add(row)
            row.is_working_day = day.is_working_day
            row.start_time = day.start_time
            row.end_time = day.end_time
            row.available_hours = day.available_hours if day.is_working_day else 0

        self.db.commit()
        logger.info(f"🔄 Work schedule updated for staff {staff_id}")
        return self.repo.get_schedules(self.db, staff_id)

    # ========================================================================
    # CALENDAR BLOCKS
    # ========================================================================

    def list_blocks(
        self, staff_id: int, user: User, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[CalendarBlock]:
        self._ensure_can_view(user)
        self.get_staff_member(staff_id)
        return self.repo.get_blocks(self.db, staff_id, to_naive_utc(start), to_naive_utc(end))

    def create_block(self, user: User, data: CalendarBlockCreate) -> CalendarBlock:
        staff_id = data.staff_id or user.id
        self._ensure_can_manage(user, staff_id)
        self.get_staff_member(staff_id)

        block = CalendarBlock(
            staff_id=staff_id,
            title=data.title,
            start_time=to_naive_utc(data.start_time),
            end_time=to_naive_utc(data.end_time),
            is_all_day=data.is_all_day,
            source="manual",
        )
        self.db.add(block)
        self.db.commit()
        self.db.refresh(block)
        return block

    def _get_manageable_block(self, block_id: int, user: User) -> CalendarBlock:
        block = self.repo.get_block(self.db, block_id)
        if not block:
            raise HTTPException(status_code=404, detail="Calendar block not found")
        self._ensure_can_manage(user, block.staff_id)
        if block.source != "manual":
            raise HTTPException(status_code=400, detail="Synced calendar events are managed by their calendar")
        return block

    def update_block(self, block_id: int, user: User, data: CalendarBlockUpdate) -> CalendarBlock:
        block = self._get_manageable_block(block_id, user)
        updates = data.model_dump(exclude_unset=True)
        for field in ("start_time", "end_time"):
            if field in updates:
                updates[field] = to_naive_utc(updates[field])
        for field, value in updates.items():
            if value is not None:
                setattr(block, field, value)
        if block.end_time <= block.start_time:
            raise HTTPException(status_code=400, detail="end_time must be after start_time")
        self.db.commit()
        self.db.refresh(block)
        return block

    def delete_block(self, block_id: int, user: User) -> dict:
        block = self._get_manageable_block(block_id, user)
        self.db.delete(block)
        self.db.commit()
        return {"message": "Calendar block deleted"}

    # ========================================================================
    # CAPACITY
    # ========================================================================

    def get_availability(self, staff_id: int, user: User, start: Optional[date] = None, days: int = 14) -> list[dict]:
        self._ensure_can_view(user)
        self.get_staff_member(staff_id)
        start = start or datetime.utcnow().date()
        days = max(1, min(days, MAX_AVAILABILITY_DAYS))
        schedules = self.repo.get_schedules(self.db, staff_id)
        blocks = self.repo.get_blocks_for_days(
            self.db, staff_id, datetime.combine(start, datetime.min.time()), days + 1
        )
        return get_staff_availability(schedules, blocks, start, days)

    def _analyze(self, staff: User, today: date) -> dict:
        blocks = self.repo.get_blocks_for_days(
            self.db, staff.id, datetime.combine(today, datetime.min.time()), 31
        )
        analysis = analyze_workload(
            staff.id,
            self.repo.get_schedules(self.db, staff.id),
            blocks,
            self.repo.get_open_tickets(self.db, staff.id),
            self.repo.count_open_tasks(self.db, staff.id),
            today,
        )
        analysis["staff_name"] = staff.full_name or staff.email
        return analysis

    def get_staff_workload(self, staff_id: int, user: User) -> dict:
        self._ensure_can_view(user)
        staff = self.get_staff_member(staff_id)
        return self._analyze(staff, datetime.utcnow().date())

    def get_team_workload(self, user: User) -> list[dict]:
        self._ensure_can_view(user)
        today = datetime.utcnow().date()
        team = (
            self.db.query(User)
            .filter(User.role.in_(STAFF_ROLES), User.is_active.is_(True))
            .order_by(User.id)
            .all()
        )
        return [self._analyze(staff, today) for staff in team]
