"""Workload repository - schedules, calendar blocks and open work per staff member"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models_project import ProjectTask
from ...models_staff import CalendarBlock, WorkSchedule
from ...models_ticket import Ticket

OPEN_TICKET_STATUSES = ("new", "open", "in_progress", "pending_client")
PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


class WorkloadRepository:
    """Repository for workload database operations"""

    @staticmethod
    def get_schedules(db: Session, staff_id: int) -> list[WorkSchedule]:
        return (
            db.query(WorkSchedule)
            .filter(WorkSchedule.staff_id == staff_id)
            .order_by(WorkSchedule.day_of_week)
            .all()
        )

    @staticmethod
    def get_blocks(
        db: Session, staff_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> list[CalendarBlock]:
        query = db.query(CalendarBlock).filter(CalendarBlock.staff_id == staff_id)
        if start:
            query = query.filter(CalendarBlock.end_time >= start)
        if end:
            query = query.filter(CalendarBlock.start_time <= end)
        return query.order_by(CalendarBlock.start_time).all()

    @staticmethod
    def get_blocks_for_days(db: Session, staff_id: int, start: datetime, days: int) -> list[CalendarBlock]:
        return WorkloadRepository.get_blocks(db, staff_id, start, start + timedelta(days=days))

    @staticmethod
    def get_block(db: Session, block_id: int) -> Optional[CalendarBlock]:
        return db.query(CalendarBlock).filter(CalendarBlock.id == block_id).first()

    @staticmethod
    def get_open_tickets(db: Session, staff_id: int) -> list[Ticket]:
        tickets = (
            db.query(Ticket)
            .filter(Ticket.assigned_to == staff_id, Ticket.status.in_(OPEN_TICKET_STATUSES))
            .all()
        )
        return sorted(tickets, key=lambda t: (PRIORITY_ORDER.get(t.priority, 2), t.created_at, t.id))

    @staticmethod
    def count_open_tasks(db: Session, staff_id: int) -> int:
        return (
            db.query(ProjectTask)
            .filter(ProjectTask.assigned_to == staff_id, ProjectTask.status != "done")
            .count()
        )

    @staticmethod
    def get_resolution_hours(db: Session, category: Optional[str], limit: int = 50) -> list[float]:
        """Hours from creation to resolution for recently resolved tickets in a category"""
        if not category:
            return []
        rows = (
            db.query(Ticket.created_at, Ticket.resolved_at)
            .filter(Ticket.category == category, Ticket.resolved_at.isnot(None))
            .order_by(Ticket.resolved_at.desc())
            .limit(limit)
            .all()
        )
        return [
            (resolved_at - created_at).total_seconds() / 3600
            for created_at, resolved_at in rows
            if created_at and resolved_at and resolved_at >= created_at
        ]
