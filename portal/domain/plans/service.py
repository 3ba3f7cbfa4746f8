"""Support plan service - plans, assignments and time tracking"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...models import Organization, User
from ...models_invoice import Plan, PlanAssignment, TimeEntry
from ...permissions import STAFF_ROLES, is_privileged
from ...scoping import apply_org_scope, ensure_org_access
from .schemas import AssignmentCreate, AssignmentUpdate, PlanCreate, PlanUpdate, TimeEntryCreate

logger = logging.getLogger(__name__)

LOGGABLE_STATUSES = ("active", "grace_period")


def calculate_overage(used: float, hours: float, included: float) -> float:
    """Hours beyond the plan allowance once this entry is added"""
    return round(max(0.0, used + hours - included), 2)


def hours_summary(assignment: PlanAssignment) -> dict:
    plan = assignment.plan
    support_included = plan.support_hours_included if plan else 0
    dev_included = plan.dev_hours_included if plan else 0
    support_used = assignment.support_hours_used or 0
    dev_used = assignment.dev_hours_used or 0
    return {
        "support_hours_included": support_included,
        "dev_hours_included": dev_included,
        "support_hours_used": support_used,
        "dev_hours_used": dev_used,
        "support_hours_remaining": max(0, support_included - support_used),
        "dev_hours_remaining": max(0, dev_included - dev_used),
    }


class PlanService:
    def __init__(self, db: Session):
        self.db = db

    def _require_super_admin(self, user: User) -> None:
        if user.role != "super_admin":
            raise HTTPException(status_code=403, detail="Insufficient permissions")

    # ========================================================================
    # PLANS
    # ========================================================================

    def list_plans(self, user: User, include_inactive: bool = False) -> list[Plan]:
        if not is_privileged(user):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        query = self.db.query(Plan)
        if not include_inactive:
            query = query.filter(Plan.is_active.is_(True))
        return query.order_by(Plan.monthly_fee, Plan.id).all()

    def get_plan(self, plan_id: int) -> Plan:
        plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
        if not plan:
            raise HTTPException(status_code=404, detail="Plan not found")
        return plan

    def create_plan(self, user: User, data: PlanCreate) -> Plan:
        self._require_super_admin(user)
        plan = Plan(**data.model_dump())
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        log_action(self.db, user, "plan.create", "plan", plan.id, details={"name": plan.name})
        return plan

    def update_plan(self, plan_id: int, user: User, data: PlanUpdate) -> Plan:
        self._require_super_admin(user)
        plan = self.get_plan(plan_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(plan, field, value)
        self.db.commit()
        self.db.refresh(plan)
        log_action(self.db, user, "plan.update", "plan", plan.id)
        return plan

    def deactivate_plan(self, plan_id: int, user: User) -> dict:
        self._require_super_admin(user)
        plan = self.get_plan(plan_id)
        plan.is_active = False
        self.db.commit()
        log_action(self.db, user, "plan.deactivate", "plan", plan.id)
        return {"message": "Plan deactivated"}

    # ========================================================================
    # ASSIGNMENTS
    # ========================================================================

    def get_assignment(self, assignment_id: int, user: User) -> PlanAssignment:
        assignment = self.db.query(PlanAssignment).filter(PlanAssignment.id == assignment_id).first()
        if not assignment:
            raise HTTPException(status_code=404, detail="Plan assignment not found")
        ensure_org_access(self.db, user, assignment.organization_id)
        return assignment

    def list_assignments(self, user: User, organization_id: Optional[int] = None) -> list[PlanAssignment]:
        query = apply_org_scope(
            self.db.query(PlanAssignment), PlanAssignment.organization_id, self.db, user
        )
        if organization_id:
            query = query.filter(PlanAssignment.organization_id == organization_id)
        return query.order_by(PlanAssignment.id.desc()).all()

    def create_assignment(self, user: User, data: AssignmentCreate) -> PlanAssignment:
        self._require_super_admin(user)
        if not self.db.query(Organization.id).filter(Organization.id == data.organization_id).first():
            raise HTTPException(status_code=404, detail="Organization not found")
        plan = self.get_plan(data.plan_id)
        if not plan.is_active:
            raise HTTPException(status_code=400, detail="Plan is not active")

        now = datetime.utcnow()
        assignment = PlanAssignment(
            organization_id=data.organization_id,
            plan_id=plan.id,
            status=data.status,
            start_date=data.start_date or now,
            billing_period_start=data.billing_period_start or now,
            billing_period_end=data.billing_period_end,
            support_hours_used=0,
            dev_hours_used=0,
        )
        self.db.add(assignment)
        self.db.commit()
        self.db.refresh(assignment)
        log_action(
            self.db,
            user,
            "plan_assignment.create",
            "plan_assignment",
            assignment.id,
            details={"plan_id": plan.id},
            organization_id=assignment.organization_id,
        )
        logger.info(f"✅ Plan {plan.name} assigned to organization {assignment.organization_id}")
        return assignment

    def update_assignment(self, assignment_id: int, user: User, data: AssignmentUpdate) -> PlanAssignment:
        self._require_super_admin(user)
        assignment = self.get_assignment(assignment_id, user)
        updates = data.model_dump(exclude_unset=True)
        for field, value in updates.items():
            setattr(assignment, field, value)
        self.db.commit()
        self.db.refresh(assignment)
        log_action(
            self.db,
            user,
            "plan_assignment.update",
            "plan_assignment",
            assignment.id,
            details={k: str(v) for k, v in updates.items()},
            organization_id=assignment.organization_id,
        )
        return assignment

    def get_usage(self, assignment_id: int, user: User) -> dict:
        assignment = self.get_assignment(assignment_id, user)
        return {
            "plan_assignment_id": assignment.id,
            "plan_name": assignment.plan.name if assignment.plan else None,
            "status": assignment.status,
            "billing_period_start": assignment.billing_period_start,
            "billing_period_end": assignment.billing_period_end,
            **hours_summary(assignment),
        }

    # ========================================================================
    # TIME TRACKING
    # ========================================================================

    def list_time_entries(self, assignment_id: int, user: User) -> list[TimeEntry]:
        assignment = self.get_assignment(assignment_id, user)
        return (
            self.db.query(TimeEntry)
            .filter(TimeEntry.plan_assignment_id == assignment.id)
            .order_by(TimeEntry.work_date.desc(), TimeEntry.id.desc())
            .all()
        )

    def log_time(self, assignment_id: int, user: User, data: TimeEntryCreate) -> dict:
        if user.role not in STAFF_ROLES:
            raise HTTPException(status_code=403, detail="Only staff can log time")

        assignment = self.get_assignment(assignment_id, user)
        if assignment.status not in LOGGABLE_STATUSES:
            raise HTTPException(status_code=400, detail="Cannot log time to an inactive plan assignment")

        plan = assignment.plan
        if data.work_type == "support":
            used = assignment.support_hours_used or 0
            included = plan.support_hours_included if plan else 0
        else:
            used = assignment.dev_hours_used or 0
            included = plan.dev_hours_included if plan else 0

        overage = calculate_overage(used, data.hours, included)
        work_date = datetime.combine(data.work_date, datetime.min.time()) if data.work_date else datetime.utcnow()

        entry = TimeEntry(
            plan_assignment_id=assignment.id,
            ticket_id=data.ticket_id,
            staff_id=user.id,
            hours=data.hours,
            work_type=data.work_type,
            description=data.description,
            is_overage=overage > 0,
            overage_hours=overage,
            work_date=work_date,
        )
        self.db.add(entry)
        if data.work_type == "support":
            assignment.support_hours_used = used + data.hours
        else:
            assignment.dev_hours_used = used + data.hours
        self.db.commit()
        self.db.refresh(entry)
        self.db.refresh(assignment)

        log_action(
            self.db,
            user,
            "time_entry.create",
            "time_entry",
            entry.id,
            details={
                "plan_assignment_id": assignment.id,
                "hours": data.hours,
                "work_type": data.work_type,
                "will_exceed_limit": overage > 0,
                "overage_hours": overage,
            },
            organization_id=assignment.organization_id,
        )
        if overage > 0:
            logger.warning(f"⚠️ Plan assignment {assignment.id} over {data.work_type} allowance by {overage}h")

        return {
            "time_entry": entry,
            "hours_summary": {
                **hours_summary(assignment),
                "will_exceed_limit": overage > 0,
                "overage_hours": overage,
            },
        }
