"""Ticket service - business logic for support tickets"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...audit import log_action
from ...models import Organization, User
from ...models_ticket import Ticket, TicketComment
from ...permissions import STAFF_ROLES, is_privileged
from ...scoping import accessible_organization_ids, ensure_org_access
from ...services.notification_service import notify_ticket_event
from ..ai.ticket_analyzer import analyze_ticket
from ..integrations.zapier.webhooks import emit_event
from .priority import DEFAULT_PRIORITY, calculate_sla_dates, format_response_time, is_urgent_priority
from .repository import TicketRepository
from .schemas import CommentCreate, TicketCreate, TicketUpdate
from .sla import get_ticket_sla

logger = logging.getLogger(__name__)

# Allowed status transitions; closed is terminal
STATUS_TRANSITIONS: dict[str, set[str]] = {
    "new": {"open", "in_progress", "pending_client", "resolved", "closed"},
    "open": {"in_progress", "pending_client", "resolved", "closed"},
    "in_progress": {"pending_client", "resolved", "closed"},
    "pending_client": {"in_progress", "resolved", "closed"},
    "resolved": {"closed", "open", "in_progress"},
    "closed": set(),
}

CLIENT_ALLOWED_STATUSES = {"closed"}


def can_transition(current: str, target: str) -> bool:
    return target in STATUS_TRANSITIONS.get(current, set())


def ticket_event_data(ticket: Ticket) -> dict:
    """Payload shape for ticket.* automation events"""
    return {
        "id": ticket.id,
        "ticket_number": ticket.ticket_number,
        "title": ticket.title,
        "status": ticket.status,
        "priority": ticket.priority,
        "category": ticket.category,
        "organization_id": ticket.organization_id,
        "assigned_to": ticket.assigned_to,
        "created_by": ticket.created_by,
    }


class TicketService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = TicketRepository()

    # ========================================================================
    # READS
    # ========================================================================

    def list_tickets(
        self,
        user: User,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[int] = None,
        organization_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Ticket]:
        org_ids = accessible_organization_ids(self.db, user)
        return self.repo.list_tickets(
            self.db, org_ids, status, priority, assigned_to, organization_id, limit, offset
        )

    def get_ticket(self, ticket_id: int, user: User) -> Ticket:
        ticket = self.repo.get_by_id(self.db, ticket_id)
        if not ticket:
            raise HTTPException(status_code=404, detail="Ticket not found")
        ensure_org_access(self.db, user, ticket.organization_id)
        return ticket

    def get_sla(self, ticket_id: int, user: User) -> dict:
        ticket = self.get_ticket(ticket_id, user)
        return {"ticket_id": ticket.id, "ticket_number": ticket.ticket_number, **get_ticket_sla(ticket)}

    def list_comments(self, ticket_id: int, user: User) -> list[TicketComment]:
        ticket = self.get_ticket(ticket_id, user)
        return self.repo.list_comments(self.db, ticket.id, include_internal=is_privileged(user))

    # ========================================================================
    # CREATE / UPDATE
    # ========================================================================

    async def create_ticket(self, user: User, data: TicketCreate) -> Ticket:
        if is_privileged(user):
            organization_id = data.organization_id or user.organization_id
        else:
            organization_id = user.organization_id
            if data.organization_id and data.organization_id != organization_id:
                raise HTTPException(status_code=403, detail="Clients can only create tickets for their organization")

        if not organization_id:
            raise HTTPException(status_code=400, detail="An organization is required to create a ticket")
        ensure_org_access(self.db, user, organization_id)

        assignee = None
        if data.assigned_to:
            if not is_privileged(user):
                raise HTTPException(status_code=403, detail="Only agency users can assign tickets")
            assignee = self._get_assignable_staff(data.assigned_to)

        category = data.category
        priority = data.priority
        estimated_hours = None
        ai_summary = None
        if not category:
            analysis = await analyze_ticket(data.title, data.description)
            category = analysis["category"]
            priority = priority or analysis["priority"]
            estimated_hours = analysis["estimated_hours"]
            ai_summary = analysis["summary"]
            logger.info(f"🤖 Ticket auto-classified as {category}/{priority} ({analysis['source']})")
        priority = priority or DEFAULT_PRIORITY

        organization = self.db.query(Organization).filter(Organization.id == organization_id).first()
        if not organization:
            raise HTTPException(status_code=404, detail="Organization not found")

        created_at = datetime.utcnow()
        first_response_due_at, sla_due_at = calculate_sla_dates(
            priority, created_at, bool(organization.is_priority)
        )

        ticket = Ticket(
            organization_id=organization_id,
            created_by=user.id,
            assigned_to=assignee.id if assignee else None,
            title=data.title.strip(),
            description=data.description,
            category=category,
            priority=priority,
            status="new",
            first_response_due_at=first_response_due_at,
            sla_due_at=sla_due_at,
            estimated_hours=estimated_hours,
            ai_summary=ai_summary,
            created_at=created_at,
        )
        ticket = self.repo.create(self.db, ticket)
        logger.info(f"✅ Ticket {ticket.ticket_number} created by user {user.id}")
        if is_urgent_priority(priority):
            response_hours = (first_response_due_at - created_at).total_seconds() / 3600
            logger.warning(
                f"🚨 {priority.title()} ticket {ticket.ticket_number}: first response due in {format_response_time(response_hours)}"
            )

        log_action(
            self.db,
            user,
            "ticket.create",
            "ticket",
            ticket.id,
            details={"ticket_number": ticket.ticket_number, "priority": priority},
            organization_id=organization_id,
        )

        await notify_ticket_event(self.db, ticket, "ticket_created", actor=user)
        await self._fire_webhook(ticket, "ticket.created")
        return ticket

    async def update_ticket(self, ticket_id: int, user: User, data: TicketUpdate) -> Ticket:
        ticket = self.get_ticket(ticket_id, user)
        if ticket.status == "closed":
            raise HTTPException(status_code=400, detail="Closed tickets cannot be edited")

        updates = data.model_dump(exclude_unset=True)
        if not is_privileged(user):
            if ticket.created_by != user.id:
                raise HTTPException(status_code=403, detail="You can only edit your own tickets")
            if {"priority", "category"} & set(updates):
                raise HTTPException(status_code=403, detail="Only agency users can change priority or category")

        new_priority = updates.pop("priority", None)
        for field, value in updates.items():
            setattr(ticket, field, value)

        if new_priority and new_priority != ticket.priority:
            old_priority = ticket.priority
            ticket.priority = new_priority
            # SLA clocks are only reset before any milestone has been reached
            if not ticket.first_response_at and not ticket.resolved_at:
                ticket.first_response_due_at, ticket.sla_due_at = calculate_sla_dates(
                    new_priority, ticket.created_at, bool(ticket.organization and ticket.organization.is_priority)
                )
            logger.info(f"🔄 Ticket {ticket.ticket_number} priority {old_priority} -> {new_priority}")

        self.db.commit()
        self.db.refresh(ticket)

        log_action(
            self.db,
            user,
            "ticket.update",
            "ticket",
            ticket.id,
            details={"fields": sorted(data.model_dump(exclude_unset=True))},
            organization_id=ticket.organization_id,
        )
        await self._fire_webhook(ticket, "ticket.updated")
        return ticket

    # ========================================================================
    # WORKFLOW
    # ========================================================================

    async def change_status(self, ticket_id: int, user: User, new_status: str) -> Ticket:
        ticket = self.get_ticket(ticket_id, user)

        if ticket.status == "closed":
            raise HTTPException(status_code=400, detail="Ticket is already closed")
        if not is_privileged(user) and new_status not in CLIENT_ALLOWED_STATUSES:
            raise HTTPException(status_code=403, detail="Clients can only close tickets")
        if not can_transition(ticket.status, new_status):
            raise HTTPException(
                status_code=400,
                detail=f"Cannot change status from {ticket.status} to {new_status}",
            )

        old_status = ticket.status
        now = datetime.utcnow()
        ticket.status = new_status
        if new_status == "resolved":
            ticket.resolved_at = now
        elif new_status == "closed":
            ticket.closed_at = now
            if not ticket.resolved_at:
                ticket.resolved_at = now
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"🔄 Ticket {ticket.ticket_number} status {old_status} -> {new_status}")

        log_action(
            self.db,
            user,
            "ticket.status_change",
            "ticket",
            ticket.id,
            details={"from": old_status, "to": new_status},
            organization_id=ticket.organization_id,
        )

        if new_status == "resolved":
            notification_type = "ticket_resolved"
        elif new_status == "closed":
            notification_type = "ticket_closed"
        else:
            notification_type = "ticket_updated"
        await notify_ticket_event(
            self.db,
            ticket,
            notification_type,
            actor=user,
            context={"status": new_status.replace("_", " ").title()},
            exclude_actor=True,
        )
        await self._fire_webhook(ticket, "ticket.closed" if new_status == "closed" else "ticket.updated")
        return ticket

    async def close_ticket(self, ticket_id: int, user: User, note: Optional[str] = None) -> Ticket:
        ticket = self.get_ticket(ticket_id, user)
        if ticket.status == "closed":
            raise HTTPException(status_code=400, detail="Ticket is already closed")
        if note and note.strip():
            self.repo.add_comment(self.db, ticket.id, user.id, f"[Ticket Closed] {note.strip()}")
            self.db.commit()
        return await self.change_status(ticket_id, user, "closed")

    async def assign_ticket(self, ticket_id: int, user: User, assignee_id: int) -> Ticket:
        if not is_privileged(user):
            raise HTTPException(status_code=403, detail="Only agency users can assign tickets")

        ticket = self.get_ticket(ticket_id, user)
        if ticket.status == "closed":
            raise HTTPException(status_code=400, detail="Ticket is already closed")

        assignee = self._get_assignable_staff(assignee_id)
        ticket.assigned_to = assignee.id
        if ticket.status == "new":
            ticket.status = "open"
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"👤 Ticket {ticket.ticket_number} assigned to user {assignee.id}")

        log_action(
            self.db,
            user,
            "ticket.assign",
            "ticket",
            ticket.id,
            details={"assigned_to": assignee.id},
            organization_id=ticket.organization_id,
        )
        await notify_ticket_event(self.db, ticket, "ticket_assigned", actor=user)
        await self._fire_webhook(ticket, "ticket.updated")
        return ticket

    async def add_comment(self, ticket_id: int, user: User, data: CommentCreate) -> TicketComment:
        ticket = self.get_ticket(ticket_id, user)
        if data.is_internal and not is_privileged(user):
            raise HTTPException(status_code=403, detail="Only agency users can post internal notes")

        comment = self.repo.add_comment(self.db, ticket.id, user.id, data.content.strip(), data.is_internal)
        if is_privileged(user) and not data.is_internal and not ticket.first_response_at:
            ticket.first_response_at = datetime.utcnow()
            logger.info(f"⏱️ First response recorded on ticket {ticket.ticket_number}")
        self.db.commit()
        self.db.refresh(comment)

        preview = data.content.strip()
        await notify_ticket_event(
            self.db,
            ticket,
            "ticket_comment",
            actor=user,
            context={
                "commenter_name": user.full_name or user.email,
                "comment_preview": preview[:200] + ("..." if len(preview) > 200 else ""),
            },
            exclude_actor=True,
            privileged_only=data.is_internal,
        )
        return comment

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _get_assignable_staff(self, user_id: int) -> User:
        assignee = self.db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()
        if not assignee or assignee.role not in STAFF_ROLES:
            raise HTTPException(status_code=400, detail="Tickets can only be assigned to agency staff")
        return assignee

    async def _fire_webhook(self, ticket: Ticket, event: str) -> None:
        await emit_event(self.db, ticket.organization_id, event, ticket_event_data(ticket))
