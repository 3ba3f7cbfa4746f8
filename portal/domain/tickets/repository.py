"""Ticket repository - database access for tickets and comments"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_ticket import Ticket, TicketComment


class TicketRepository:
    """Repository for ticket database operations"""

    @staticmethod
    def get_by_id(db: Session, ticket_id: int) -> Optional[Ticket]:
        return db.query(Ticket).filter(Ticket.id == ticket_id).first()

    @staticmethod
    def list_tickets(
        db: Session,
        org_ids: Optional[set[int]],
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[int] = None,
        organization_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Ticket]:
        query = db.query(Ticket)
        if org_ids is not None:
            query = query.filter(Ticket.organization_id.in_(org_ids))
        if status:
            query = query.filter(Ticket.status == status)
        if priority:
            query = query.filter(Ticket.priority == priority)
        if assigned_to:
            query = query.filter(Ticket.assigned_to == assigned_to)
        if organization_id:
            query = query.filter(Ticket.organization_id == organization_id)
        return query.order_by(Ticket.created_at.desc(), Ticket.id.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def create(db: Session, ticket: Ticket) -> Ticket:
        """Insert and assign the human-readable ticket number from the row id"""
        db.add(ticket)
        db.flush()
        ticket.ticket_number = f"TKT-{ticket.id:05d}"
        db.commit()
        db.refresh(ticket)
        return ticket

    @staticmethod
    def add_comment(
        db: Session, ticket_id: int, user_id: int, content: str, is_internal: bool = False
    ) -> TicketComment:
        comment = TicketComment(
            ticket_id=ticket_id, user_id=user_id, content=content, is_internal=is_internal
        )
        db.add(comment)
        db.flush()
        return comment

    @staticmethod
    def list_comments(db: Session, ticket_id: int, include_internal: bool) -> list[TicketComment]:
        query = db.query(TicketComment).filter(TicketComment.ticket_id == ticket_id)
        if not include_internal:
            query = query.filter(TicketComment.is_internal.is_(False))
        return query.order_by(TicketComment.id).all()
