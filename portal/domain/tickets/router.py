"""Ticket router - FastAPI endpoints for support tickets"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...models_ticket import TicketComment
from ..workload.estimator import estimate_ticket_completion
from .schemas import (
    CommentCreate,
    CommentResponse,
    TicketAssign,
    TicketClose,
    TicketCreate,
    TicketResponse,
    TicketStatusUpdate,
    TicketUpdate,
)
from .service import TicketService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])


def get_ticket_service(db: Session = Depends(get_db)) -> TicketService:
    """Dependency injection for TicketService"""
    return TicketService(db)


def _comment_response(comment: TicketComment) -> CommentResponse:
    author = comment.author
    return CommentResponse(
        id=comment.id,
        ticket_id=comment.ticket_id,
        user_id=comment.user_id,
        author_name=(author.full_name or author.email) if author else None,
        content=comment.content,
        is_internal=comment.is_internal,
        created_at=comment.created_at,
    )


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    assigned_to: Optional[int] = Query(None),
    organization_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    """List tickets visible to the current user"""
    return service.list_tickets(current_user, status, priority, assigned_to, organization_id, limit, offset)


@router.post("", response_model=TicketResponse, status_code=201)
async def create_ticket(
    data: TicketCreate,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.create_ticket(current_user, data)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    return service.get_ticket(ticket_id, current_user)


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: int,
    data: TicketUpdate,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.update_ticket(ticket_id, current_user, data)


# ============================================================================
# WORKFLOW
# ============================================================================


@router.post("/{ticket_id}/status", response_model=TicketResponse)
async def change_status(
    ticket_id: int,
    data: TicketStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.change_status(ticket_id, current_user, data.status)


@router.post("/{ticket_id}/close", response_model=TicketResponse)
async def close_ticket(
    ticket_id: int,
    data: TicketClose,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    """Close a ticket, optionally leaving a closing note"""
    return await service.close_ticket(ticket_id, current_user, data.note)


@router.post("/{ticket_id}/assign", response_model=TicketResponse)
async def assign_ticket(
    ticket_id: int,
    data: TicketAssign,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    return await service.assign_ticket(ticket_id, current_user, data.assigned_to)


# ============================================================================
# COMMENTS
# ============================================================================


@router.get("/{ticket_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    return [_comment_response(c) for c in service.list_comments(ticket_id, current_user)]


@router.post("/{ticket_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    ticket_id: int,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    comment = await service.add_comment(ticket_id, current_user, data)
    return _comment_response(comment)


# ============================================================================
# SLA AND ESTIMATES
# ============================================================================


@router.get("/{ticket_id}/sla")
async def get_ticket_sla_status(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    """First response, resolution and combined SLA status"""
    return service.get_sla(ticket_id, current_user)


@router.get("/{ticket_id}/estimate")
async def get_ticket_estimate(
    ticket_id: int,
    current_user: User = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
    db: Session = Depends(get_db),
):
    """Estimated completion date for the ticket based on its assignee's workload"""
    ticket = service.get_ticket(ticket_id, current_user)
    return await estimate_ticket_completion(db, ticket)
