"""Messaging router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .schemas import ConversationCreate, ConversationResponse, MessageCreate, MessageResponse, MuteUpdate
from .service import MessagingService

router = APIRouter(prefix="/messages", tags=["Messages"])
rate_limit_send = create_rate_limiter(60, 60, "message_send", scope="user")


def get_messaging_service(db: Session = Depends(get_db)) -> MessagingService:
    return MessagingService(db)


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Conversations the user takes part in, most recent activity first"""
    return service.list_conversations(current_user)


@router.post("/conversations", response_model=ConversationResponse, status_code=201)
async def create_conversation(
    data: ConversationCreate,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.create_conversation(current_user, data)


@router.get("/unread-count")
async def unread_count(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.unread_total(current_user)


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.get_conversation(conversation_id, current_user)


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: int,
    before_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.list_messages(conversation_id, current_user, before_id, limit)


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: int,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
    _: None = Depends(rate_limit_send),
):
    return await service.send_message(conversation_id, current_user, data)


@router.post("/conversations/{conversation_id}/read")
async def mark_read(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.mark_read(conversation_id, current_user)


@router.put("/conversations/{conversation_id}/mute")
async def set_muted(
    conversation_id: int,
    data: MuteUpdate,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return service.set_muted(conversation_id, current_user, data.is_muted)
