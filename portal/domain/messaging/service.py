"""Messaging service - conversations, messages and unread tracking"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_messaging import Conversation, ConversationParticipant, Message
from ...permissions import ensure_permission
from ...scoping import can_access_org, ensure_org_access
from ...services.notification_service import create_in_app_notification
from ..integrations.zapier.webhooks import emit_event
from .repository import MessagingRepository
from .schemas import ConversationCreate, MessageCreate

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 140


def conversation_view(conversation: Conversation, unread_count: int = 0) -> dict:
    return {
        "id": conversation.id,
        "organization_id": conversation.organization_id,
        "subject": conversation.subject,
        "created_by": conversation.created_by,
        "last_message_at": conversation.last_message_at,
        "created_at": conversation.created_at,
        "participants": [
            {
                "user_id": p.user_id,
                "full_name": p.user.full_name if p.user else None,
                "email": p.user.email if p.user else "",
                "last_read_at": p.last_read_at,
                "is_muted": p.is_muted,
            }
            for p in conversation.participants
        ],
        "unread_count": unread_count,
    }


class MessagingService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = MessagingRepository()

    def _get_membership(self, conversation_id: int, user: User) -> tuple[Conversation, ConversationParticipant]:
        conversation = self.repo.get_conversation(self.db, conversation_id)
        participant = self.repo.get_participant(self.db, conversation_id, user.id) if conversation else None
        if not conversation or not participant:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return conversation, participant

    # ========================================================================
    # CONVERSATIONS
    # ========================================================================

    def list_conversations(self, user: User) -> list[dict]:
        ensure_permission(self.db, user, "messages.view")
        return [
            conversation_view(
                conversation,
                self.repo.count_unread(self.db, conversation.id, user.id, participant.last_read_at),
            )
            for conversation, participant in self.repo.list_for_user(self.db, user.id)
        ]

    def get_conversation(self, conversation_id: int, user: User) -> dict:
        conversation, participant = self._get_membership(conversation_id, user)
        unread = self.repo.count_unread(self.db, conversation.id, user.id, participant.last_read_at)
        return conversation_view(conversation, unread)

    async def create_conversation(self, user: User, data: ConversationCreate) -> dict:
        ensure_permission(self.db, user, "messages.send")
        ensure_org_access(self.db, user, data.organization_id)

        other_ids = sorted({pid for pid in data.participant_ids if pid != user.id})
        if not other_ids:
            raise HTTPException(status_code=400, detail="A conversation needs at least one other participant")

        others = self.db.query(User).filter(User.id.in_(other_ids), User.is_active.is_(True)).all()
        if len(others) != len(other_ids):
            raise HTTPException(status_code=400, detail="One or more participants were not found")
        for other in others:
            if not can_access_org(self.db, other, data.organization_id):
                raise HTTPException(
                    status_code=403,
                    detail=f"User {other.id} cannot participate in this organization's conversations",
                )

        conversation = None
        if len(other_ids) == 1:
            conversation = self.repo.find_direct(self.db, data.organization_id, user.id, other_ids[0])
            if conversation:
                logger.info(f"🔄 Reusing direct conversation {conversation.id}")

        if conversation is None:
            conversation = Conversation(
                organization_id=data.organization_id,
                subject=data.subject,
                created_by=user.id,
            )
            conversation.participants = [
                ConversationParticipant(user_id=uid, last_read_at=datetime.utcnow() if uid == user.id else None)
                for uid in [user.id, *other_ids]
            ]
            self.db.add(conversation)
            self.db.commit()
            self.db.refresh(conversation)
            logger.info(f"✅ Conversation {conversation.id} created with {len(other_ids) + 1} participants")

        if data.message and data.message.strip():
            await self.send_message(conversation.id, user, MessageCreate(content=data.message))
            self.db.refresh(conversation)

        return conversation_view(conversation)

    def set_muted(self, conversation_id: int, user: User, is_muted: bool) -> dict:
        conversation, participant = self._get_membership(conversation_id, user)
        participant.is_muted = is_muted
        self.db.commit()
        return {"conversation_id": conversation.id, "is_muted": participant.is_muted}

    # ========================================================================
    # MESSAGES
    # ========================================================================

    def list_messages(
        self, conversation_id: int, user: User, before_id: Optional[int] = None, limit: int = 50
    ) -> list[Message]:
        ensure_permission(self.db, user, "messages.view")
        conversation, _ = self._get_membership(conversation_id, user)
        return self.repo.list_messages(self.db, conversation.id, before_id, min(max(limit, 1), 200))

    async def send_message(self, conversation_id: int, user: User, data: MessageCreate) -> Message:
        ensure_permission(self.db, user, "messages.send")
        conversation, sender = self._get_membership(conversation_id, user)

        now = datetime.utcnow()
        message = Message(conversation_id=conversation.id, sender_id=user.id, content=data.content, created_at=now)
        self.db.add(message)
        conversation.last_message_at = now
        sender.last_read_at = now

        preview = data.content if len(data.content) <= PREVIEW_LENGTH else data.content[: PREVIEW_LENGTH - 3] + "..."
        sender_name = user.full_name or user.email
        for participant in conversation.participants:
            if participant.user_id == user.id or participant.is_muted:
                continue
            create_in_app_notification(
                self.db,
                participant.user_id,
                "message_received",
                f"New message from {sender_name}",
                message=preview,
                link=f"/messages/{conversation.id}",
                organization_id=conversation.organization_id,
                data={"conversation_id": conversation.id},
                commit=False,
            )

        self.db.commit()
        self.db.refresh(message)

        await emit_event(
            self.db,
            conversation.organization_id,
            "message.received",
            {
                "message_id": message.id,
                "conversation_id": conversation.id,
                "subject": conversation.subject,
                "sender_id": user.id,
                "sender_name": sender_name,
                "content": message.content,
                "created_at": message.created_at,
            },
        )
        return message

    # ========================================================================
    # READ STATE
    # ========================================================================

    def mark_read(self, conversation_id: int, user: User) -> dict:
        conversation, participant = self._get_membership(conversation_id, user)
        participant.last_read_at = datetime.utcnow()
        self.db.commit()
        return {"conversation_id": conversation.id, "last_read_at": participant.last_read_at}

    def unread_total(self, user: User) -> dict:
        return {"unread_count": self.repo.count_total_unread(self.db, user.id)}
