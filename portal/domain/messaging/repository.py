"""Messaging repository"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models_messaging import Conversation, ConversationParticipant, Message


class MessagingRepository:
    @staticmethod
    def get_conversation(db: Session, conversation_id: int) -> Optional[Conversation]:
        return db.query(Conversation).filter(Conversation.id == conversation_id).first()

    @staticmethod
    def get_participant(db: Session, conversation_id: int, user_id: int) -> Optional[ConversationParticipant]:
        return (
            db.query(ConversationParticipant)
            .filter(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .first()
        )

    @staticmethod
    def list_for_user(db: Session, user_id: int) -> list[tuple[Conversation, ConversationParticipant]]:
        return (
            db.query(Conversation, ConversationParticipant)
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .filter(ConversationParticipant.user_id == user_id)
            .order_by(
                func.coalesce(Conversation.last_message_at, Conversation.created_at).desc(),
                Conversation.id.desc(),
            )
            .all()
        )

    @staticmethod
    def find_direct(db: Session, organization_id: int, user_a: int, user_b: int) -> Optional[Conversation]:
        """A conversation in the organization whose only participants are these two users"""
        candidates = (
            db.query(Conversation)
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .filter(
                Conversation.organization_id == organization_id,
                ConversationParticipant.user_id == user_a,
            )
            .order_by(Conversation.id)
            .all()
        )
        for conversation in candidates:
            members = {p.user_id for p in conversation.participants}
            if members == {user_a, user_b}:
                return conversation
        return None

    @staticmethod
    def count_unread(db: Session, conversation_id: int, user_id: int, last_read_at: Optional[datetime]) -> int:
        query = db.query(func.count(Message.id)).filter(
            Message.conversation_id == conversation_id, Message.sender_id != user_id
        )
        if last_read_at:
            query = query.filter(Message.created_at > last_read_at)
        return query.scalar() or 0

    @staticmethod
    def count_total_unread(db: Session, user_id: int) -> int:
        return (
            db.query(func.count(Message.id))
            .join(
                ConversationParticipant,
                ConversationParticipant.conversation_id == Message.conversation_id,
            )
            .filter(
                ConversationParticipant.user_id == user_id,
                Message.sender_id != user_id,
                or_(
                    ConversationParticipant.last_read_at.is_(None),
                    Message.created_at > ConversationParticipant.last_read_at,
                ),
            )
            .scalar()
            or 0
        )

    @staticmethod
    def list_messages(
        db: Session, conversation_id: int, before_id: Optional[int] = None, limit: int = 50
    ) -> list[Message]:
        query = db.query(Message).filter(Message.conversation_id == conversation_id)
        if before_id:
            query = query.filter(Message.id < before_id)
        rows = query.order_by(Message.id.desc()).limit(limit).all()
        return list(reversed(rows))
